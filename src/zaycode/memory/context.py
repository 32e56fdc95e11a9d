"""Conversation memory with budget-aware shrinking."""

from __future__ import annotations

import math
from typing import Any

from loguru import logger

from zaycode.core.types import ConversationTurn, ToolInvocation
from zaycode.memory.compressor import compress_history
from zaycode.memory.store import HistoryStore

# Approximation only: a fixed characters-per-token ratio, not a tokenizer.
CHARS_PER_TOKEN = 4
MAX_TURNS = 50
MIN_PRUNE_TURNS = 10
DEFAULT_KEEP_FRACTION = 0.5


def prune_marker(dropped: int) -> str:
    return f"... (system: {dropped} messages pruned for context efficiency) ..."


class ContextMemory:
    """Ordered conversation turns plus an always-first system turn.

    Every mutation persists the full turn list under the session id.
    """

    def __init__(
        self,
        *,
        session_id: str = "",
        store: HistoryStore | None = None,
        system_prompt: str | None = None,
        max_turns: int = MAX_TURNS,
        min_prune_turns: int = MIN_PRUNE_TURNS,
    ) -> None:
        self.session_id = session_id
        self._store = store
        self._system = system_prompt
        self._turns: list[ConversationTurn] = []
        self.max_turns = max_turns
        self.min_prune_turns = min_prune_turns

    @property
    def turns(self) -> list[ConversationTurn]:
        return list(self._turns)

    @property
    def system_prompt(self) -> str | None:
        return self._system

    def __len__(self) -> int:
        return len(self._turns)

    def set_system(self, content: str) -> None:
        self._system = content

    def add_user(self, content: str) -> ConversationTurn:
        return self.add_turn(ConversationTurn(role="user", content=content))

    def add_assistant(self, content: str, tool_calls: list[ToolInvocation] | None = None) -> ConversationTurn:
        return self.add_turn(ConversationTurn(role="assistant", content=content or "", tool_calls=list(tool_calls or [])))

    def add_tool_result(self, tool_call_id: str, content: str) -> ConversationTurn:
        return self.add_turn(ConversationTurn(role="tool", content=content, tool_call_id=tool_call_id))

    def add_turn(self, turn: ConversationTurn) -> ConversationTurn:
        self._turns.append(turn)
        self._trim()
        self._persist()
        return turn

    def last_turn(self) -> ConversationTurn | None:
        return self._turns[-1] if self._turns else None

    def token_estimate(self) -> int:
        chars = len(self._system or "")
        chars += sum(turn.char_weight() for turn in self._turns)
        return math.ceil(chars / CHARS_PER_TOKEN)

    def messages(self) -> list[dict[str, Any]]:
        """Outbound message list: system turn plus compressed history."""
        history = self._turns
        start = 0
        # Tool results whose assistant turn was trimmed away cannot be sent.
        while start < len(history) and history[start].role == "tool":
            start += 1
        messages: list[dict[str, Any]] = []
        if self._system:
            messages.append({"role": "system", "content": self._system})
        messages.extend(turn.to_message() for turn in compress_history(history[start:]))
        return messages

    def clear(self) -> None:
        """Forget every turn and drop the stored session file."""
        self._turns = []
        if self._store is not None and self.session_id:
            self._store.delete(self.session_id)

    def prune(self, keep_fraction: float = DEFAULT_KEEP_FRACTION) -> int:
        """Permanently drop middle history, keeping the oldest and newest blocks.

        Returns the number of dropped turns.
        """
        if not 0 < keep_fraction < 1:
            raise ValueError(f"keep_fraction must be between 0 and 1, got {keep_fraction}")
        total = len(self._turns)
        if total < self.min_prune_turns:
            return 0

        keep_count = math.floor(total * keep_fraction)
        recent_count = max(1, math.ceil(keep_count / 2))
        oldest_end = self._align_cut(max(0, keep_count - recent_count))
        recent_start = self._align_cut(total - recent_count)
        dropped = recent_start - oldest_end
        if dropped <= 1:
            logger.debug("memory.prune.skipped total={} keep={}", total, keep_count)
            return 0

        marker = ConversationTurn(role="user", content=prune_marker(dropped))
        self._turns = [*self._turns[:oldest_end], marker, *self._turns[recent_start:]]
        logger.info("memory.pruned dropped={} remaining={}", dropped, len(self._turns))
        self._persist()
        return dropped

    def load(self, session_id: str) -> bool:
        """Restore a stored session. Missing or unreadable history loads as empty."""
        self.session_id = session_id
        if self._store is None:
            self._turns = []
            return False
        exists = self._store.exists(session_id)
        self._turns = self._store.load(session_id)
        return exists

    def _align_cut(self, index: int) -> int:
        # Never separate tool results from the assistant turn that requested them.
        while 0 < index < len(self._turns) and self._turns[index].role == "tool":
            index -= 1
        return index

    def _trim(self) -> None:
        overflow = len(self._turns) - self.max_turns
        if overflow > 0:
            del self._turns[:overflow]

    def _persist(self) -> None:
        if self._store is not None and self.session_id:
            self._store.save(self.session_id, self._turns)
