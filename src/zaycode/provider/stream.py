"""Incremental decoder for line-delimited streamed completions.

Chunks are buffered and only complete lines are interpreted, so the decoded
result does not depend on where chunk boundaries fall. Each ``data:`` line
carries one JSON event; anything else is skipped. ``[DONE]`` marks logical
completion, which is distinct from the transport closing.
"""

from __future__ import annotations

import codecs
import json
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from loguru import logger

from zaycode.core.types import ModelResponse, ToolInvocation
from zaycode.errors import DecodeAnomaly

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


@dataclass
class ToolCallSlot:
    """Accumulated fragments for one tool call index."""

    id: str = ""
    name: str = ""
    arguments: str = ""

    @property
    def empty(self) -> bool:
        return not (self.id or self.name or self.arguments)

    def to_invocation(self, index: int) -> ToolInvocation:
        return ToolInvocation.from_wire(
            {"id": self.id, "function": {"name": self.name, "arguments": self.arguments}},
            index,
        )


class StreamDecoder:
    """Rebuild assistant text and tool calls from arbitrarily split chunks."""

    def __init__(self, on_delta: Callable[[str], None] | None = None) -> None:
        self._on_delta = on_delta
        self._buffer = ""
        self._bytes_decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._text_parts: list[str] = []
        self.slots: list[ToolCallSlot] = []
        self.done = False
        self.prompt_tokens = 0
        self.completion_tokens = 0
        self.anomalies = 0

    @property
    def text(self) -> str:
        return "".join(self._text_parts)

    def feed(self, chunk: str | bytes) -> bool:
        """Consume one chunk. Returns True once the completion sentinel was seen."""
        if self.done:
            return True
        if isinstance(chunk, bytes):
            chunk = self._bytes_decoder.decode(chunk)
        self._buffer += chunk
        while not self.done:
            newline = self._buffer.find("\n")
            if newline == -1:
                break
            line = self._buffer[:newline]
            self._buffer = self._buffer[newline + 1 :]
            self._process_line(line)
        return self.done

    def finish(self) -> ModelResponse:
        """Resolve with whatever was accumulated, sentinel or not."""
        if not self.done:
            tail = self._buffer + self._bytes_decoder.decode(b"", final=True)
            self._buffer = ""
            if tail.strip():
                self._process_line(tail)
        if not self.done:
            logger.debug("stream.ended_without_sentinel chars={} slots={}", len(self.text), len(self.slots))
        return ModelResponse(
            text=self.text,
            tool_calls=[slot.to_invocation(index) for index, slot in enumerate(self.slots)],
            prompt_tokens=self.prompt_tokens,
            completion_tokens=self.completion_tokens,
            completed=self.done,
        )

    def _process_line(self, raw: str) -> None:
        line = raw.strip()
        if not line or not line.startswith(DATA_PREFIX):
            return
        data = line[len(DATA_PREFIX) :].strip()
        if data == DONE_SENTINEL:
            self.done = True
            return
        try:
            self._interpret(data)
        except DecodeAnomaly as exc:
            self.anomalies += 1
            logger.debug("stream.decode_anomaly reason={}", exc)

    def _interpret(self, data: str) -> None:
        try:
            event = json.loads(data)
        except json.JSONDecodeError as exc:
            raise DecodeAnomaly(f"invalid json: {exc.msg}") from exc
        if not isinstance(event, dict):
            raise DecodeAnomaly("event is not an object")

        if isinstance(usage := event.get("usage"), dict):
            self._record_usage(usage)
        if isinstance(error := event.get("error"), dict):
            logger.warning("stream.error_event message={}", error.get("message"))

        choices = event.get("choices")
        if not isinstance(choices, list) or not choices:
            return
        choice = choices[0]
        if not isinstance(choice, dict):
            raise DecodeAnomaly("choice is not an object")
        delta = choice.get("delta")
        if not isinstance(delta, dict):
            return

        content = delta.get("content")
        if isinstance(content, str) and content:
            self._text_parts.append(content)
            if self._on_delta is not None:
                try:
                    self._on_delta(content)
                except Exception:
                    logger.opt(exception=True).warning("stream.on_delta.error")

        tool_calls = delta.get("tool_calls")
        if isinstance(tool_calls, list):
            for fragment in tool_calls:
                self._merge_tool_fragment(fragment)

    def _merge_tool_fragment(self, fragment: Any) -> None:
        if not isinstance(fragment, dict):
            raise DecodeAnomaly("tool call fragment is not an object")
        index = fragment.get("index", 0)
        if not isinstance(index, int) or isinstance(index, bool) or index < 0:
            raise DecodeAnomaly(f"invalid tool call index: {index!r}")
        while len(self.slots) <= index:
            self.slots.append(ToolCallSlot())

        slot = self.slots[index]
        if isinstance(call_id := fragment.get("id"), str) and call_id:
            slot.id = call_id
        function = fragment.get("function")
        if isinstance(function, dict):
            if isinstance(name := function.get("name"), str):
                slot.name += name
            if isinstance(arguments := function.get("arguments"), str):
                slot.arguments += arguments

    def _record_usage(self, usage: dict[str, Any]) -> None:
        prompt = usage.get("prompt_tokens")
        completion = usage.get("completion_tokens")
        if isinstance(prompt, int):
            self.prompt_tokens = prompt
        if isinstance(completion, int):
            self.completion_tokens = completion
