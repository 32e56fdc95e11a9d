"""Persistent conversation history store."""

from __future__ import annotations

import json
import os
import threading
from pathlib import Path
from urllib.parse import quote, unquote

from loguru import logger

from zaycode.core.types import ConversationTurn
from zaycode.errors import PersistenceError

HISTORY_FILE_SUFFIX = ".json"


class HistoryStore:
    """One JSON file per session id holding the ordered turn list.

    Writes are best-effort: failures are logged and never reach the caller.
    """

    def __init__(self, root: Path, *, enabled: bool = True) -> None:
        self.root = root
        self.enabled = enabled
        self._lock = threading.Lock()

    def path_for(self, session_id: str) -> Path:
        return self.root / f"{quote(session_id, safe='')}{HISTORY_FILE_SUFFIX}"

    def list_sessions(self) -> list[str]:
        if not self.root.is_dir():
            return []
        names = [unquote(path.name.removesuffix(HISTORY_FILE_SUFFIX)) for path in self.root.glob(f"*{HISTORY_FILE_SUFFIX}")]
        return sorted(names)

    def save(self, session_id: str, turns: list[ConversationTurn]) -> bool:
        if not self.enabled or not session_id:
            return False
        try:
            self._write(self.path_for(session_id), [turn.to_message() for turn in turns])
        except PersistenceError:
            logger.opt(exception=True).warning("history.save_failed session={}", session_id)
            return False
        return True

    def load(self, session_id: str) -> list[ConversationTurn]:
        """Load a session; a missing or corrupt file yields an empty history."""
        path = self.path_for(session_id)
        try:
            payload = self._read(path)
        except PersistenceError as exc:
            logger.warning("history.load_failed session={} reason={}", session_id, exc)
            return []
        if payload is None:
            return []
        turns: list[ConversationTurn] = []
        for item in payload:
            turn = ConversationTurn.from_message(item)
            if turn is not None:
                turns.append(turn)
        return turns

    def exists(self, session_id: str) -> bool:
        return self.path_for(session_id).is_file()

    def delete(self, session_id: str) -> None:
        self.path_for(session_id).unlink(missing_ok=True)

    def _write(self, path: Path, payload: list[dict[str, object]]) -> None:
        with self._lock:
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                tmp_path = path.with_suffix(f"{HISTORY_FILE_SUFFIX}.tmp")
                tmp_path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
                os.replace(tmp_path, path)
            except (OSError, TypeError, ValueError) as exc:
                raise PersistenceError(str(exc)) from exc

    @staticmethod
    def _read(path: Path) -> list[object] | None:
        if not path.is_file():
            return None
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise PersistenceError(str(exc)) from exc
        if not isinstance(payload, list):
            raise PersistenceError("history file is not a list")
        return payload
