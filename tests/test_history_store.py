from __future__ import annotations

import json
from pathlib import Path

from zaycode.core.types import ConversationTurn
from zaycode.memory.store import HistoryStore


def test_session_ids_are_safe_file_names(tmp_path: Path) -> None:
    store = HistoryStore(tmp_path)

    assert store.save("team/alice:1", [ConversationTurn(role="user", content="hi")])
    assert store.path_for("team/alice:1").parent == tmp_path
    assert store.list_sessions() == ["team/alice:1"]


def test_disabled_store_writes_nothing(tmp_path: Path) -> None:
    store = HistoryStore(tmp_path, enabled=False)

    assert store.save("s", [ConversationTurn(role="user", content="hi")]) is False
    assert not store.exists("s")


def test_write_failure_is_swallowed(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    store = HistoryStore(blocker / "history")

    assert store.save("s", [ConversationTurn(role="user", content="hi")]) is False


def test_non_list_payload_loads_empty(tmp_path: Path) -> None:
    store = HistoryStore(tmp_path)
    store.path_for("s").write_text(json.dumps({"role": "user"}), encoding="utf-8")

    assert store.load("s") == []


def test_unknown_entries_are_skipped(tmp_path: Path) -> None:
    store = HistoryStore(tmp_path)
    payload = [{"role": "user", "content": "keep"}, {"role": "narrator", "content": "drop"}, "noise"]
    store.path_for("s").write_text(json.dumps(payload), encoding="utf-8")

    assert store.load("s") == [ConversationTurn(role="user", content="keep")]


def test_delete_removes_session(tmp_path: Path) -> None:
    store = HistoryStore(tmp_path)
    store.save("s", [ConversationTurn(role="user", content="hi")])

    store.delete("s")

    assert store.list_sessions() == []
