from __future__ import annotations

from zaycode.core.types import ConversationTurn
from zaycode.memory.compressor import ELISION_MARKER, compress_content, compress_history

LONG_LOG = "\n".join(f"line {index:03d} " + "x" * 40 for index in range(100))


def test_short_content_is_untouched() -> None:
    text = "a\n\n\n\nb"

    assert compress_content(text) == text


def test_blank_line_runs_collapse() -> None:
    text = "a" * 300 + "\n\n\n\n\n" + "b" * 300

    assert compress_content(text) == "a" * 300 + "\n\n" + "b" * 300


def test_long_content_keeps_head_and_tail() -> None:
    compressed = compress_content(LONG_LOG)

    assert compressed.startswith("line 000")
    assert compressed.endswith("line 099 " + "x" * 40)
    assert ELISION_MARKER in compressed
    assert "line 050" not in compressed


def test_error_content_is_never_elided() -> None:
    text = "Error: " + LONG_LOG

    assert compress_content(text) == text


def test_history_protects_recent_user_and_error_turns() -> None:
    turns = [
        ConversationTurn(role="assistant", content=LONG_LOG),
        ConversationTurn(role="user", content=LONG_LOG),
        ConversationTurn(role="tool", content="Error: " + LONG_LOG, tool_call_id="c1"),
        ConversationTurn(role="assistant", content=LONG_LOG),
        ConversationTurn(role="assistant", content=LONG_LOG),
        ConversationTurn(role="assistant", content=LONG_LOG),
    ]

    result = compress_history(turns)

    assert [turn.content == LONG_LOG for turn in result] == [False, True, False, True, True, True]
    assert result[2] is turns[2]
    assert turns[0].content == LONG_LOG
