from __future__ import annotations

import pytest

from zaycode.core.correction import classify_failure, correction_turn, healing_turn
from zaycode.core.types import ConversationTurn


@pytest.mark.parametrize(
    ("error", "category"),
    [
        ("Error: Tool 'read_file' failed: [Errno 2] No such file or directory: 'a.py'", "CONTEXT"),
        ("Error: Unknown tool: teleport. Available tools: read_file", "CONTEXT"),
        ("Error: Tool 'write_file' failed: [Errno 13] Permission denied: '/etc/x'", "SAFETY"),
        ("Error: Tool 'edit_file' failed: content mismatch: search text not found", "PRECISION"),
        ("Error: Tool 'run_shell' failed: exit=1: boom", "GENERAL"),
    ],
)
def test_failures_are_classified_in_rule_order(error: str, category: str) -> None:
    assert classify_failure(error).category == category


def test_correction_turn_quotes_the_error() -> None:
    failed = ConversationTurn(role="tool", content="Error: Permission denied", tool_call_id="c1")

    turn = correction_turn(failed)

    assert turn.role == "user"
    assert turn.content.startswith("[SELF-CORRECTION: SAFETY]")
    assert '"Error: Permission denied"' in turn.content


def test_healing_turn_carries_test_output() -> None:
    turn = healing_turn("FAILED tests/test_parser.py::test_empty")

    assert turn.role == "user"
    assert "FAILED tests/test_parser.py::test_empty" in turn.content
