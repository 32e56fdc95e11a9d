"""Self-correction instructions injected after failed tool calls.

Classification is a heuristic: an ordered table of substring predicates. The
first matching row wins; replace the table to change the behaviour.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from zaycode.core.types import ConversationTurn


@dataclass(frozen=True)
class CorrectionRule:
    category: str
    matches: Callable[[str], bool]
    instruction: str


def _contains_any(*needles: str) -> Callable[[str], bool]:
    lowered = tuple(needle.casefold() for needle in needles)
    return lambda text: any(needle in text.casefold() for needle in lowered)


GENERAL = CorrectionRule(
    category="GENERAL",
    matches=lambda _text: True,
    instruction="The tool call failed. Analyze the error output and propose an improved strategy.",
)

CORRECTION_RULES: tuple[CorrectionRule, ...] = (
    CorrectionRule(
        category="PRECISION",
        matches=_contains_any("syntaxerror", "mismatch", "did not match", "invalid json", "malformed"),
        instruction=(
            "The edit failed due to a content or format mismatch. Re-read the file content and match whitespace exactly."
        ),
    ),
    CorrectionRule(
        category="SAFETY",
        matches=_contains_any("permission denied", "eacces", "eperm", "not permitted"),
        instruction="A permission error occurred. Ask the user for clarification or check file attributes.",
    ),
    CorrectionRule(
        category="CONTEXT",
        matches=_contains_any("not found", "no such file", "enoent", "does not exist", "unknown tool"),
        instruction="The file path or resource was not found. Locate it with search tools before retrying.",
    ),
    GENERAL,
)


def classify_failure(text: str, rules: tuple[CorrectionRule, ...] = CORRECTION_RULES) -> CorrectionRule:
    for rule in rules:
        if rule.matches(text):
            return rule
    return GENERAL


def correction_turn(failed: ConversationTurn, rules: tuple[CorrectionRule, ...] = CORRECTION_RULES) -> ConversationTurn:
    """Build the transient instruction turn answering one tool error turn."""
    rule = classify_failure(failed.content, rules)
    return ConversationTurn(
        role="user",
        content=(
            f"[SELF-CORRECTION: {rule.category}] {rule.instruction}\n"
            f'Error details: "{failed.content}"\n'
            "MANDATORY: Explain the failure before acting and do not repeat the failed call with the same arguments."
        ),
    )


def healing_turn(output: str) -> ConversationTurn:
    """Corrective turn recorded after the project tests fail in build mode."""
    return ConversationTurn(
        role="user",
        content=(
            "[SELF-HEALING FAILURE] The tests failed after your last changes.\n"
            f"Error Output:\n{output}\n\n"
            "Analyze the failure and fix the code."
        ),
    )
