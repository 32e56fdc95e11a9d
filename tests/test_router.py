from __future__ import annotations

import pytest

from zaycode.core.models import MODE_DEFAULTS
from zaycode.core.router import IntentRouter, classify_intent, score_intents
from zaycode.core.state import Mode, SessionState


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("refactor this function to be more efficient", Mode.CODE),
        ("why is this", Mode.REASON),
        ("write a parser", Mode.CODE),
        ("fix the crash", Mode.REASON),
        ("list files in the project", Mode.REASON),
        ("the application has a bug and keeps failing on startup", Mode.DEBUG),
        ("I get a stack trace every time the service starts", Mode.DEBUG),
        ("please summarize the weather report for tomorrow morning", Mode.REASON),
    ],
)
def test_classify_intent(text: str, expected: Mode) -> None:
    assert classify_intent(text) is expected


def test_keywords_match_whole_words_only() -> None:
    scores = score_intents("the prefix handles debugging output carefully and quietly")

    assert scores[Mode.DEBUG] == 0
    assert classify_intent("the prefix handles debugging output carefully and quietly") is Mode.REASON


def test_phrases_weigh_more_than_keywords() -> None:
    scores = score_intents("what is the difference between these two approaches here")

    assert scores[Mode.REASON] == pytest.approx(1.2 * 1.5)


def test_exact_ties_resolve_to_code() -> None:
    text = "outline the csv import process for our team today"
    scores = score_intents(text)

    assert scores[Mode.PLAN] == scores[Mode.DATA] == pytest.approx(1.3)
    assert classify_intent(text) is Mode.CODE


def test_route_classifies_in_auto_mode() -> None:
    decision = IntentRouter().route("refactor this function to be more efficient", SessionState())

    assert decision.mode is Mode.CODE
    assert decision.model == MODE_DEFAULTS["code"]
    assert decision.routed is True


def test_route_uses_locked_model() -> None:
    state = SessionState()
    state.set_model("my/model")

    decision = IntentRouter().route("refactor this function to be more efficient", state)

    assert decision.model == "my/model"
    assert decision.routed is False


def test_route_uses_pinned_mode_default() -> None:
    state = SessionState()
    state.set_mode("plan")

    decision = IntentRouter({"plan": "custom/planner", "auto": "custom/auto"}).route("fix this bug now please", state)

    assert decision.mode is Mode.PLAN
    assert decision.model == "custom/planner"
    assert decision.routed is False


def test_model_for_falls_back_to_auto_entry() -> None:
    router = IntentRouter({"auto": "custom/auto"})

    assert router.model_for(Mode.DATA) == "custom/auto"
