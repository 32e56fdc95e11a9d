from __future__ import annotations

import pytest

from zaycode.core.state import Mode, SessionState, StateChange


def test_observers_receive_changes_until_unsubscribed() -> None:
    state = SessionState()
    changes: list[StateChange] = []
    unsubscribe = state.subscribe(changes.append)

    state.set_mode("debug")
    unsubscribe()
    state.set_mode("plan")

    assert changes == [StateChange(key="mode", previous=Mode.AUTO, current=Mode.DEBUG)]


def test_set_model_locks_and_auto_mode_unlocks() -> None:
    state = SessionState()

    state.set_model("vendor/model")
    assert state.manual_override is True
    assert state.active_model == "vendor/model"

    state.set_mode(Mode.AUTO)
    assert state.manual_override is False
    assert state.active_model is None


def test_set_model_requires_a_value() -> None:
    with pytest.raises(ValueError, match="Model ID required"):
        SessionState().set_model("")


def test_invalid_mode_lists_valid_modes() -> None:
    with pytest.raises(ValueError, match="Valid: auto, code"):
        SessionState().set_mode("turbo")


def test_mode_parse_is_case_insensitive() -> None:
    assert Mode.parse(" Build ") is Mode.BUILD


def test_failing_observer_does_not_break_mutation() -> None:
    state = SessionState()
    seen: list[str] = []

    def broken(change: StateChange) -> None:
        raise RuntimeError("observer bug")

    state.subscribe(broken)
    state.subscribe(lambda change: seen.append(change.key))
    state.set_thinking(True)

    assert state.thinking is True
    assert seen == ["thinking"]


def test_iteration_and_usage_counters() -> None:
    state = SessionState()

    assert state.increment_iterations() == 1
    assert state.increment_iterations() == 2
    state.reset_iterations()
    state.add_usage(10, 4)
    state.add_usage(5, 1)

    assert state.iterations == 0
    assert state.usage.total_tokens == 20


def test_context_usage_notifies_observers() -> None:
    state = SessionState()
    changes: list[StateChange] = []
    state.subscribe(changes.append)

    state.set_context_usage(1200, 64_000)

    assert state.context_max == 64_000
    assert changes == [StateChange(key="context_used", previous=0, current=1200)]
