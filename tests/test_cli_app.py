from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

from zaycode.cli import app
from zaycode.core.types import ConversationTurn
from zaycode.memory.store import HistoryStore

runner = CliRunner()


@pytest.fixture(autouse=True)
def _home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("ZAYCODE_HOME", str(tmp_path / "home"))
    monkeypatch.delenv("ZAYCODE_MODE_MODELS", raising=False)
    return tmp_path / "home"


def test_route_prints_decision() -> None:
    result = runner.invoke(app, ["route", "refactor this function to be more efficient"])

    assert result.exit_code == 0
    assert "mode=code" in result.stdout


def test_history_prints_stored_turns(_home: Path) -> None:
    HistoryStore(_home / "history").save(
        "s1",
        [ConversationTurn(role="user", content="hello"), ConversationTurn(role="assistant", content="hi there")],
    )

    result = runner.invoke(app, ["history", "s1"])

    assert result.exit_code == 0
    assert result.stdout.splitlines() == ["[user] hello", "[assistant] hi there"]


def test_history_for_unknown_session_fails() -> None:
    result = runner.invoke(app, ["history", "nobody"])

    assert result.exit_code == 1
    assert "No history for session nobody" in result.stdout


def test_run_without_api_key_reports_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("ZAYCODE_API_KEY", raising=False)
    monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)
    monkeypatch.setenv("ZAYCODE_SAVE_HISTORY", "false")
    monkeypatch.setattr("zaycode.cli.configure_logging", lambda **kwargs: None)

    result = runner.invoke(app, ["run", "explain the tradeoff here"])

    assert result.exit_code == 1
    assert "API key not set" in result.stdout
