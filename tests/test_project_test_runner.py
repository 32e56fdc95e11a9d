from __future__ import annotations

from pathlib import Path

import pytest

from zaycode.tools.testing import ProjectTestRunner, detect_test_command


def test_detects_command_from_marker_files(tmp_path: Path) -> None:
    assert detect_test_command(tmp_path) is None

    (tmp_path / "package.json").write_text("{}")
    assert detect_test_command(tmp_path) == "npm test"

    (tmp_path / "pyproject.toml").write_text("")
    assert detect_test_command(tmp_path) == "python -m pytest -q"


@pytest.mark.asyncio
async def test_runner_without_command_succeeds(tmp_path: Path) -> None:
    result = await ProjectTestRunner(tmp_path).run()

    assert result.success is True


@pytest.mark.asyncio
async def test_runner_reports_exit_status_and_output(tmp_path: Path) -> None:
    passing = await ProjectTestRunner(tmp_path, command="echo 3 passed").run()
    failing = await ProjectTestRunner(tmp_path, command="echo 1 failed; exit 1").run()

    assert passing.success is True
    assert "3 passed" in passing.output
    assert failing.success is False
    assert "1 failed" in failing.output
    assert failing.command == "echo 1 failed; exit 1"


@pytest.mark.asyncio
async def test_runner_times_out(tmp_path: Path) -> None:
    result = await ProjectTestRunner(tmp_path, command="sleep 5", timeout=0.1).run()

    assert result.success is False
    assert "timed out" in result.output
