"""Project test runner used by the build loop."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from loguru import logger

DEFAULT_TIMEOUT_SECONDS = 30.0
MAX_OUTPUT_CHARS = 8_000


@dataclass(frozen=True)
class TestRunResult:
    __test__ = False

    success: bool
    output: str
    command: str = ""


class TestRunner(Protocol):
    __test__ = False

    async def run(self) -> TestRunResult: ...


def detect_test_command(workspace: Path) -> str | None:
    """Guess the project's test command from marker files."""
    if any((workspace / marker).exists() for marker in ("pyproject.toml", "pytest.ini", "setup.cfg", "tests")):
        return "python -m pytest -q"
    if (workspace / "package.json").is_file():
        return "npm test"
    if (workspace / "Cargo.toml").is_file():
        return "cargo test"
    if (workspace / "go.mod").is_file():
        return "go test ./..."
    return None


class ProjectTestRunner:
    """Run the workspace test suite in a subprocess."""

    __test__ = False

    def __init__(self, workspace: Path, *, command: str | None = None, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        self.workspace = workspace
        self.command = command or detect_test_command(workspace)
        self.timeout = timeout

    async def run(self) -> TestRunResult:
        if not self.command:
            logger.info("tests.skipped reason=no_test_command workspace={}", self.workspace)
            return TestRunResult(success=True, output="No test command detected.")

        logger.info("tests.run command={}", self.command)
        process = await asyncio.create_subprocess_shell(
            self.command,
            cwd=str(self.workspace),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
        try:
            async with asyncio.timeout(self.timeout):
                stdout, _ = await process.communicate()
        except TimeoutError:
            process.kill()
            await process.wait()
            return TestRunResult(
                success=False,
                output=f"Test command timed out after {self.timeout}s",
                command=self.command,
            )

        output = stdout.decode("utf-8", errors="replace")
        if len(output) > MAX_OUTPUT_CHARS:
            output = output[-MAX_OUTPUT_CHARS:]
        success = process.returncode == 0
        logger.info("tests.done command={} success={}", self.command, success)
        return TestRunResult(success=success, output=output, command=self.command)
