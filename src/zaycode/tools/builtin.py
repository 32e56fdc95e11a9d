"""Built-in workspace tool definitions."""

from __future__ import annotations

import asyncio
import fnmatch
import shutil
from pathlib import Path

from pydantic import BaseModel, Field

from zaycode.core.subagent import SubAgent
from zaycode.provider.client import ChatProvider
from zaycode.tools.registry import META, READ, SEARCH, SHELL, VCS, WRITE, ToolDispatcher
from zaycode.tools.search import SearchIndex

SKIP_DIRS = frozenset({".git", "node_modules", "__pycache__", ".venv", "venv", "dist", "build", ".mypy_cache"})
MAX_LISTED_FILES = 500
MAX_SEARCH_RESULTS = 100
SHELL_TIMEOUT_SECONDS = 60.0


class ListFilesInput(BaseModel):
    path: str = Field(default=".", description="Directory to list, relative to the workspace")
    recursive: bool = Field(default=False, description="Descend into subdirectories")


class ReadInput(BaseModel):
    path: str = Field(..., description="File path")
    offset: int = Field(default=0, ge=0, description="First line to return")
    limit: int | None = Field(default=None, ge=1, description="Maximum number of lines")


class WriteInput(BaseModel):
    path: str = Field(..., description="File path")
    content: str = Field(..., description="File content")


class EditInput(BaseModel):
    path: str = Field(..., description="File path")
    search: str = Field(..., description="Exact text to find")
    replace: str = Field(..., description="Replacement text")
    replace_all: bool = Field(default=False, description="Replace all occurrences")


class ShellInput(BaseModel):
    cmd: str = Field(..., description="Shell command")
    cwd: str | None = Field(default=None, description="Working directory")


class SearchFilesInput(BaseModel):
    pattern: str = Field(..., description="Substring to search for")
    path: str = Field(default=".", description="Base path")
    glob: str = Field(default="*", description="File name pattern")


class SemanticSearchInput(BaseModel):
    query: str = Field(..., description="Natural language query")
    limit: int = Field(default=5, ge=1, le=20)


class ResearchInput(BaseModel):
    task: str = Field(..., description="Research task for the sub-agent")


class EmptyInput(BaseModel):
    pass


def _resolve_path(workspace: Path, raw: str) -> Path:
    path = Path(raw).expanduser()
    if path.is_absolute():
        return path
    return workspace / path


def _walk(base: Path, *, recursive: bool) -> list[Path]:
    if not recursive:
        return sorted(base.iterdir())
    found: list[Path] = []
    for path in sorted(base.rglob("*")):
        if any(part in SKIP_DIRS for part in path.relative_to(base).parts):
            continue
        found.append(path)
    return found


async def _run_shell(cmd: str, cwd: Path) -> tuple[int, str]:
    executable = shutil.which("bash")
    process = await asyncio.create_subprocess_shell(
        cmd,
        cwd=str(cwd),
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.STDOUT,
        executable=executable,
    )
    try:
        async with asyncio.timeout(SHELL_TIMEOUT_SECONDS):
            stdout, _ = await process.communicate()
    except TimeoutError:
        process.kill()
        await process.wait()
        raise RuntimeError(f"command timed out after {SHELL_TIMEOUT_SECONDS}s") from None
    return process.returncode or 0, stdout.decode("utf-8", errors="replace").strip()


def register_builtin_tools(
    dispatcher: ToolDispatcher,
    *,
    workspace: Path,
    provider: ChatProvider | None = None,
    index: SearchIndex | None = None,
) -> None:
    """Register workspace-scoped tools."""

    register = dispatcher.register

    @register("list_files", category=READ, model=ListFilesInput)
    def list_files(params: ListFilesInput) -> dict[str, object]:
        """List files and directories under a path."""
        base = _resolve_path(workspace, params.path)
        entries = _walk(base, recursive=params.recursive)
        rows = [
            {"path": str(path.relative_to(base)), "type": "dir" if path.is_dir() else "file"}
            for path in entries[:MAX_LISTED_FILES]
        ]
        return {"path": str(base), "total": len(entries), "entries": rows}

    @register("read_file", category=READ, model=ReadInput)
    def read_file(params: ReadInput) -> str:
        """Read UTF-8 text with optional line offset and limit."""
        file_path = _resolve_path(workspace, params.path)
        lines = file_path.read_text(encoding="utf-8").splitlines()
        start = min(params.offset, len(lines))
        end = len(lines) if params.limit is None else min(len(lines), start + params.limit)
        content = "\n".join(lines[start:end])
        if index is not None:
            key = file_path.relative_to(workspace) if file_path.is_relative_to(workspace) else file_path
            index.index(str(key), content)
        return content

    @register("write_file", category=WRITE, model=WriteInput)
    def write_file(params: WriteInput) -> str:
        """Write content to a file, creating parent directories if needed."""
        file_path = _resolve_path(workspace, params.path)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(params.content, encoding="utf-8")
        return f"wrote: {file_path}"

    @register("edit_file", category=WRITE, model=EditInput)
    def edit_file(params: EditInput) -> str:
        """Replace one or all occurrences of exact text in a file."""
        file_path = _resolve_path(workspace, params.path)
        text = file_path.read_text(encoding="utf-8")
        count = text.count(params.search)
        if count == 0:
            raise RuntimeError("content mismatch: search text not found")
        updated = text.replace(params.search, params.replace, -1 if params.replace_all else 1)
        file_path.write_text(updated, encoding="utf-8")
        return f"updated: {file_path} occurrences={count if params.replace_all else 1}"

    @register("run_shell", category=SHELL, model=ShellInput)
    async def run_shell(params: ShellInput) -> str:
        """Run a shell command in the workspace. Non-zero exit raises an error."""
        cwd = _resolve_path(workspace, params.cwd) if params.cwd else workspace
        code, output = await _run_shell(params.cmd, cwd)
        if code != 0:
            raise RuntimeError(f"exit={code}: {output or '(no output)'}")
        return output or "(no output)"

    @register("search_files", category=SEARCH, model=SearchFilesInput)
    def search_files(params: SearchFilesInput) -> str:
        """Scan files recursively and return matching lines."""
        base = _resolve_path(workspace, params.path)
        rows: list[str] = []
        for path in _walk(base, recursive=True):
            if not path.is_file() or not fnmatch.fnmatch(path.name, params.glob):
                continue
            try:
                content = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError):
                continue
            for number, line in enumerate(content.splitlines(), start=1):
                if params.pattern in line:
                    rows.append(f"{path.relative_to(base)}:{number}:{line}")
                    if len(rows) >= MAX_SEARCH_RESULTS:
                        return "\n".join(rows)
        return "\n".join(rows) if rows else "(no matches)"

    @register("git_status", category=VCS, model=EmptyInput)
    async def git_status(_params: EmptyInput) -> str:
        """Show the working tree status."""
        code, output = await _run_shell("git status --short --branch", workspace)
        if code != 0:
            raise RuntimeError(output or "not a git repository")
        return output or "(clean)"

    if index is not None:

        @register("semantic_search", category=SEARCH, model=SemanticSearchInput)
        def semantic_search(params: SemanticSearchInput) -> dict[str, object]:
            """Rank previously read files by relevance to a query."""
            hits = index.search(params.query, limit=params.limit)
            return {
                "results": [{"path": hit.path, "score": hit.score, "preview": hit.preview} for hit in hits],
                "message": f"Found {len(hits)} matches." if hits else "No matches found.",
            }

    if provider is not None:

        @register("spawn_research_agent", category=META, model=ResearchInput)
        async def spawn_research_agent(params: ResearchInput) -> dict[str, object]:
            """Delegate a read-only research task to a stateless sub-agent."""
            report = await SubAgent(provider, dispatcher).run(params.task)
            return {"report": report}
