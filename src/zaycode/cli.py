"""zaycode command line interface."""

from __future__ import annotations

import asyncio
import uuid
from pathlib import Path

import typer
from loguru import logger
from rich.console import Console
from rich.prompt import Prompt

from zaycode.config import Settings, get_settings
from zaycode.core import AgentLoop, IntentRouter, LoopEvent, Mode, SessionState, StateChange
from zaycode.errors import ZaycodeError
from zaycode.logging_utils import LogProfile, bind_session, configure_logging
from zaycode.memory import ContextMemory, HistoryStore
from zaycode.provider import ProviderClient
from zaycode.tools import ToolDispatcher
from zaycode.tools.builtin import register_builtin_tools
from zaycode.tools.search import SearchIndex
from zaycode.tools.testing import ProjectTestRunner

DEFAULT_SYSTEM_PROMPT = (
    "You are zaycode, an autonomous coding agent working inside the user's workspace.\n"
    "Use the available tools to inspect and change files instead of guessing.\n"
    "When a tool fails, read the error and adjust your arguments before retrying.\n"
    "Reply with a concise final answer once the task is complete."
)
WORKSPACE_PROMPT_FILE = "ZAYCODE.md"
QUIT_COMMANDS = frozenset({"/quit", "/exit", "quit", "exit"})

app = typer.Typer(
    name="zaycode",
    help="Autonomous coding agent with intent routing.",
    add_completion=False,
    rich_markup_mode="rich",
)
console = Console()


class Session:
    """Wires settings, memory, provider and tools into one agent loop."""

    def __init__(self, settings: Settings, workspace: Path, session_id: str) -> None:
        self.settings = settings
        self.workspace = workspace
        self.state = SessionState(session_id=session_id, context_max=settings.context_max)
        self.state.set_mode(settings.mode)
        if settings.model:
            self.state.set_model(settings.model)

        store = HistoryStore(settings.history_dir, enabled=settings.save_history)
        self.memory = ContextMemory(session_id=session_id, store=store, system_prompt=_system_prompt(settings, workspace))
        if self.memory.load(session_id):
            logger.info("session.restored id={} turns={}", session_id, len(self.memory))

        self.provider = ProviderClient(
            api_key=settings.api_key,
            api_base=settings.api_base,
            timeout_seconds=settings.timeout_seconds,
            max_tokens=settings.max_tokens,
            temperature=settings.temperature,
        )
        self.dispatcher = ToolDispatcher()
        register_builtin_tools(
            self.dispatcher,
            workspace=workspace,
            provider=self.provider,
            index=SearchIndex(settings.resolve_home() / "index.json"),
        )
        self.router = IntentRouter(settings.mode_models)
        self.loop = AgentLoop(
            provider=self.provider,
            dispatcher=self.dispatcher,
            router=self.router,
            state=self.state,
            test_runner=ProjectTestRunner(workspace, command=settings.test_command),
            max_iterations=settings.max_iterations,
            call_timeout=settings.timeout_seconds,
            on_delta=_print_delta,
            on_event=_print_event,
        )
        self.state.subscribe(_print_state_change)

    async def ask(self, prompt: str) -> None:
        result = await self.loop.run(prompt, self.memory)
        console.print()
        console.print(
            f"[dim]{result.mode} | {result.model} | {result.iterations} step(s) | {result.elapsed_seconds:.1f}s[/dim]"
        )


def _system_prompt(settings: Settings, workspace: Path) -> str:
    parts = [DEFAULT_SYSTEM_PROMPT]
    if settings.system_prompt:
        parts.append(settings.system_prompt)
    prompt_file = workspace / WORKSPACE_PROMPT_FILE
    if prompt_file.is_file():
        parts.append(prompt_file.read_text(encoding="utf-8").strip())
    parts.append(f"Workspace: {workspace}")
    return "\n\n".join(part for part in parts if part)


def _print_delta(text: str) -> None:
    console.print(text, end="", markup=False, highlight=False, soft_wrap=True)


def _print_event(event: LoopEvent) -> None:
    payload = event.payload
    if event.kind == "tool_call":
        console.print(f"\n[cyan]> {payload['name']}[/cyan] [dim]{payload['arguments']}[/dim]")
    elif event.kind == "tool_result":
        status = "[green]ok[/green]" if payload["success"] else "[red]failed[/red]"
        console.print(f"[dim]  {status} attempts={payload['attempts']}[/dim]")
    elif event.kind == "notice":
        console.print(f"\n[yellow]{payload['message']}[/yellow]")
    elif event.kind == "warning":
        console.print(f"\n[bold red]{payload['message']}[/bold red]")


def _print_state_change(change: StateChange) -> None:
    if change.key == "mode":
        console.print(f"[dim]mode: {change.previous.value} -> {change.current.value}[/dim]")
    elif change.key == "active_model":
        console.print(f"[dim]model: {change.current or 'auto'}[/dim]")


def _build_session(
    workspace: Path | None,
    session_id: str | None,
    mode: str | None,
    model: str | None,
    profile: LogProfile = "default",
) -> Session:
    settings = get_settings(mode=mode, model=model)
    configure_logging(profile=profile, level=settings.log_level)
    resolved_id = session_id or f"cli-{uuid.uuid4().hex[:8]}"
    bind_session(resolved_id)
    return Session(settings, (workspace or Path.cwd()).resolve(), resolved_id)


@app.command()
def run(
    prompt: str = typer.Argument(..., help="Task for the agent"),
    workspace: Path | None = typer.Option(None, "--workspace", "-w", help="Workspace root"),  # noqa: B008
    mode: str | None = typer.Option(None, "--mode", help="Operating mode"),
    model: str | None = typer.Option(None, "--model", help="Lock routing to one model"),
    session_id: str | None = typer.Option(None, "--session", help="Session id to resume"),
) -> None:
    """Run one task through the agent loop."""
    try:
        session = _build_session(workspace, session_id, mode, model)
        asyncio.run(session.ask(prompt))
    except (ZaycodeError, ValueError) as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(1) from exc


def _handle_command(session: Session, line: str) -> bool:
    """Apply a slash command. Returns False when the chat should end."""
    command, _, argument = line.partition(" ")
    argument = argument.strip()
    if command in QUIT_COMMANDS:
        return False
    if command == "/mode":
        if not argument:
            console.print(f"Mode: [magenta]{session.state.mode.value}[/magenta]")
        else:
            session.state.set_mode(argument)
    elif command == "/use":
        session.state.set_model(argument)
    elif command == "/auto":
        session.state.set_mode(Mode.AUTO)
    elif command == "/clear":
        session.memory.clear()
        console.print("[dim]Conversation cleared[/dim]")
    else:
        console.print(f"[red]Unknown command: {command}[/red]")
    return True


async def _chat_loop(session: Session) -> None:
    console.print("[bold blue]zaycode[/bold blue] - type /quit to exit")
    console.print(f"[bold]Workspace:[/bold] [cyan]{session.workspace}[/cyan]")
    console.print(f"[bold]Tools:[/bold] [green]{', '.join(session.dispatcher.names())}[/green]")
    while True:
        try:
            line = (await asyncio.to_thread(Prompt.ask, "[bold green]You[/bold green]")).strip()
        except (KeyboardInterrupt, EOFError):
            break
        if not line:
            continue
        if line.startswith("/") or line in QUIT_COMMANDS:
            try:
                if not _handle_command(session, line):
                    break
            except ValueError as exc:
                console.print(f"[red]{exc}[/red]")
            continue
        try:
            await session.ask(line)
        except ZaycodeError as exc:
            console.print(f"\n[bold red]Error:[/bold red] {exc}")
    console.print("Goodbye!")


@app.command()
def chat(
    workspace: Path | None = typer.Option(None, "--workspace", "-w", help="Workspace root"),  # noqa: B008
    mode: str | None = typer.Option(None, "--mode", help="Operating mode"),
    model: str | None = typer.Option(None, "--model", help="Lock routing to one model"),
    session_id: str | None = typer.Option(None, "--session", help="Session id to resume"),
) -> None:
    """Start an interactive session."""
    try:
        session = _build_session(workspace, session_id, mode, model, profile="chat")
    except (ZaycodeError, ValueError) as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(1) from exc
    asyncio.run(_chat_loop(session))


@app.command()
def route(prompt: str = typer.Argument(..., help="Text to classify")) -> None:
    """Show which mode and model a prompt would be routed to."""
    settings = get_settings()
    decision = IntentRouter(settings.mode_models).route(prompt, SessionState())
    typer.echo(f"mode={decision.mode.value} model={decision.model}")


@app.command()
def history(session_id: str = typer.Argument(..., help="Session id")) -> None:
    """Print the stored turns of a session."""
    settings = get_settings()
    store = HistoryStore(settings.history_dir)
    if not store.exists(session_id):
        typer.echo(f"No history for session {session_id}. Known: {', '.join(store.list_sessions()) or '(none)'}")
        raise typer.Exit(1)
    for turn in store.load(session_id):
        label = turn.role if turn.tool_call_id is None else f"tool:{turn.tool_call_id}"
        typer.echo(f"[{label}] {turn.content}")
