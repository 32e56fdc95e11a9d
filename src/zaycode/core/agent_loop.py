"""Autonomous tool-calling agent loop."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from loguru import logger

from zaycode.core.correction import correction_turn, healing_turn
from zaycode.core.models import fallback_model
from zaycode.core.router import IntentRouter
from zaycode.core.state import Mode, SessionState
from zaycode.core.types import AgentRunResult, ModelResponse, ToolInvocation, ToolResult
from zaycode.errors import CapacityError, ModelNotConfiguredError, TransportError
from zaycode.memory.context import ContextMemory
from zaycode.provider.client import ChatProvider
from zaycode.tools.registry import ToolDispatcher
from zaycode.tools.testing import TestRunner

MAX_ITERATIONS = 20
PRUNE_THRESHOLD = 0.8
PRUNE_KEEP_FRACTION = 0.5
MAX_MUTATING_ATTEMPTS = 3


class LoopPhase(str, Enum):
    THINKING = "thinking"
    EXECUTING_TOOLS = "executing_tools"
    IDLE = "idle"


@dataclass(frozen=True)
class LoopEvent:
    kind: str
    payload: dict[str, Any] = field(default_factory=dict)


LoopObserver = Callable[[LoopEvent], None]


@dataclass
class _RunState:
    model: str
    mode: Mode
    iterations: int = 0
    fell_back: bool = False
    final_text: str = ""
    finished: bool = False


class AgentLoop:
    """Route, stream, dispatch tools and iterate until a final answer.

    One loop instance serves one session; runs must not overlap.
    """

    def __init__(
        self,
        *,
        provider: ChatProvider,
        dispatcher: ToolDispatcher,
        router: IntentRouter,
        state: SessionState,
        test_runner: TestRunner | None = None,
        max_iterations: int = MAX_ITERATIONS,
        call_timeout: float | None = None,
        on_delta: Callable[[str], None] | None = None,
        on_event: LoopObserver | None = None,
    ) -> None:
        self._provider = provider
        self._dispatcher = dispatcher
        self._router = router
        self._state = state
        self._test_runner = test_runner
        self._max_iterations = max_iterations
        self._call_timeout = call_timeout
        self._on_delta = on_delta
        self._on_event = on_event
        self.phase = LoopPhase.IDLE

    @property
    def state(self) -> SessionState:
        return self._state

    async def run(self, task: str, memory: ContextMemory) -> AgentRunResult:
        started = time.monotonic()
        decision = self._router.route(task, self._state)
        if not decision.model:
            raise ModelNotConfiguredError("No model available for this mode. Use /use <model> to set one.")

        memory.add_user(task)
        self._state.reset_iterations()
        run = _RunState(model=decision.model, mode=decision.mode)
        logger.info("agent.run.start mode={} model={} routed={}", run.mode.value, run.model, decision.routed)
        self._set_phase(LoopPhase.THINKING)
        try:
            while run.iterations < self._max_iterations:
                run.iterations = self._state.increment_iterations()
                logger.info("agent.iteration step={} model={}", run.iterations, run.model)
                self._emit("iteration", step=run.iterations, model=run.model)

                response = await self._think(run, memory)
                if response.has_tool_calls:
                    await self._execute_round(run, memory, response)
                    continue

                run.final_text = response.text
                run.finished = True
                memory.add_assistant(response.text)
                break
        finally:
            self._set_phase(LoopPhase.IDLE)

        if not run.finished:
            logger.warning("agent.max_iterations reached={}", self._max_iterations)
            self._emit("warning", message=f"Agent reached maximum iterations ({self._max_iterations}). Stopping.")

        elapsed = time.monotonic() - started
        logger.info("agent.run.end iterations={} elapsed={:.2f}s", run.iterations, elapsed)
        return AgentRunResult(
            text=run.final_text,
            model=run.model,
            mode=run.mode.value,
            iterations=run.iterations,
            elapsed_seconds=elapsed,
            routed=decision.routed,
            max_iterations_reached=not run.finished,
        )

    async def _think(self, run: _RunState, memory: ContextMemory) -> ModelResponse:
        self._set_phase(LoopPhase.THINKING)
        budget = self._state.context_max
        used = memory.token_estimate()
        if used > budget * PRUNE_THRESHOLD:
            self._emit("notice", message=f"Context usage at {used // 1000}K tokens. Pruning older history...")
            memory.prune(PRUNE_KEEP_FRACTION)

        messages = memory.messages()
        last = memory.last_turn()
        if last is not None and last.is_tool_error:
            # Transient: sent with this call only, never stored.
            messages.append(correction_turn(last).to_message())
        self._state.set_context_usage(memory.token_estimate(), budget)

        tools = self._dispatcher.schemas()
        try:
            response = await self._complete(run.model, messages, tools)
        except CapacityError as exc:
            if run.fell_back:
                raise
            substitute = fallback_model(run.mode.value)
            logger.warning("agent.fallback model={} substitute={} reason={}", run.model, substitute, exc.message)
            self._emit(
                "notice",
                message=f"Insufficient credits or rate limited on {run.model}. Switching to {substitute}.",
                model=substitute,
            )
            run.model = substitute
            run.fell_back = True
            response = await self._complete(run.model, messages, tools)

        self._state.add_usage(response.prompt_tokens, response.completion_tokens)
        return response

    async def _complete(self, model: str, messages: list[dict[str, Any]], tools: list[dict[str, Any]]) -> ModelResponse:
        try:
            async with asyncio.timeout(self._call_timeout):
                return await self._provider.stream(
                    model=model,
                    messages=messages,
                    tools=tools or None,
                    on_delta=self._on_delta,
                )
        except TimeoutError as exc:
            raise TransportError(f"model_timeout: no response within {self._call_timeout}s") from exc

    async def _execute_round(self, run: _RunState, memory: ContextMemory, response: ModelResponse) -> None:
        memory.add_assistant(response.text, response.tool_calls)
        self._set_phase(LoopPhase.EXECUTING_TOOLS)

        mutated = False
        for invocation in response.tool_calls:
            if self._dispatcher.mutates_state(invocation.name):
                mutated = True
            self._emit("tool_call", name=invocation.name, arguments=invocation.arguments)
            result = await self._dispatch(invocation)
            self._emit("tool_result", name=invocation.name, success=result.success, attempts=result.attempts)
            memory.add_tool_result(invocation.id, result.content())

        if mutated and Mode.BUILD in (self._state.mode, run.mode):
            await self._verify_build(memory)

    async def _dispatch(self, invocation: ToolInvocation) -> ToolResult:
        max_attempts = MAX_MUTATING_ATTEMPTS if self._dispatcher.mutates_state(invocation.name) else 1
        attempts = 0
        while True:
            attempts += 1
            result = await self._dispatcher.execute(invocation)
            if result.success or attempts >= max_attempts:
                return replace(result, attempts=attempts)
            logger.warning(
                "agent.tool.retry name={} attempt={}/{} error={}",
                invocation.name,
                attempts,
                max_attempts,
                result.error,
            )

    async def _verify_build(self, memory: ContextMemory) -> None:
        if self._test_runner is None:
            return
        outcome = await self._test_runner.run()
        if outcome.success:
            self._emit("notice", message="Tests passed after modification.")
            return
        logger.warning("agent.build.tests_failed command={}", outcome.command)
        self._emit("warning", message="Tests failed after modification. Requesting a fix.")
        memory.add_turn(healing_turn(outcome.output))

    def _set_phase(self, phase: LoopPhase) -> None:
        if phase is self.phase:
            return
        self.phase = phase
        thinking = phase is not LoopPhase.IDLE
        if thinking != self._state.thinking:
            self._state.set_thinking(thinking)
        self._emit("phase", phase=phase.value)

    def _emit(self, kind: str, **payload: Any) -> None:
        if self._on_event is not None:
            self._on_event(LoopEvent(kind, payload))
