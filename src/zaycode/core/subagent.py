"""Stateless sub-agents fanned out concurrently.

Each sub-agent owns a private message list. Concurrent runs share only the
provider and the tool dispatcher, and are joined before aggregation.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Sequence
from typing import Any

from loguru import logger

from zaycode.core.models import CONSENSUS_MODEL, SUBAGENT_MODEL
from zaycode.core.types import ToolResult
from zaycode.provider.client import ChatProvider
from zaycode.tools.registry import READ, SEARCH, VCS, ToolDispatcher

RESEARCH_CATEGORIES = frozenset({READ, SEARCH, VCS})
MAX_SUBAGENT_ROUNDS = 5
DEFAULT_COUNCIL = ("SECURITY", "PERFORMANCE", "ARCHITECT")

PERSONAS: dict[str, str] = {
    "RESEARCHER": "You are a stateless research sub-agent. Goal: deep analysis or search for the main agent.",
    "SECURITY": "You are a senior security auditor. Goal: find vulnerabilities, path traversal or secret leaks in code.",
    "PERFORMANCE": "You are a performance engineer. Goal: identify algorithmic bottlenecks and latency issues.",
    "ARCHITECT": "You are a principal software architect. Goal: ensure structural integrity and design consistency.",
}


class SubAgent:
    """Research agent limited to read-only tools."""

    def __init__(
        self,
        provider: ChatProvider,
        dispatcher: ToolDispatcher,
        *,
        model: str = SUBAGENT_MODEL,
        agent_id: str | None = None,
        max_rounds: int = MAX_SUBAGENT_ROUNDS,
    ) -> None:
        self._provider = provider
        self._dispatcher = dispatcher
        self.model = model
        self.id = agent_id or f"research-{uuid.uuid4().hex[:6]}"
        self._max_rounds = max_rounds

    async def run(
        self,
        task: str,
        context: Sequence[dict[str, Any]] = (),
        persona: str = "RESEARCHER",
    ) -> str:
        system_prompt = PERSONAS.get(persona, PERSONAS["RESEARCHER"])
        messages: list[dict[str, Any]] = [
            {"role": "system", "content": f"{system_prompt}\nProvide a concise, factual report.\nTask: {task}"},
            *context,
            {"role": "user", "content": f"Execute task: {task}"},
        ]
        tools = self._dispatcher.schemas(categories=RESEARCH_CATEGORIES)
        logger.info("subagent.start id={} persona={}", self.id, persona)

        response = await self._provider.stream(model=self.model, messages=messages, tools=tools or None)
        rounds = 0
        while response.has_tool_calls and rounds < self._max_rounds:
            rounds += 1
            messages.append({
                "role": "assistant",
                "content": response.text,
                "tool_calls": [call.to_wire() for call in response.tool_calls],
            })
            for invocation in response.tool_calls:
                descriptor = self._dispatcher.get(invocation.name)
                if descriptor is not None and descriptor.category not in RESEARCH_CATEGORIES:
                    result = ToolResult.fail(f"Tool '{invocation.name}' is not available to research agents")
                else:
                    result = await self._dispatcher.execute(invocation)
                messages.append({"role": "tool", "tool_call_id": invocation.id, "content": result.content()})
            response = await self._provider.stream(model=self.model, messages=messages, tools=tools or None)

        logger.info("subagent.end id={} rounds={}", self.id, rounds)
        return response.text or "No report generated."

    async def spawn_council(self, proposal: str, personas: Sequence[str] = DEFAULT_COUNCIL) -> str:
        """Fan reviews out to persona agents, then synthesize one decision."""
        logger.info("subagent.council.start id={} personas={}", self.id, ",".join(personas))

        async def _review(persona: str) -> str:
            reviewer = self._spawn(f"{persona.lower()}-{self.id}")
            review = await reviewer.run(f"Review this proposal: {proposal}", persona=persona)
            return f"### {persona} Review\n{review}"

        async with asyncio.TaskGroup() as group:
            tasks = [group.create_task(_review(persona)) for persona in personas]
        reviews = [task.result() for task in tasks]
        aggregator = self._spawn(f"aggregator-{self.id}")
        joined = "\n\n".join(reviews)
        return await aggregator.run(
            f"Synthesize these council reviews into a single Go/No-Go decision with a clear executive summary:\n\n{joined}",
            persona="ARCHITECT",
        )

    def _spawn(self, agent_id: str) -> SubAgent:
        return SubAgent(
            self._provider,
            self._dispatcher,
            model=self.model,
            agent_id=agent_id,
            max_rounds=self._max_rounds,
        )


class ReasoningEngine:
    """Independent reasoning paths distilled into one consensus answer."""

    def __init__(self, provider: ChatProvider, *, model: str = CONSENSUS_MODEL, paths: int = 3) -> None:
        self._provider = provider
        self.model = model
        self.paths = paths

    async def aggregate(self, problem: str, context: Sequence[dict[str, Any]] = ()) -> str:
        logger.info("reasoning.start paths={}", self.paths)
        async with asyncio.TaskGroup() as group:
            tasks = [group.create_task(self._single_path(problem, context, index + 1)) for index in range(self.paths)]
        return await self._distill(problem, [task.result() for task in tasks])

    async def _single_path(self, problem: str, context: Sequence[dict[str, Any]], path_id: int) -> str:
        messages = [
            {
                "role": "system",
                "content": (
                    f"You are an independent reasoning unit (#{path_id}).\n"
                    "Solve the problem step by step and challenge your own assumptions.\n"
                    "Do not coordinate with other units."
                ),
            },
            *context,
            {"role": "user", "content": problem},
        ]
        response = await self._provider.stream(model=self.model, messages=messages)
        return response.text

    async def _distill(self, problem: str, answers: list[str]) -> str:
        rendered = "\n\n".join(f"--- PATH {index + 1} ---\n{answer}" for index, answer in enumerate(answers))
        prompt = (
            f'Analyze the following {len(answers)} reasoning paths for the problem: "{problem}"\n\n'
            f"{rendered}\n\n"
            "1. Identify the conclusions all paths share.\n"
            "2. Where paths disagree, identify the logical pivot point.\n"
            "3. Check whether any path relies on incorrect assumptions.\n"
            "4. Construct the most sound and complete answer.\n\n"
            "Output the final consensus answer now:"
        )
        response = await self._provider.stream(model=self.model, messages=[{"role": "user", "content": prompt}])
        return response.text or "Failed to reach logical consensus."
