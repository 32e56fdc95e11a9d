"""Shared core dataclasses."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Literal

Role = Literal["user", "assistant", "tool"]
ERROR_MARKER = "Error:"


@dataclass(frozen=True)
class ToolInvocation:
    """One structured request from the model to run a named tool."""

    name: str
    arguments: dict[str, Any]
    id: str
    # Original argument text when it was not a JSON object.
    raw_arguments: str | None = None

    @property
    def malformed(self) -> bool:
        return self.raw_arguments is not None

    def to_wire(self) -> dict[str, Any]:
        arguments = self.raw_arguments
        if arguments is None:
            arguments = json.dumps(self.arguments, ensure_ascii=False)
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": arguments},
        }

    @classmethod
    def from_wire(cls, call: dict[str, Any], index: int = 0) -> ToolInvocation:
        function = call.get("function")
        if not isinstance(function, dict):
            function = {}
        name = function.get("name")
        call_id = call.get("id")
        arguments, raw = parse_arguments(function.get("arguments"))
        return cls(
            name=name if isinstance(name, str) else "",
            arguments=arguments,
            id=call_id if isinstance(call_id, str) and call_id else f"call_{index}",
            raw_arguments=raw,
        )


def parse_arguments(arguments: object) -> tuple[dict[str, Any], str | None]:
    """Decode provider argument text into a mapping.

    Returns the mapping plus the original text when it could not be decoded.
    """
    if isinstance(arguments, dict):
        return dict(arguments), None
    if arguments is None:
        return {}, None
    if not isinstance(arguments, str):
        return {}, str(arguments)
    raw = arguments.strip()
    if not raw:
        return {}, None
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return {}, arguments
    if not isinstance(parsed, dict):
        return {}, arguments
    return parsed, None


@dataclass(frozen=True)
class ToolResult:
    """Normalized outcome of one tool dispatch."""

    success: bool
    result: Any = None
    error: str | None = None
    attempts: int = 1

    @classmethod
    def ok(cls, result: Any) -> ToolResult:
        return cls(success=True, result=result)

    @classmethod
    def fail(cls, error: str) -> ToolResult:
        return cls(success=False, error=error)

    def content(self) -> str:
        """Render the result as tool turn text."""
        if not self.success:
            return f"{ERROR_MARKER} {self.error}"
        if isinstance(self.result, str):
            return self.result
        return json.dumps(self.result, ensure_ascii=False, default=str)


@dataclass
class ConversationTurn:
    """One message in the conversation."""

    role: Role
    content: str
    tool_calls: list[ToolInvocation] = field(default_factory=list)
    tool_call_id: str | None = None

    @property
    def is_tool_error(self) -> bool:
        return self.role == "tool" and self.content.startswith(ERROR_MARKER)

    def to_message(self) -> dict[str, Any]:
        message: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            message["tool_calls"] = [call.to_wire() for call in self.tool_calls]
        if self.tool_call_id is not None:
            message["tool_call_id"] = self.tool_call_id
        return message

    @classmethod
    def from_message(cls, payload: object) -> ConversationTurn | None:
        if not isinstance(payload, dict):
            return None
        role = payload.get("role")
        if role not in ("user", "assistant", "tool"):
            return None
        content = payload.get("content")
        calls = payload.get("tool_calls")
        tool_call_id = payload.get("tool_call_id")
        return cls(
            role=role,
            content=content if isinstance(content, str) else "",
            tool_calls=[
                ToolInvocation.from_wire(call, idx)
                for idx, call in enumerate(calls if isinstance(calls, list) else [])
                if isinstance(call, dict)
            ],
            tool_call_id=tool_call_id if isinstance(tool_call_id, str) else None,
        )

    def char_weight(self) -> int:
        weight = len(self.content)
        if self.tool_calls:
            weight += len(json.dumps([call.to_wire() for call in self.tool_calls], ensure_ascii=False))
        return weight


@dataclass(frozen=True)
class ModelResponse:
    """Fully accumulated provider response."""

    text: str
    tool_calls: list[ToolInvocation] = field(default_factory=list)
    prompt_tokens: int = 0
    completion_tokens: int = 0
    completed: bool = True

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)


@dataclass(frozen=True)
class AgentRunResult:
    """Output of one agent run."""

    text: str
    model: str
    mode: str
    iterations: int
    elapsed_seconds: float
    routed: bool = False
    max_iterations_reached: bool = False
