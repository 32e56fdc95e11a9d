"""Tool registry and dispatcher."""

from __future__ import annotations

import builtins
import inspect
import json
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from loguru import logger
from pydantic import BaseModel, ValidationError

from zaycode.core.types import ToolInvocation, ToolResult
from zaycode.errors import ToolExecutionError, ToolUnknownError

ToolHandler = Callable[[dict[str, Any]], Any | Awaitable[Any]]

READ = "read"
WRITE = "write"
SHELL = "shell"
VCS = "vcs"
SEARCH = "search"
META = "meta"
STATE_MUTATING_CATEGORIES = frozenset({WRITE, SHELL})
MAX_LISTED_TOOL_NAMES = 20


def _shorten_text(text: str, width: int = 30, placeholder: str = "...") -> str:
    """Shorten text to width characters, cutting in the middle of words if needed."""
    if len(text) <= width:
        return text

    available = width - len(placeholder)
    if available <= 0:
        return placeholder

    return text[:available] + placeholder


def _model_schema(model: type[BaseModel]) -> dict[str, Any]:
    schema = model.model_json_schema()
    schema.pop("title", None)
    return schema


def _validated(model: type[BaseModel], func: Callable[..., Any]) -> ToolHandler:
    def _handler(arguments: dict[str, Any]) -> Any:
        try:
            params = model.model_validate(arguments)
        except ValidationError as exc:
            raise ToolExecutionError(f"invalid arguments: {exc.errors(include_url=False)}") from exc
        return func(params)

    return _handler


@dataclass(frozen=True)
class ToolDescriptor:
    """Tool metadata and runtime handle."""

    name: str
    description: str
    handler: ToolHandler
    parameters: dict[str, Any] = field(default_factory=lambda: {"type": "object", "properties": {}})
    category: str = READ
    source: str = "builtin"

    @property
    def mutates_state(self) -> bool:
        return self.category in STATE_MUTATING_CATEGORIES

    def schema(self) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


class ToolDispatcher:
    """Name-to-handler registry that maps one invocation to one result.

    Registration happens during initialization or through the explicit
    plugin operation. ``execute`` never raises and never retries.
    """

    def __init__(self) -> None:
        self._tools: dict[str, ToolDescriptor] = {}

    def register(
        self,
        name: str,
        *,
        description: str = "",
        parameters: dict[str, Any] | None = None,
        model: type[BaseModel] | None = None,
        category: str = READ,
        source: str = "builtin",
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorator registering a handler under ``name``.

        With ``model`` the handler receives a validated instance of it and the
        JSON schema is derived from the model.
        """

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            handler: ToolHandler = func
            schema = parameters
            if model is not None:
                handler = _validated(model, func)
                schema = schema or _model_schema(model)
            self.add(
                ToolDescriptor(
                    name=name,
                    description=description or (inspect.getdoc(func) or name),
                    handler=handler,
                    parameters=schema or {"type": "object", "properties": {}},
                    category=category,
                    source=source,
                )
            )
            return func

        return decorator

    def add(self, descriptor: ToolDescriptor) -> None:
        if not callable(descriptor.handler):
            raise TypeError(f"Tool handler for '{descriptor.name}' must be callable")
        previous = self._tools.get(descriptor.name)
        if previous is not None:
            # Replacement is allowed so plugins can override built-ins.
            logger.warning(
                "tool.replaced name={} previous_source={} source={}",
                descriptor.name,
                previous.source,
                descriptor.source,
            )
        self._tools[descriptor.name] = descriptor

    def register_plugin_tool(
        self,
        name: str,
        handler: ToolHandler,
        *,
        description: str = "",
        parameters: dict[str, Any] | None = None,
        category: str = META,
        plugin: str = "plugin",
    ) -> ToolDescriptor:
        """Register a tool after initialization, flagged as a plugin addition."""
        descriptor = ToolDescriptor(
            name=name,
            description=description or name,
            handler=handler,
            parameters=parameters or {"type": "object", "properties": {}},
            category=category,
            source=f"plugin:{plugin}",
        )
        self.add(descriptor)
        logger.info("tool.plugin_registered name={} plugin={}", name, plugin)
        return descriptor

    def has(self, name: str) -> bool:
        return name in self._tools

    def get(self, name: str) -> ToolDescriptor | None:
        return self._tools.get(name)

    def names(self) -> builtins.list[str]:
        return list(self._tools)

    def descriptors(self) -> builtins.list[ToolDescriptor]:
        return sorted(self._tools.values(), key=lambda item: item.name)

    def schemas(self, *, categories: frozenset[str] | None = None) -> builtins.list[dict[str, Any]]:
        return [
            descriptor.schema()
            for descriptor in self.descriptors()
            if categories is None or descriptor.category in categories
        ]

    def mutates_state(self, name: str) -> bool:
        descriptor = self.get(name)
        return descriptor is not None and descriptor.mutates_state

    async def execute(self, invocation: ToolInvocation) -> ToolResult:
        try:
            result = await self._run(invocation)
        except ToolUnknownError as exc:
            return ToolResult.fail(str(exc))
        except ToolExecutionError as exc:
            return ToolResult.fail(f"Tool '{invocation.name}' failed: {exc}")
        except Exception as exc:
            logger.opt(exception=True).warning("tool.call.error name={}", invocation.name)
            return ToolResult.fail(f"Tool '{invocation.name}' failed: {exc!s}")
        return ToolResult.ok(result)

    async def _run(self, invocation: ToolInvocation) -> Any:
        descriptor = self.get(invocation.name)
        if descriptor is None:
            raise ToolUnknownError(self._unknown_message(invocation.name))
        if invocation.malformed:
            raise ToolExecutionError(f"arguments are not a valid JSON object: {invocation.raw_arguments!r}")

        self._log_tool_call(invocation.name, invocation.arguments)
        start = time.monotonic()
        try:
            result = descriptor.handler(dict(invocation.arguments))
            if inspect.isawaitable(result):
                result = await result
            return result
        finally:
            duration = time.monotonic() - start
            logger.info("tool.call.end name={} duration={:.3f}ms", invocation.name, duration * 1000)

    def _unknown_message(self, name: str) -> str:
        known = sorted(self._tools)
        listed = ", ".join(known[:MAX_LISTED_TOOL_NAMES])
        if len(known) > MAX_LISTED_TOOL_NAMES:
            listed += f", ...(+{len(known) - MAX_LISTED_TOOL_NAMES} more)"
        return f"Unknown tool: {name}. Available tools: {listed or '(none)'}"

    def _log_tool_call(self, name: str, kwargs: Mapping[str, Any]) -> None:
        params: list[str] = []
        for key, value in kwargs.items():
            try:
                rendered = json.dumps(value, ensure_ascii=False)
            except TypeError:
                rendered = repr(value)
            params.append(f"{key}={_shorten_text(rendered, width=30, placeholder='...')}")
        logger.info("tool.call.start name={} {{ {} }}", name, ", ".join(params))
