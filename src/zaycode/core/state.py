"""Explicit session state owned by the agent loop."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from loguru import logger


class Mode(str, Enum):
    """Operating posture governing default model choice."""

    AUTO = "auto"
    CODE = "code"
    REASON = "reason"
    DEBUG = "debug"
    PLAN = "plan"
    OPTIMIZE = "optimize"
    DATA = "data"
    BUILD = "build"

    @classmethod
    def parse(cls, value: str | Mode) -> Mode:
        if isinstance(value, Mode):
            return value
        try:
            return cls(value.strip().lower())
        except ValueError:
            valid = ", ".join(mode.value for mode in cls)
            raise ValueError(f"Invalid mode: {value}. Valid: {valid}") from None


@dataclass(frozen=True)
class StateChange:
    """One observed mutation of session state."""

    key: str
    previous: Any
    current: Any


StateObserver = Callable[[StateChange], None]


@dataclass
class TokenUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


@dataclass
class SessionState:
    """Per-session mutable state with explicit change notifications.

    The override lock implies an active model; clearing the lock clears the model.
    """

    session_id: str = ""
    mode: Mode = Mode.AUTO
    active_model: str | None = None
    manual_override: bool = False
    context_used: int = 0
    context_max: int = 128_000
    thinking: bool = False
    iterations: int = 0
    usage: TokenUsage = field(default_factory=TokenUsage)
    _observers: list[StateObserver] = field(default_factory=list, repr=False, compare=False)

    def subscribe(self, observer: StateObserver) -> Callable[[], None]:
        """Register an observer and return a callable that removes it."""
        self._observers.append(observer)

        def _unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return _unsubscribe

    def set_mode(self, mode: str | Mode) -> None:
        resolved = Mode.parse(mode)
        previous = self.mode
        self.mode = resolved
        if resolved is Mode.AUTO:
            self.clear_model_override()
        self._emit("mode", previous, resolved)

    def set_model(self, model: str) -> None:
        """Lock routing to one model."""
        if not model:
            raise ValueError("Model ID required")
        previous = self.active_model
        self.active_model = model
        self.manual_override = True
        self._emit("active_model", previous, model)

    def clear_model_override(self) -> None:
        previous = self.active_model
        self.active_model = None
        self.manual_override = False
        if previous is not None:
            self._emit("active_model", previous, None)

    def set_thinking(self, value: bool) -> None:
        previous = self.thinking
        self.thinking = value
        self._emit("thinking", previous, value)

    def set_context_usage(self, used: int, maximum: int | None = None) -> None:
        previous = self.context_used
        self.context_used = used
        if maximum:
            self.context_max = maximum
        self._emit("context_used", previous, used)

    def reset_iterations(self) -> None:
        self.iterations = 0

    def increment_iterations(self) -> int:
        self.iterations += 1
        return self.iterations

    def add_usage(self, prompt_tokens: int, completion_tokens: int) -> None:
        self.usage.prompt_tokens += prompt_tokens
        self.usage.completion_tokens += completion_tokens
        self._emit("usage", None, self.usage.total_tokens)

    def _emit(self, key: str, previous: Any, current: Any) -> None:
        change = StateChange(key=key, previous=previous, current=current)
        for observer in list(self._observers):
            try:
                observer(change)
            except Exception:
                logger.opt(exception=True).warning("state.observer.error key={}", key)
