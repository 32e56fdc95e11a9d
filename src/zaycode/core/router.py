"""Intent-based model routing."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass

from loguru import logger

from zaycode.core.models import default_model
from zaycode.core.state import Mode, SessionState

PHRASE_MULTIPLIER = 1.5
SHORT_INPUT_WORDS = 6
# Exact score ties resolve to this mode.
TIE_BREAK_MODE = Mode.CODE
DEFAULT_MODE = Mode.REASON


@dataclass(frozen=True)
class Intent:
    """Trigger table row for one mode."""

    mode: Mode
    keywords: tuple[str, ...]
    phrases: tuple[str, ...]
    weight: float


INTENTS: tuple[Intent, ...] = (
    Intent(
        mode=Mode.DEBUG,
        keywords=("debug", "error", "bug", "fix", "crash", "exception", "broken", "segfault", "undefined", "traceback"),
        phrases=("not working", "fix this bug", "why is this broken", "line number", "stack trace", "runtime error"),
        weight=1.5,
    ),
    Intent(
        mode=Mode.OPTIMIZE,
        keywords=("optimize", "performance", "slow", "fast", "complexity", "bottleneck", "latency", "efficient"),
        phrases=("make it faster", "run better", "speed up", "big o"),
        weight=1.4,
    ),
    Intent(
        mode=Mode.DATA,
        keywords=("data", "analysis", "stats", "csv", "json", "explore", "clean", "visualize", "graph", "plot", "statistic"),
        phrases=("analyze this data", "summarize the statistics"),
        weight=1.3,
    ),
    Intent(
        mode=Mode.PLAN,
        keywords=("plan", "architect", "roadmap", "outline", "strategy", "structure", "organize", "architecture"),
        phrases=("how should i", "best approach", "design a system", "module structure", "breakdown the steps"),
        weight=1.3,
    ),
    Intent(
        mode=Mode.REASON,
        keywords=("explain", "why", "compare", "analyze", "understand", "logic", "tradeoff", "consequence"),
        phrases=("difference between", "pros and cons", "what happens if", "how does this work"),
        weight=1.2,
    ),
    Intent(
        mode=Mode.CODE,
        keywords=("write", "create", "build", "implement", "code", "function", "class", "refactor", "component", "api"),
        phrases=("add a feature", "new module", "generate a test", "write a function"),
        weight=1.0,
    ),
)

_AUTHORING_INTENT = next(intent for intent in INTENTS if intent.mode is Mode.CODE)
_WORD_PATTERNS: dict[str, re.Pattern[str]] = {}


@dataclass(frozen=True)
class RouteDecision:
    """Routing outcome for one task."""

    model: str
    mode: Mode
    routed: bool


def _word_pattern(keyword: str) -> re.Pattern[str]:
    pattern = _WORD_PATTERNS.get(keyword)
    if pattern is None:
        pattern = re.compile(rf"\b{re.escape(keyword)}\b", re.IGNORECASE)
        _WORD_PATTERNS[keyword] = pattern
    return pattern


def _has_word(text: str, keyword: str) -> bool:
    return _word_pattern(keyword).search(text) is not None


def score_intents(text: str) -> dict[Mode, float]:
    """Score every mode for one input; unmatched modes score zero."""
    lowered = text.lower()
    scores = {intent.mode: 0.0 for intent in INTENTS}
    for intent in INTENTS:
        for keyword in intent.keywords:
            if _has_word(text, keyword):
                scores[intent.mode] += intent.weight
        for phrase in intent.phrases:
            if phrase in lowered:
                scores[intent.mode] += intent.weight * PHRASE_MULTIPLIER
    return scores


def classify_intent(text: str) -> Mode:
    """Classify free-form task text into an operating mode."""
    if len(text.split()) < SHORT_INPUT_WORDS and not any(
        _has_word(text, keyword) for keyword in _AUTHORING_INTENT.keywords
    ):
        return DEFAULT_MODE

    scores = score_intents(text)
    best = max(scores.values())
    if best <= 0:
        return DEFAULT_MODE

    leaders = [mode for mode, score in scores.items() if score == best]
    if len(leaders) > 1:
        return TIE_BREAK_MODE
    return leaders[0]


class IntentRouter:
    """Resolve ``(model, mode)`` for a task from session state or live classification."""

    def __init__(self, mode_models: Mapping[str, str] | None = None) -> None:
        self._mode_models = dict(mode_models) if mode_models is not None else None

    def model_for(self, mode: Mode | str) -> str:
        value = mode.value if isinstance(mode, Mode) else mode
        return default_model(value, self._mode_models)

    def route(self, text: str, state: SessionState) -> RouteDecision:
        if state.manual_override and state.active_model:
            return RouteDecision(model=state.active_model, mode=state.mode, routed=False)

        if state.mode is not Mode.AUTO:
            return RouteDecision(model=self.model_for(state.mode), mode=state.mode, routed=False)

        detected = classify_intent(text)
        decision = RouteDecision(model=self.model_for(detected), mode=detected, routed=True)
        logger.info("router.classified mode={} model={}", detected.value, decision.model)
        return decision
