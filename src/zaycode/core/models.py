"""Mode-to-model defaults and capacity fallbacks."""

from __future__ import annotations

from collections.abc import Mapping

MODE_DEFAULTS: dict[str, str] = {
    "auto": "openai/gpt-4.1-mini",
    "code": "qwen/qwen3-coder",
    "reason": "deepseek/deepseek-chat",
    "debug": "openai/gpt-4.1-mini",
    "plan": "anthropic/claude-sonnet-4",
    "optimize": "qwen/qwen3-coder",
    "data": "deepseek/deepseek-chat",
    "build": "qwen/qwen3-coder",
}

DEFAULT_FALLBACK_MODEL = "mistralai/mistral-small-3.1-24b-instruct:free"
FALLBACK_MODELS: dict[str, str] = {
    "code": "qwen/qwen3-coder:free",
    "build": "qwen/qwen3-coder:free",
    "optimize": "qwen/qwen3-coder:free",
    "plan": "meta-llama/llama-3.3-70b-instruct:free",
    "reason": "meta-llama/llama-3.3-70b-instruct:free",
}

SUBAGENT_MODEL = "meta-llama/llama-3.3-70b-instruct:free"
CONSENSUS_MODEL = "anthropic/claude-sonnet-4"


def default_model(mode: str, table: Mapping[str, str] | None = None) -> str:
    """Resolve the default model for a mode, falling back to the auto entry."""
    models = MODE_DEFAULTS if table is None else table
    return models.get(mode) or models.get("auto") or MODE_DEFAULTS["auto"]


def fallback_model(mode: str) -> str:
    """Model substituted when the primary one is refused for capacity reasons."""
    return FALLBACK_MODELS.get(mode, DEFAULT_FALLBACK_MODEL)
