"""Tool registry and collaborators."""

from .registry import STATE_MUTATING_CATEGORIES, ToolDescriptor, ToolDispatcher

__all__ = ["STATE_MUTATING_CATEGORIES", "ToolDescriptor", "ToolDispatcher"]
