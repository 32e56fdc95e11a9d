"""Conversation memory helpers."""

from .context import CHARS_PER_TOKEN, ContextMemory
from .store import HistoryStore

__all__ = ["CHARS_PER_TOKEN", "ContextMemory", "HistoryStore"]
