"""zaycode - autonomous coding agent."""

from .core import AgentLoop, IntentRouter, SessionState
from .memory import ContextMemory
from .tools import ToolDispatcher

__version__ = "0.1.0"

__all__ = ["AgentLoop", "ContextMemory", "IntentRouter", "SessionState", "ToolDispatcher"]
