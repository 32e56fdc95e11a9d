"""Core agent loop, routing and session state."""

from .agent_loop import AgentLoop, LoopEvent, LoopPhase
from .router import IntentRouter, RouteDecision, classify_intent
from .state import Mode, SessionState, StateChange
from .types import AgentRunResult, ConversationTurn, ModelResponse, ToolInvocation, ToolResult

__all__ = [
    "AgentLoop",
    "AgentRunResult",
    "ConversationTurn",
    "IntentRouter",
    "LoopEvent",
    "LoopPhase",
    "Mode",
    "ModelResponse",
    "RouteDecision",
    "SessionState",
    "StateChange",
    "ToolInvocation",
    "ToolResult",
    "classify_intent",
]
