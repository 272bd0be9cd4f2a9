"""Core data models for Agent Bridge."""

from .conversation import CancellationToken, Conversation, Turn
from .events import (
    AgentEvent,
    TextDelta,
    ToolEnd,
    ToolResult,
    ToolStart,
    TurnError,
    TurnResult,
    Usage,
    is_terminal,
)
from .messages import InboundTrigger
from .tracing import TraceEvent

__all__ = [
    # Events
    "AgentEvent",
    "ToolStart",
    "ToolEnd",
    "ToolResult",
    "TextDelta",
    "TurnResult",
    "TurnError",
    "Usage",
    "is_terminal",
    # Conversation
    "CancellationToken",
    "Conversation",
    "Turn",
    # Messages
    "InboundTrigger",
    # Tracing
    "TraceEvent",
]
