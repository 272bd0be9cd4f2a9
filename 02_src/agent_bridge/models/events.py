"""Normalized agent event models.

Every backend stream is translated into this vocabulary. Everything above it
(orchestrator, renderer) is backend-agnostic.
"""

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class Usage:
    """Token and cost figures reported at the end of a turn."""

    input_tokens: int
    output_tokens: int
    context_window: int | None = None
    cost_usd: float | None = None

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass(frozen=True)
class ToolStart:
    """A tool call was opened."""

    tool_name: str


@dataclass(frozen=True)
class ToolEnd:
    """The open tool call finished streaming its input (raw JSON text)."""

    tool_name: str
    tool_input: str = ""


@dataclass(frozen=True)
class ToolResult:
    """Output of an executed tool."""

    output: str


@dataclass(frozen=True)
class TextDelta:
    """Incremental assistant text."""

    content: str


@dataclass(frozen=True)
class TurnResult:
    """Terminal event of a turn, successful or not."""

    content: str
    session_token: str | None = None
    usage: Usage | None = None
    is_error: bool = False


@dataclass(frozen=True)
class TurnError:
    """Terminal event of a turn that failed before producing a result."""

    message: str


AgentEvent = Union[ToolStart, ToolEnd, ToolResult, TextDelta, TurnResult, TurnError]

TERMINAL_EVENTS = (TurnResult, TurnError)


def is_terminal(event: AgentEvent) -> bool:
    """Return True for events that end a turn."""
    return isinstance(event, TERMINAL_EVENTS)
