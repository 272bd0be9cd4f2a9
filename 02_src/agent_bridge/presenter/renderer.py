"""Collapses a turn's normalized events into a card body."""

from ..models import (
    AgentEvent,
    TextDelta,
    ToolEnd,
    ToolResult,
    ToolStart,
    TurnError,
    TurnResult,
    Usage,
)
from .formatter import format_tool_end, format_tool_result, format_tool_start, format_usage

PROCESSING_STATUS = "🔄 Processing..."
RUNNING_STATUS = "🔄 Running..."
WAITING_STATUS = "🔄 Waiting for result..."
CONTINUING_STATUS = "🔄 Continuing..."
STOPPED_MARKER = "\n⏹️ **Stopped by user**"
EMPTY_RESPONSE = "(no response)"
TOOL_SEPARATOR = "---"


class TurnRenderer:
    """Accumulates rendered fragments for one turn."""

    def __init__(self) -> None:
        self._chunks: list[str] = []
        self.result_content = ""
        self.usage: Usage | None = None
        self.stopped = False

    @property
    def chunks(self) -> list[str]:
        return list(self._chunks)

    def apply(self, event: AgentEvent) -> str | None:
        """Fold one event in.

        Returns the status line for an intermediate card update, or None when
        the event does not warrant one.
        """
        if isinstance(event, ToolStart):
            self._chunks.append(format_tool_start(event.tool_name))
            return RUNNING_STATUS
        if isinstance(event, ToolEnd):
            self._chunks.append(format_tool_end(event.tool_name, event.tool_input))
            return WAITING_STATUS
        if isinstance(event, ToolResult):
            if event.output:
                self._chunks.append(format_tool_result(event.output))
            self._chunks.append(TOOL_SEPARATOR)
            return CONTINUING_STATUS
        if isinstance(event, TurnResult):
            if event.content:
                self.result_content = event.content
                if event.is_error:
                    self._chunks.append(f"\n❌ **Error:** {event.content}")
                else:
                    self._chunks.append("\n" + event.content)
            self.usage = event.usage
            return None
        if isinstance(event, TurnError):
            self._chunks.append(f"\n❌ **Error:** {event.message}")
            return None
        if isinstance(event, TextDelta):
            # the terminal result carries the full text
            return None
        return None

    def mark_stopped(self) -> None:
        if not self.stopped:
            self.stopped = True
            self._chunks.append(STOPPED_MARKER)

    def render(self, status: str | None = None) -> str:
        """Body for an intermediate update."""
        body = "\n".join(self._chunks)
        if status:
            body += f"\n\n{status}"
        return body

    def render_final(self) -> str:
        """Body for the terminal update, with usage footer."""
        body = "\n".join(self._chunks) or EMPTY_RESPONSE
        if self.usage:
            body += format_usage(self.usage)
        return body
