"""Claude Code backend: claude-agent-sdk message stream -> normalized events."""

import json
from contextlib import aclosing
from typing import Any, AsyncIterable, AsyncIterator, Callable, Iterator, Mapping

from ..logging_config import get_logger, log_detail
from ..models import (
    AgentEvent,
    CancellationToken,
    TextDelta,
    ToolEnd,
    ToolResult,
    ToolStart,
    TurnError,
    TurnResult,
    Usage,
)
from .base import ProviderCapabilities, field_of

logger = get_logger(__name__)

PROVIDER_NAME = "claude"
GENERIC_FAILURE = "Execution failed"

# SDK message classes and their wire-format "type" values
_MESSAGE_KINDS = {
    "SystemMessage": "system",
    "StreamEvent": "stream_event",
    "AssistantMessage": "assistant",
    "UserMessage": "user",
    "ResultMessage": "result",
}
_BLOCK_KINDS = {
    "TextBlock": "text",
    "ThinkingBlock": "thinking",
    "ToolUseBlock": "tool_use",
    "ToolResultBlock": "tool_result",
}


def _kind(obj: Any, table: dict[str, str]) -> str | None:
    if isinstance(obj, Mapping):
        return obj.get("type")
    return table.get(type(obj).__name__)


def _number(stats: Any, *names: str) -> float | None:
    for name in names:
        value = field_of(stats, name)
        if value is not None:
            return value
    return None


class ClaudeEventNormalizer:
    """Translates one turn of Claude agent messages into AgentEvents.

    Tracks the single open tool call: a tool_use content block opens it,
    input_json_delta fragments accumulate silently, and content_block_stop
    closes it with the buffered raw JSON.
    """

    def __init__(
        self,
        resume_token: str | None = None,
        cancel_token: CancellationToken | None = None,
    ):
        self._resume_token = resume_token
        self._cancel_token = cancel_token
        self._session_id: str | None = None
        self._current_tool: str | None = None
        self._tool_input: list[str] = []

    async def normalize(self, messages: AsyncIterable[Any]) -> AsyncIterator[AgentEvent]:
        """Yield normalized events; never raises."""
        try:
            async for message in messages:
                if self._cancel_token is not None and self._cancel_token.cancelled:
                    log_detail(PROVIDER_NAME, "aborted", {"reason": "cancel token signalled"})
                    return

                kind = _kind(message, _MESSAGE_KINDS)
                log_detail(PROVIDER_NAME, kind or type(message).__name__, message)

                if kind == "system":
                    self._on_system(message)
                elif kind == "stream_event":
                    for event in self._on_stream_event(message):
                        yield event
                elif kind in ("assistant", "user"):
                    for event in self._on_content(message):
                        yield event
                elif kind == "result":
                    for event in self._close_open_tool():
                        yield event
                    yield self._on_result(message)
                    return
        except Exception as e:
            logger.error(f"Claude stream failed: {e}", exc_info=True)
            log_detail(PROVIDER_NAME, "error", {"message": str(e)})
            for event in self._close_open_tool():
                yield event
            yield TurnError(str(e) or type(e).__name__)
            return

        for event in self._close_open_tool():
            yield event
        yield TurnError("Claude stream ended without a result")

    def _on_system(self, message: Any) -> None:
        if field_of(message, "subtype") != "init":
            return
        session_id = field_of(message, "session_id") or field_of(
            field_of(message, "data"), "session_id"
        )
        if session_id:
            self._session_id = session_id
            logger.info(f"Claude session initialized: {session_id}")

    def _on_stream_event(self, message: Any) -> Iterator[AgentEvent]:
        event = field_of(message, "event")
        if not event:
            return
        event_type = field_of(event, "type")

        if event_type == "content_block_start":
            block = field_of(event, "content_block")
            if _kind(block, _BLOCK_KINDS) == "tool_use":
                yield from self._close_open_tool()
                self._current_tool = field_of(block, "name") or "unknown"
                self._tool_input = []
                yield ToolStart(self._current_tool)

        elif event_type == "content_block_delta":
            delta = field_of(event, "delta")
            delta_type = field_of(delta, "type")
            if delta_type == "input_json_delta" and self._current_tool:
                self._tool_input.append(field_of(delta, "partial_json") or "")
            elif delta_type == "text_delta":
                text = field_of(delta, "text")
                if text:
                    yield TextDelta(text)

        elif event_type == "content_block_stop":
            yield from self._close_open_tool()

    def _on_content(self, message: Any) -> Iterator[AgentEvent]:
        content = field_of(message, "content")
        if content is None:
            content = field_of(field_of(message, "message"), "content")
        if not isinstance(content, list):
            return

        for block in content:
            if _kind(block, _BLOCK_KINDS) != "tool_result":
                continue
            payload = field_of(block, "content")
            if payload is None:
                output = ""
            elif isinstance(payload, str):
                output = payload
            else:
                output = json.dumps(payload, ensure_ascii=False, default=str)
            yield ToolResult(output)

    def _on_result(self, message: Any) -> TurnResult:
        success = field_of(message, "subtype") == "success"
        if success:
            content = field_of(message, "result") or ""
        else:
            errors = field_of(message, "errors")
            content = (
                field_of(message, "error")
                or ("; ".join(str(e) for e in errors) if errors else "")
                or GENERIC_FAILURE
            )

        session_token = (
            self._session_id or field_of(message, "session_id") or self._resume_token
        )
        return TurnResult(
            content=content,
            session_token=session_token,
            usage=self._aggregate_usage(message),
            is_error=not success or bool(field_of(message, "is_error")),
        )

    def _aggregate_usage(self, message: Any) -> Usage | None:
        model_usage = field_of(message, "modelUsage") or field_of(message, "model_usage")
        if isinstance(model_usage, Mapping) and model_usage:
            input_tokens = 0
            output_tokens = 0
            cost = 0.0
            cost_reported = False
            context_window: int | None = None
            for stats in model_usage.values():
                input_tokens += int(_number(stats, "inputTokens", "input_tokens") or 0)
                output_tokens += int(_number(stats, "outputTokens", "output_tokens") or 0)
                model_cost = _number(stats, "costUSD", "cost_usd")
                if model_cost is not None:
                    cost += model_cost
                    cost_reported = True
                window = _number(stats, "contextWindow", "context_window")
                if window and (context_window is None or window > context_window):
                    context_window = int(window)
            return Usage(
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                context_window=context_window,
                cost_usd=cost if cost_reported else None,
            )

        usage = field_of(message, "usage")
        if usage:
            return Usage(
                input_tokens=int(field_of(usage, "input_tokens", 0) or 0),
                output_tokens=int(field_of(usage, "output_tokens", 0) or 0),
                cost_usd=field_of(message, "total_cost_usd"),
            )
        return None

    def _close_open_tool(self) -> Iterator[AgentEvent]:
        if self._current_tool is None:
            return
        tool_name = self._current_tool
        tool_input = "".join(self._tool_input)
        self._current_tool = None
        self._tool_input = []
        yield ToolEnd(tool_name, tool_input)


async def _streaming_prompt(prompt: str) -> AsyncIterator[dict]:
    # In-process MCP tools require streaming input mode
    yield {
        "type": "user",
        "message": {"role": "user", "content": prompt},
        "parent_tool_use_id": None,
    }


class ClaudeCodeProvider:
    """Runs turns through claude-agent-sdk's query()."""

    name = PROVIDER_NAME
    display_name = "Claude Code"

    def __init__(
        self,
        query_fn: Callable[..., AsyncIterator[Any]] | None = None,
        permission_mode: str = "bypassPermissions",
        setting_sources: tuple[str, ...] = ("project", "user"),
    ):
        self._query_fn = query_fn
        self._permission_mode = permission_mode
        self._setting_sources = list(setting_sources)

    async def stream(
        self,
        prompt: str,
        resume_token: str | None,
        capabilities: ProviderCapabilities,
    ) -> AsyncIterator[AgentEvent]:
        normalizer = ClaudeEventNormalizer(resume_token, capabilities.cancel_token)
        messages = self._query(prompt, resume_token, capabilities)
        async with aclosing(messages):
            async for event in normalizer.normalize(messages):
                yield event

    async def _query(
        self,
        prompt: str,
        resume_token: str | None,
        capabilities: ProviderCapabilities,
    ) -> AsyncIterator[Any]:
        # Imported lazily: the SDK is only needed when this provider is selected
        from claude_agent_sdk import ClaudeAgentOptions, query

        query_fn = self._query_fn or query
        mcp_servers = self._mcp_servers(capabilities)

        options = ClaudeAgentOptions(
            cwd=capabilities.workspace,
            include_partial_messages=True,
            permission_mode=self._permission_mode,
            setting_sources=self._setting_sources,
            resume=resume_token,
            mcp_servers=mcp_servers or {},
        )

        if resume_token:
            logger.info(f"Resuming Claude session {resume_token}")
        else:
            logger.info("Starting new Claude session")

        prompt_input: Any = _streaming_prompt(prompt) if mcp_servers else prompt
        async with aclosing(query_fn(prompt=prompt_input, options=options)) as sdk_messages:
            async for message in sdk_messages:
                yield message

    @staticmethod
    def _mcp_servers(capabilities: ProviderCapabilities) -> dict[str, Any]:
        if capabilities.file_sender is None or not capabilities.conversation_key:
            return {}
        from .file_tools import FILE_TOOLS_SERVER_NAME, create_file_tools_server

        server = create_file_tools_server(
            capabilities.file_sender, capabilities.conversation_key
        )
        return {FILE_TOOLS_SERVER_NAME: server}
