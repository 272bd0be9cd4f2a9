"""Tests for CodexEventNormalizer."""

import json

from agent_bridge.models import (
    CancellationToken,
    ToolEnd,
    ToolResult,
    ToolStart,
    TurnError,
    TurnResult,
    Usage,
)
from agent_bridge.providers.codex import (
    COMMAND_TOOL_NAME,
    FILE_CHANGE_TOOL_NAME,
    REASONING_TOOL_NAME,
    CodexEventNormalizer,
)


async def feed(*events, error: Exception | None = None):
    for event in events:
        yield event
    if error is not None:
        raise error


async def collect(normalizer, *events, error=None):
    return [e async for e in normalizer.normalize(feed(*events, error=error))]


def thread(thread_id="T1"):
    return {"type": "thread.started", "thread_id": thread_id}


def started(item):
    return {"type": "item.started", "item": item}


def completed(item):
    return {"type": "item.completed", "item": item}


def turn_completed(input_tokens=12, output_tokens=4):
    return {
        "type": "turn.completed",
        "usage": {"input_tokens": input_tokens, "output_tokens": output_tokens},
    }


class TestCommandItems:
    """Tests for command_execution items."""

    async def test_command_start_end_and_output(self):
        """A command collapses to the shell display name with its output."""
        item = {"id": "i1", "type": "command_execution", "command": "ls -la"}
        events = await collect(
            CodexEventNormalizer(),
            thread(),
            started(item),
            completed({**item, "aggregated_output": "total 0"}),
            turn_completed(),
        )

        assert events[:3] == [
            ToolStart(COMMAND_TOOL_NAME),
            ToolEnd(COMMAND_TOOL_NAME, json.dumps({"command": "ls -la"})),
            ToolResult("total 0"),
        ]
        assert events[3] == TurnResult("", "T1", Usage(12, 4))

    async def test_empty_output_has_no_tool_result(self):
        item = {"id": "i1", "type": "command_execution", "command": "true"}
        events = await collect(
            CodexEventNormalizer(), started(item), completed(item), turn_completed()
        )
        assert [type(e) for e in events] == [ToolStart, ToolEnd, TurnResult]

    async def test_completion_without_start_synthesizes_start(self):
        """Pairing holds even when item.started was never seen."""
        events = await collect(
            CodexEventNormalizer(),
            completed({"id": "i9", "type": "command_execution", "command": "pwd"}),
            turn_completed(),
        )
        assert events[0] == ToolStart(COMMAND_TOOL_NAME)
        assert isinstance(events[1], ToolEnd)


class TestFileChanges:
    """Tests for file_change items."""

    async def test_file_change_uses_change_paths_and_diff(self):
        item = {"id": "f1", "type": "file_change"}
        events = await collect(
            CodexEventNormalizer(),
            started(item),
            completed(
                {
                    **item,
                    "changes": [{"path": "src/a.py", "kind": "update"}],
                    "diff": "-a\n+b",
                }
            ),
            turn_completed(),
        )

        assert events[0] == ToolStart(FILE_CHANGE_TOOL_NAME)
        assert events[1] == ToolEnd(
            FILE_CHANGE_TOOL_NAME, json.dumps({"file_path": "src/a.py"})
        )
        assert events[2] == ToolResult("-a\n+b")


class TestReasoningAndMessages:
    """Tests for reasoning and agent_message items."""

    async def test_reasoning_is_a_paired_tool_without_result(self):
        events = await collect(
            CodexEventNormalizer(),
            completed({"id": "r1", "type": "reasoning", "text": "think first"}),
            completed({"id": "r2", "type": "reasoning", "text": ""}),
            turn_completed(),
        )
        assert events[:2] == [
            ToolStart(REASONING_TOOL_NAME),
            ToolEnd(REASONING_TOOL_NAME, json.dumps({"reasoning": "think first"})),
        ]
        assert isinstance(events[2], TurnResult)

    async def test_last_agent_message_wins(self):
        """Later agent messages supersede earlier ones."""
        events = await collect(
            CodexEventNormalizer(),
            thread("T2"),
            completed({"id": "a1", "type": "agent_message", "text": "draft"}),
            completed({"id": "a2", "type": "agent_message", "text": "final"}),
            turn_completed(),
        )
        assert events == [TurnResult("final", "T2", Usage(12, 4))]

    async def test_resume_token_kept_without_thread_event(self):
        events = await collect(CodexEventNormalizer(resume_token="T0"), turn_completed())
        assert events[0].session_token == "T0"


class TestFailures:
    """Tests for failure mapping."""

    async def test_turn_failed_message(self):
        events = await collect(
            CodexEventNormalizer(),
            {"type": "turn.failed", "error": {"message": "rate limited"}},
        )
        assert events == [TurnError("rate limited")]

    async def test_error_event_message_used_when_turn_fails_bare(self):
        """The most specific message available is reported."""
        events = await collect(
            CodexEventNormalizer(),
            {"type": "error", "message": "stream disconnected"},
            {"type": "turn.failed"},
        )
        assert events == [TurnError("stream disconnected")]

    async def test_bare_turn_failed_uses_default(self):
        events = await collect(CodexEventNormalizer(), {"type": "turn.failed"})
        assert events == [TurnError("Processing failed")]

    async def test_open_items_closed_on_failure(self):
        events = await collect(
            CodexEventNormalizer(),
            started({"id": "i1", "type": "command_execution", "command": "sleep 9"}),
            {"type": "turn.failed", "error": {"message": "killed"}},
        )
        assert events == [
            ToolStart(COMMAND_TOOL_NAME),
            ToolEnd(COMMAND_TOOL_NAME, ""),
            TurnError("killed"),
        ]

    async def test_process_error_prefers_pending_error(self):
        events = await collect(
            CodexEventNormalizer(),
            {"type": "error", "message": "auth expired"},
            error=RuntimeError("codex exited with code 1"),
        )
        assert events == [TurnError("auth expired")]

    async def test_stream_end_without_turn_is_an_error(self):
        events = await collect(CodexEventNormalizer(), thread())
        assert events == [TurnError("Codex stream ended without a result")]

    async def test_cancelled_stream_yields_nothing_more(self):
        token = CancellationToken()
        token.cancel()
        events = await collect(
            CodexEventNormalizer(cancel_token=token), thread(), turn_completed()
        )
        assert events == []
