"""Codex backend: `codex exec --json` thread/turn events -> normalized events."""

import asyncio
import json
from contextlib import aclosing
from typing import Any, AsyncIterable, AsyncIterator, Iterator

from ..logging_config import get_logger, log_detail
from ..models import (
    AgentEvent,
    CancellationToken,
    ToolEnd,
    ToolResult,
    ToolStart,
    TurnError,
    TurnResult,
    Usage,
)
from .base import ProviderCapabilities, field_of

logger = get_logger(__name__)

PROVIDER_NAME = "codex"

# Codex has no per-tool identity: every shell run and every edit collapses
# into one display name each.
COMMAND_TOOL_NAME = "Bash"
FILE_CHANGE_TOOL_NAME = "Edit"
REASONING_TOOL_NAME = "Reasoning"

_TOOL_ITEM_NAMES = {
    "command_execution": COMMAND_TOOL_NAME,
    "file_change": FILE_CHANGE_TOOL_NAME,
}

_STDERR_TAIL_CHARS = 2000

# One JSON line carries a whole item, including full command output and diffs
_STDOUT_LINE_LIMIT = 64 * 1024 * 1024


class CodexProcessError(RuntimeError):
    """The Codex CLI exited abnormally."""


class CodexEventNormalizer:
    """Translates one turn of Codex thread events into AgentEvents."""

    def __init__(
        self,
        resume_token: str | None = None,
        cancel_token: CancellationToken | None = None,
    ):
        self._resume_token = resume_token
        self._cancel_token = cancel_token
        self._thread_id: str | None = None
        self._agent_messages: list[str] = []
        self._open_items: dict[str, str] = {}
        self._pending_error: str | None = None

    async def normalize(self, events: AsyncIterable[dict]) -> AsyncIterator[AgentEvent]:
        """Yield normalized events; never raises."""
        try:
            async for event in events:
                if self._cancel_token is not None and self._cancel_token.cancelled:
                    log_detail(PROVIDER_NAME, "aborted", {"reason": "cancel token signalled"})
                    return

                event_type = field_of(event, "type")
                log_detail(PROVIDER_NAME, event_type or "unknown", event)

                if event_type == "thread.started":
                    self._thread_id = field_of(event, "thread_id") or None
                    logger.info(f"Codex thread id: {self._thread_id}")
                elif event_type == "item.started":
                    for normalized in self._on_item_started(field_of(event, "item")):
                        yield normalized
                elif event_type == "item.completed":
                    for normalized in self._on_item_completed(field_of(event, "item")):
                        yield normalized
                elif event_type == "turn.completed":
                    for normalized in self._close_open_items():
                        yield normalized
                    yield self._on_turn_completed(event)
                    return
                elif event_type == "turn.failed":
                    for normalized in self._close_open_items():
                        yield normalized
                    yield self._on_turn_failed(event)
                    return
                elif event_type == "error":
                    self._pending_error = (
                        field_of(event, "message")
                        or field_of(field_of(event, "error"), "message")
                        or "Unknown error"
                    )
                    logger.warning(f"Codex error event: {self._pending_error}")
        except Exception as e:
            logger.error(f"Codex stream failed: {e}", exc_info=True)
            log_detail(PROVIDER_NAME, "error", {"message": str(e)})
            for normalized in self._close_open_items():
                yield normalized
            yield TurnError(self._pending_error or str(e) or type(e).__name__)
            return

        for normalized in self._close_open_items():
            yield normalized
        yield TurnError(self._pending_error or "Codex stream ended without a result")

    def _on_item_started(self, item: Any) -> Iterator[AgentEvent]:
        if not item:
            return
        tool_name = _TOOL_ITEM_NAMES.get(field_of(item, "type"))
        if tool_name is None:
            return
        self._open_items[self._item_id(item)] = tool_name
        logger.info(f"Codex tool call: {tool_name}")
        yield ToolStart(tool_name)

    def _on_item_completed(self, item: Any) -> Iterator[AgentEvent]:
        if not item:
            return
        item_type = field_of(item, "type")

        if item_type in _TOOL_ITEM_NAMES:
            tool_name = self._open_items.pop(self._item_id(item), None)
            if tool_name is None:
                tool_name = _TOOL_ITEM_NAMES[item_type]
                yield ToolStart(tool_name)

            if item_type == "command_execution":
                command = field_of(item, "command") or ""
                logger.info(f"Codex command finished: {command[:80]}")
                yield ToolEnd(tool_name, json.dumps({"command": command}, ensure_ascii=False))
                output = field_of(item, "aggregated_output") or field_of(item, "output") or ""
                if output:
                    yield ToolResult(output)
            else:
                file_path = _file_change_path(item)
                logger.info(f"Codex edit finished: {file_path}")
                yield ToolEnd(tool_name, json.dumps({"file_path": file_path}, ensure_ascii=False))
                diff = field_of(item, "diff") or field_of(item, "changes") or ""
                diff_text = diff if isinstance(diff, str) else json.dumps(diff, ensure_ascii=False)
                if diff_text:
                    yield ToolResult(diff_text)

        elif item_type == "reasoning":
            text = field_of(item, "text")
            if text:
                yield ToolStart(REASONING_TOOL_NAME)
                yield ToolEnd(
                    REASONING_TOOL_NAME,
                    json.dumps({"reasoning": text}, ensure_ascii=False),
                )

        elif item_type == "agent_message":
            text = field_of(item, "text") or ""
            if text:
                logger.info(f"Codex reply received ({len(text)} chars)")
                self._agent_messages.append(text)

    def _on_turn_completed(self, event: Any) -> TurnResult:
        usage = field_of(event, "usage")
        return TurnResult(
            # later agent messages supersede earlier ones
            content=self._agent_messages[-1] if self._agent_messages else "",
            session_token=self._thread_id or self._resume_token,
            usage=(
                Usage(
                    input_tokens=int(field_of(usage, "input_tokens", 0) or 0),
                    output_tokens=int(field_of(usage, "output_tokens", 0) or 0),
                )
                if usage
                else None
            ),
        )

    def _on_turn_failed(self, event: Any) -> TurnError:
        message = (
            field_of(field_of(event, "error"), "message")
            or field_of(event, "message")
            or self._pending_error
            or "Processing failed"
        )
        logger.warning(f"Codex turn failed: {message}")
        return TurnError(message)

    def _close_open_items(self) -> Iterator[AgentEvent]:
        while self._open_items:
            _, tool_name = self._open_items.popitem()
            yield ToolEnd(tool_name, "")

    @staticmethod
    def _item_id(item: Any) -> str:
        return str(field_of(item, "id") or field_of(item, "type"))


def _file_change_path(item: Any) -> str:
    path = field_of(item, "file_path") or field_of(item, "path") or field_of(item, "file")
    if path:
        return path
    changes = field_of(item, "changes")
    if isinstance(changes, list):
        return ", ".join(str(field_of(c, "path")) for c in changes if field_of(c, "path"))
    return ""


class CodexProvider:
    """Runs turns through the Codex CLI in JSON-lines mode."""

    name = PROVIDER_NAME
    display_name = "Codex"

    def __init__(
        self,
        command: list[str] | None = None,
        sandbox_mode: str = "workspace-write",
        approval_policy: str = "never",
    ):
        self._command = list(command or ["codex"])
        self._sandbox_mode = sandbox_mode
        self._approval_policy = approval_policy

    def build_args(self, resume_token: str | None, workspace: str) -> list[str]:
        """Build the argv for one `codex exec` run; the prompt goes to stdin."""
        args = [
            *self._command,
            "exec",
            "--json",
            "--skip-git-repo-check",
            "--cd",
            workspace,
            "--sandbox",
            self._sandbox_mode,
            "-c",
            f'approval_policy="{self._approval_policy}"',
        ]
        if resume_token:
            args += ["resume", resume_token]
        return args

    async def stream(
        self,
        prompt: str,
        resume_token: str | None,
        capabilities: ProviderCapabilities,
    ) -> AsyncIterator[AgentEvent]:
        normalizer = CodexEventNormalizer(resume_token, capabilities.cancel_token)
        events = self._events(prompt, resume_token, capabilities.workspace)
        async with aclosing(events):
            async for event in normalizer.normalize(events):
                yield event

    async def _events(
        self, prompt: str, resume_token: str | None, workspace: str
    ) -> AsyncIterator[dict]:
        if resume_token:
            logger.info(f"Resuming Codex thread {resume_token}")
        else:
            logger.info("Starting new Codex thread")

        proc = await asyncio.create_subprocess_exec(
            *self.build_args(resume_token, workspace),
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            limit=_STDOUT_LINE_LIMIT,
        )
        stderr_task = asyncio.create_task(proc.stderr.read())
        try:
            proc.stdin.write(prompt.encode("utf-8"))
            await proc.stdin.drain()
            proc.stdin.close()

            while True:
                raw = await proc.stdout.readline()
                if not raw:
                    break
                line = raw.decode("utf-8", errors="replace").strip()
                if not line:
                    continue
                try:
                    event = json.loads(line)
                except json.JSONDecodeError:
                    logger.debug(f"Codex non-JSON output: {line[:200]}")
                    continue
                if isinstance(event, dict):
                    yield event

            return_code = await proc.wait()
            stderr = (await stderr_task).decode("utf-8", errors="replace").strip()
            if return_code != 0:
                raise CodexProcessError(
                    f"codex exited with code {return_code}: {stderr[-_STDERR_TAIL_CHARS:]}"
                )
        finally:
            if proc.returncode is None:
                logger.info("Terminating Codex process")
                try:
                    proc.terminate()
                except ProcessLookupError:
                    pass  # already exited
                await proc.wait()
            if not stderr_task.done():
                stderr_task.cancel()
