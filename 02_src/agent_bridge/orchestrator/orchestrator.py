"""Conversation orchestration: single-flight turns, commands and rendering."""

from contextlib import aclosing
from typing import Protocol

from ..dedup import IMessageDedup, MessageDedup
from ..logging_config import get_logger
from ..models import (
    Conversation,
    InboundTrigger,
    Turn,
    TurnError,
    TurnResult,
    is_terminal,
)
from ..presenter import IRenderSink, TurnRenderer
from ..presenter.renderer import PROCESSING_STATUS
from ..providers import IFileSender, ProviderSelector
from ..tracker import ITracker
from .commands import Command, parse_command, strip_self_mentions

logger = get_logger(__name__)

ACTOR = "orchestrator"

BUSY_NOTICE = "⏳ The previous message is still being processed, please wait..."
RESET_REPLY = "✅ Session cleared, starting a new conversation"
STOP_REPLY = "⏹️ Stopped the current task"
NOTHING_TO_STOP_REPLY = "💤 No task is running"
ACTIVE_SESSION_REPLY = "📍 There is an active session"
NO_SESSION_REPLY = "💤 No active session"


class IConversationOrchestrator(Protocol):
    """Per-conversation lifecycle around agent turns."""

    async def handle_trigger(self, trigger: InboundTrigger) -> None:
        """Dedup, run commands, or run one agent turn for the trigger."""
        ...

    async def handle_command(
        self, conversation_key: str, command: Command, reply_to: str | None = None
    ) -> str:
        """Apply a command and send the reply card."""
        ...

    def run_command(self, conversation_key: str, command: Command) -> str:
        """Apply a command and return the reply text."""
        ...

    def raw_result(self, card_handle: str) -> str | None:
        """Result text rendered on a finished card."""
        ...


class ConversationOrchestrator:
    """Owns conversation sessions, the active-turn set and cancellation.

    All state is touched from the event loop thread only. The active-turn
    map doubles as the single-flight gate: a key is registered before the
    first suspension point of a turn and removed in a finally block.
    """

    def __init__(
        self,
        selector: ProviderSelector,
        sink: IRenderSink,
        tracker: ITracker,
        provider_name: str,
        dedup: IMessageDedup | None = None,
        file_sender: IFileSender | None = None,
    ):
        self._selector = selector
        self._sink = sink
        self._tracker = tracker
        self._provider_name = provider_name
        self._dedup = dedup if dedup is not None else MessageDedup()
        self._file_sender = file_sender

        self._conversations: dict[str, Conversation] = {}
        self._active_turns: dict[str, Turn] = {}
        self._raw_results: dict[str, str] = {}  # card handle -> result text

    @property
    def display_name(self) -> str:
        return self._selector.display_name(self._provider_name)

    @property
    def provider_name(self) -> str:
        return self._provider_name

    def is_processing(self, conversation_key: str) -> bool:
        return conversation_key in self._active_turns

    def active_conversations(self) -> list[str]:
        return list(self._active_turns)

    def session_token(self, conversation_key: str) -> str | None:
        conversation = self._conversations.get(conversation_key)
        return conversation.session_token if conversation else None

    def raw_result(self, card_handle: str) -> str | None:
        """Result text of a finished turn, for re-delivery as plain text."""
        return self._raw_results.get(card_handle)

    async def handle_trigger(self, trigger: InboundTrigger) -> None:
        if self._dedup.is_duplicate(trigger.message_id):
            logger.info(f"Skipping duplicate message: {trigger.message_id}")
            await self._safe_track(
                "trigger_duplicate",
                {
                    "message_id": trigger.message_id,
                    "conversation_key": trigger.conversation_key,
                },
            )
            return

        text = strip_self_mentions(trigger.text)
        if not text:
            return

        conversation = self._conversation(trigger.conversation_key)
        conversation.touch()
        logger.info(f"Message in {conversation.key} from {trigger.sender_id}: {text[:100]}")

        command = parse_command(text)
        if command is not None:
            await self.handle_command(conversation.key, command)
            return

        await self._run_turn(conversation, text)

    async def handle_command(
        self, conversation_key: str, command: Command, reply_to: str | None = None
    ) -> str:
        """Run a command and send its reply card to `reply_to` (default: the conversation)."""
        reply = self.run_command(conversation_key, command)
        await self._safe_track(
            "command_handled",
            {"conversation_key": conversation_key, "command": command.value},
        )
        await self._notify(reply_to or conversation_key, reply)
        return reply

    def run_command(self, conversation_key: str, command: Command) -> str:
        """Apply a conversation-local command; never enters Processing."""
        if command is Command.RESET:
            conversation = self._conversations.get(conversation_key)
            if conversation:
                conversation.session_token = None
            turn = self._active_turns.get(conversation_key)
            if turn:
                turn.session_reset = True
            logger.info(f"Session cleared for {conversation_key}")
            return RESET_REPLY

        if command is Command.STOP:
            turn = self._active_turns.get(conversation_key)
            if turn is None:
                return NOTHING_TO_STOP_REPLY
            turn.cancel_token.cancel()
            logger.info(f"Stop requested for {conversation_key}")
            return STOP_REPLY

        if self.session_token(conversation_key):
            return ACTIVE_SESSION_REPLY
        return NO_SESSION_REPLY

    def _conversation(self, conversation_key: str) -> Conversation:
        conversation = self._conversations.get(conversation_key)
        if conversation is None:
            conversation = Conversation(key=conversation_key)
            self._conversations[conversation_key] = conversation
        return conversation

    async def _run_turn(self, conversation: Conversation, prompt: str) -> None:
        key = conversation.key
        if key in self._active_turns:
            logger.info(f"Conversation {key} is busy, rejecting message")
            await self._safe_track("turn_busy", {"conversation_key": key})
            await self._notify(key, BUSY_NOTICE)
            return

        turn = Turn(conversation_key=key)
        self._active_turns[key] = turn
        try:
            await self._execute(conversation, turn, prompt)
        finally:
            if self._active_turns.get(key) is turn:
                del self._active_turns[key]

    async def _execute(self, conversation: Conversation, turn: Turn, prompt: str) -> None:
        key = conversation.key
        title = self.display_name

        try:
            handle = await self._sink.create_card(key, title, PROCESSING_STATUS)
        except Exception as e:
            logger.error(f"Initial card for {key} failed, turn aborted: {e}", exc_info=True)
            await self._safe_track(
                "turn_failed",
                {"conversation_key": key, "error": f"card creation failed: {e}"},
            )
            return
        turn.card_handle = handle

        logger.info(f"[{title}] Processing turn for {key}")
        await self._safe_track(
            "turn_started",
            {
                "conversation_key": key,
                "provider": self._provider_name,
                "resumed": conversation.session_token is not None,
            },
        )

        renderer = TurnRenderer()
        outcome = "turn_completed"
        error_text: str | None = None
        finished = False

        try:
            provider = self._selector.resolve(self._provider_name)
            capabilities = self._selector.capabilities(
                key, turn.cancel_token, self._file_sender
            )
            stream = provider.stream(prompt, conversation.session_token, capabilities)
            async with aclosing(stream):
                async for event in stream:
                    if turn.cancel_token.cancelled:
                        break

                    status = renderer.apply(event)
                    if isinstance(event, TurnResult):
                        self._record_result(conversation, turn, event)
                    elif isinstance(event, TurnError):
                        outcome = "turn_failed"
                        error_text = event.message
                        logger.warning(f"[{title}] Turn failed for {key}: {event.message}")

                    if status is not None:
                        await self._safe_update(handle, title, renderer.render(status))
                    if is_terminal(event):
                        finished = True
                        break
        except Exception as e:
            logger.error(f"[{title}] Turn for {key} crashed: {e}", exc_info=True)
            renderer.apply(TurnError(str(e) or type(e).__name__))
            outcome = "turn_failed"
            error_text = str(e)

        # a stop that lands while the stream closes does not undo an applied result
        if turn.cancel_token.cancelled and not finished:
            logger.info(f"[{title}] Turn for {key} stopped by user")
            renderer.mark_stopped()
            outcome = "turn_stopped"

        await self._safe_update(
            handle, title, renderer.render_final(), renderer.result_content or None
        )
        if renderer.result_content:
            self._raw_results[handle] = renderer.result_content

        data: dict = {"conversation_key": key, "card_handle": handle}
        if error_text:
            data["error"] = error_text
        await self._safe_track(outcome, data)

    def _record_result(
        self, conversation: Conversation, turn: Turn, result: TurnResult
    ) -> None:
        if result.session_token and not turn.session_reset:
            conversation.session_token = result.session_token
        logger.info(
            f"Turn result for {conversation.key}"
            f" ({len(result.content)} chars, error={result.is_error})"
        )

    async def _safe_track(self, event_type: str, data: dict) -> None:
        try:
            await self._tracker.track(event_type, ACTOR, data)
        except Exception as e:
            logger.error(f"Tracking {event_type} failed: {e}", exc_info=True)

    async def _safe_update(
        self, handle: str, title: str, body: str, copy_text: str | None = None
    ) -> None:
        try:
            await self._sink.update_card(handle, title, body, copy_text)
        except Exception as e:
            logger.error(f"Card update failed for {handle}: {e}", exc_info=True)

    async def _notify(self, conversation_key: str, text: str) -> None:
        try:
            await self._sink.create_card(conversation_key, self.display_name, text)
        except Exception as e:
            logger.error(f"Notice to {conversation_key} failed: {e}", exc_info=True)
