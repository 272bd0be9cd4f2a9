"""Inbound Feishu event dispatch."""

import asyncio
from typing import Any, Coroutine

from ..logging_config import get_logger
from ..orchestrator import IConversationOrchestrator, parse_menu_key
from ..presenter import IRenderSink
from ..presenter.formatter import COPY_RAW_ACTION
from .messages import parse_message_event, sender_open_id

logger = get_logger(__name__)

MESSAGE_EVENT = "im.message.receive_v1"
MENU_EVENT = "application.bot.menu_v6"
CARD_ACTION_EVENT = "card.action.trigger"

COPY_SENT_TOAST = "Plain text sent, long-press to copy"
COPY_EXPIRED_TOAST = "The original content has expired"


class InvalidTokenError(Exception):
    """The event's verification token does not match the configured one."""


class FeishuGateway:
    """Routes webhook payloads to the orchestrator.

    Message and menu events are handled in background tasks so the webhook
    can answer within Feishu's delivery timeout.
    """

    def __init__(
        self,
        orchestrator: IConversationOrchestrator,
        sink: IRenderSink,
        verification_token: str | None = None,
    ):
        self._orchestrator = orchestrator
        self._sink = sink
        self._verification_token = verification_token
        self._open_id_to_chat: dict[str, str] = {}
        self._tasks: set[asyncio.Task] = set()

    def chat_for(self, open_id: str) -> str | None:
        """Private chat last seen for a user."""
        return self._open_id_to_chat.get(open_id)

    async def dispatch(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Handle one webhook payload and return the response body."""
        self._verify(payload)

        if payload.get("type") == "url_verification":
            logger.info("Answering URL verification challenge")
            return {"challenge": payload.get("challenge", "")}

        header = payload.get("header") or {}
        event = payload.get("event") or {}
        event_type = header.get("event_type") or event.get("type")

        if event_type == MESSAGE_EVENT:
            self._on_message(event)
        elif event_type == MENU_EVENT:
            self._on_menu(event)
        elif event_type == CARD_ACTION_EVENT:
            return await self._on_card_action(event)
        else:
            logger.debug(f"Ignoring event type: {event_type}")
        return {}

    async def drain(self) -> None:
        """Wait for in-flight background handlers."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _verify(self, payload: dict[str, Any]) -> None:
        if not self._verification_token:
            return
        token = payload.get("token") or (payload.get("header") or {}).get("token")
        if token != self._verification_token:
            raise InvalidTokenError("Verification token mismatch")

    def _on_message(self, event: dict[str, Any]) -> None:
        trigger = parse_message_event(event)
        if trigger is None:
            return

        message = event["message"]
        if message.get("chat_type") == "p2p" and trigger.sender_id != "unknown":
            self._open_id_to_chat[trigger.sender_id] = trigger.conversation_key

        logger.info(
            f"Received {'group' if trigger.is_group else 'p2p'} message"
            f" | chat_id: {trigger.conversation_key} | sender: {trigger.sender_id}"
        )
        self._spawn(self._orchestrator.handle_trigger(trigger))

    def _on_menu(self, event: dict[str, Any]) -> None:
        event_key = event.get("event_key", "")
        open_id = ((event.get("operator") or {}).get("operator_id") or {}).get("open_id")
        if not open_id:
            return

        logger.info(f"Menu event: {event_key} | open_id: {open_id}")
        command = parse_menu_key(event_key)
        if command is None:
            logger.info(f"Unknown menu event_key: {event_key}")
            return

        target = self._open_id_to_chat.get(open_id) or open_id
        self._spawn(self._orchestrator.handle_command(target, command))

    async def _on_card_action(self, event: dict[str, Any]) -> dict[str, Any]:
        value = (event.get("action") or {}).get("value") or {}
        if value.get("action") != COPY_RAW_ACTION:
            return {}

        message_id = (event.get("context") or {}).get("open_message_id")
        open_id = (event.get("operator") or {}).get("open_id") or sender_open_id(event)
        raw = self._orchestrator.raw_result(message_id) if message_id else None
        logger.info(f"Copy raw requested | message_id: {message_id} | open_id: {open_id}")

        if raw and open_id and open_id != "unknown":
            try:
                await self._sink.send_text(open_id, raw)
            except Exception as e:
                logger.error(f"Sending plain text to {open_id} failed: {e}", exc_info=True)

        if raw:
            return {"toast": {"type": "success", "content": COPY_SENT_TOAST}}
        return {"toast": {"type": "info", "content": COPY_EXPIRED_TOAST}}

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Event handler failed", exc_info=task.exception())
