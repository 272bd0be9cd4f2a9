"""Parsing of inbound `im.message.receive_v1` events."""

import json
from typing import Any

from ..logging_config import get_logger
from ..models import InboundTrigger

logger = get_logger(__name__)

SUPPORTED_MESSAGE_TYPES = ("text", "post")
POST_TEXT_TAGS = ("text", "a")


def extract_text(message_type: str, content: str) -> str | None:
    """Plain text from a text or rich-text (post) message body.

    Returns None when the content is not valid JSON.
    """
    try:
        parsed = json.loads(content)
    except (TypeError, ValueError):
        return None
    if not isinstance(parsed, dict):
        return None

    if message_type != "post":
        return str(parsed.get("text") or "").strip()

    # Post bodies are keyed by locale, or are the locale body itself
    post = parsed if "content" in parsed else (
        parsed.get("zh_cn") or parsed.get("en_us") or next(iter(parsed.values()), None)
    )
    if not isinstance(post, dict) or not post.get("content"):
        return ""

    parts = []
    if post.get("title"):
        parts.append(post["title"])
    for line in post["content"]:
        line_text = "".join(
            element.get("text") or ""
            for element in line
            if isinstance(element, dict) and element.get("tag") in POST_TEXT_TAGS
        )
        if line_text:
            parts.append(line_text)
    return "\n".join(parts).strip()


def strip_mentions(text: str, mentions: list[dict[str, Any]] | None) -> str:
    """Remove mention placeholders and `@name` tokens."""
    for mention in mentions or []:
        key = mention.get("key")
        if key:
            text = text.replace(key, "")
        name = mention.get("name")
        if name:
            text = text.replace(f"@{name}", "")
    return text.strip()


def sender_open_id(event: dict[str, Any]) -> str:
    sender_id = (event.get("sender") or {}).get("sender_id") or {}
    return sender_id.get("open_id") or "unknown"


def parse_message_event(event: dict[str, Any]) -> InboundTrigger | None:
    """Build an InboundTrigger, or None when the message is not for the bot."""
    message = event.get("message")
    if not message:
        return None

    message_type = message.get("message_type")
    if message_type not in SUPPORTED_MESSAGE_TYPES:
        logger.info(f"Skipping non-text message: {message_type}")
        return None

    mentions = message.get("mentions") or []
    is_group = message.get("chat_type") == "group"
    if is_group and not mentions:
        return None

    text = extract_text(message_type, message.get("content", ""))
    if text is None:
        logger.warning(f"Unparseable content in message {message.get('message_id')}")
        return None
    if is_group:
        text = strip_mentions(text, mentions)

    return InboundTrigger(
        message_id=message.get("message_id", ""),
        conversation_key=message.get("chat_id", ""),
        text=text,
        sender_id=sender_open_id(event),
        is_group=is_group,
        mentions_bot=bool(mentions),
    )
