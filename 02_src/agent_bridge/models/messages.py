"""Inbound message models."""

from dataclasses import dataclass


@dataclass
class InboundTrigger:
    """A chat message addressed to the bot, after platform-specific extraction."""

    message_id: str
    conversation_key: str
    text: str
    sender_id: str = "unknown"
    is_group: bool = False
    mentions_bot: bool = False
