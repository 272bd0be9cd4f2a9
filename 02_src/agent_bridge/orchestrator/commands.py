"""Chat commands handled without invoking a backend."""

import re
from enum import Enum


class Command(str, Enum):
    """Conversation-local commands."""

    RESET = "reset"
    STOP = "stop"
    STATUS = "status"


_COMMANDS = {
    "/clear": Command.RESET,
    "/new": Command.RESET,
    "/stop": Command.STOP,
    "/status": Command.STATUS,
}

# Feishu mention placeholders such as "@_user_1"
SELF_MENTION_PATTERN = re.compile(r"@_user_\d+")


def parse_command(text: str) -> Command | None:
    """Return the command for an exact command text, else None."""
    return _COMMANDS.get(text.strip().lower())


def parse_menu_key(event_key: str) -> Command | None:
    """Menu keys arrive with or without the leading slash."""
    key = event_key.strip()
    return parse_command(key if key.startswith("/") else f"/{key}")


def strip_self_mentions(text: str) -> str:
    return SELF_MENTION_PATTERN.sub("", text).strip()
