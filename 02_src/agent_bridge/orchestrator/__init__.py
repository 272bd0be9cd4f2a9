"""Orchestrator module."""

from .commands import Command, parse_command, parse_menu_key
from .orchestrator import ConversationOrchestrator, IConversationOrchestrator

__all__ = [
    "Command",
    "ConversationOrchestrator",
    "IConversationOrchestrator",
    "parse_command",
    "parse_menu_key",
]
