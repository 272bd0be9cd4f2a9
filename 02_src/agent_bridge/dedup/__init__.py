"""Dedup module."""

from .ledger import IMessageDedup, MessageDedup

__all__ = ["IMessageDedup", "MessageDedup"]
