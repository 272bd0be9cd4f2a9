"""Conversation and turn state models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CancellationToken:
    """Cooperative cancellation signal for one turn.

    Signalling never interrupts the backend call. Consumers poll `cancelled`
    at each received event.
    """

    def __init__(self) -> None:
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True


@dataclass
class Conversation:
    """Session state for one conversation key."""

    key: str
    session_token: str | None = None
    last_activity: datetime = field(default_factory=_utcnow)

    def touch(self) -> None:
        """Record activity on this conversation."""
        self.last_activity = _utcnow()


@dataclass
class Turn:
    """One in-flight request/response cycle bound to a conversation."""

    conversation_key: str
    cancel_token: CancellationToken = field(default_factory=CancellationToken)
    card_handle: str | None = None
    session_reset: bool = False
    started_at: datetime = field(default_factory=_utcnow)
