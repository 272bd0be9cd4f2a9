"""In-memory dedup ledger for at-least-once message delivery."""

import time
from typing import Callable, Protocol

from ..logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_SIZE = 10_000
DEFAULT_TTL_SECONDS = 5 * 60


class IMessageDedup(Protocol):
    """Suppress redundant deliveries of the same inbound message."""

    def is_duplicate(self, message_id: str) -> bool:
        """Return False the first time an id is seen, True afterwards."""
        ...


class MessageDedup:
    """Tracks recently seen message ids.

    When the ledger grows past `max_size`, every entry older than the TTL is
    swept in one pass. This is a lazy batched sweep, not an LRU.
    """

    def __init__(
        self,
        max_size: int = DEFAULT_MAX_SIZE,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._max_size = max_size
        self._ttl = ttl_seconds
        self._clock = clock
        self._processed: dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._processed)

    def __contains__(self, message_id: str) -> bool:
        return message_id in self._processed

    def is_duplicate(self, message_id: str) -> bool:
        """Record the id on first sight; report True for repeats."""
        self._cleanup_if_needed()

        if message_id in self._processed:
            return True
        self._processed[message_id] = self._clock()
        return False

    def _cleanup_if_needed(self) -> None:
        if len(self._processed) <= self._max_size:
            return

        now = self._clock()
        expired = [
            message_id
            for message_id, seen_at in self._processed.items()
            if now - seen_at > self._ttl
        ]
        for message_id in expired:
            del self._processed[message_id]
        logger.debug(
            "Dedup sweep removed %d expired entries, %d remain",
            len(expired),
            len(self._processed),
        )
