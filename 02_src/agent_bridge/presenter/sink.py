"""Outbound render sink contract."""

from typing import Protocol


class RenderError(RuntimeError):
    """A card or message could not be delivered."""


class IRenderSink(Protocol):
    """Chat-side surface the orchestrator renders into."""

    async def create_card(self, receive_id: str, title: str, body: str) -> str:
        """Send a new card and return its message handle."""
        ...

    async def update_card(
        self,
        handle: str,
        title: str,
        body: str,
        copy_text: str | None = None,
    ) -> None:
        """Replace the body of an existing card."""
        ...

    async def send_text(self, receive_id: str, text: str) -> None:
        """Send a plain text message."""
        ...
