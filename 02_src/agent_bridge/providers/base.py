"""Provider protocol and the capability set handed to each backend call."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, AsyncGenerator, Mapping, Protocol, runtime_checkable

from ..models import AgentEvent, CancellationToken


class IFileSender(Protocol):
    """Delivers a local file into a chat."""

    async def send_file(self, receive_id: str, path: Path, category: str) -> None:
        """Upload `path` and post it to `receive_id` as image, audio or file."""
        ...


@dataclass
class ProviderCapabilities:
    """Environment made available to one backend invocation."""

    workspace: str
    cancel_token: CancellationToken = field(default_factory=CancellationToken)
    conversation_key: str | None = None
    file_sender: IFileSender | None = None


@runtime_checkable
class IAgentProvider(Protocol):
    """A coding-agent backend that yields normalized events."""

    name: str
    display_name: str

    def stream(
        self,
        prompt: str,
        resume_token: str | None,
        capabilities: ProviderCapabilities,
    ) -> AsyncGenerator[AgentEvent, None]:
        """Run one turn and yield normalized events.

        The sequence ends with exactly one TurnResult or TurnError unless the
        capability set's cancel token is signalled first. Implementations never
        raise; backend faults become a TurnError.
        """
        ...


def field_of(obj: Any, name: str, default: Any = None) -> Any:
    """Read `name` from a mapping or an attribute-style object."""
    if obj is None:
        return default
    if isinstance(obj, Mapping):
        return obj.get(name, default)
    return getattr(obj, name, default)
