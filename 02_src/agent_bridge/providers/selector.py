"""Provider selection: maps a configured provider name to a backend."""

from typing import Callable

from ..config import Settings
from ..models import CancellationToken
from .base import IAgentProvider, IFileSender, ProviderCapabilities

ProviderFactory = Callable[[Settings], IAgentProvider]


class UnknownProviderError(KeyError):
    """No provider is registered under the requested name."""


def _claude_factory(settings: Settings) -> IAgentProvider:
    from .claude import ClaudeCodeProvider

    return ClaudeCodeProvider()


def _codex_factory(settings: Settings) -> IAgentProvider:
    from .codex import CodexProvider

    return CodexProvider(command=settings.codex_command)


class ProviderSelector:
    """Dispatches to provider factories.

    Provider modules, and the SDKs behind them, are imported only when that
    provider is resolved.
    """

    def __init__(self, settings: Settings):
        self._settings = settings
        self._factories: dict[str, ProviderFactory] = {}
        self._display_names: dict[str, str] = {}
        self.register("claude", _claude_factory, "Claude Code")
        self.register("codex", _codex_factory, "Codex")

    def register(self, name: str, factory: ProviderFactory, display_name: str) -> None:
        self._factories[name] = factory
        self._display_names[name] = display_name

    def resolve(self, name: str) -> IAgentProvider:
        factory = self._factories.get(name)
        if not factory:
            raise UnknownProviderError(f"Provider not registered: {name}")
        return factory(self._settings)

    def display_name(self, name: str) -> str:
        """Stable presentation name for a provider."""
        if name not in self._display_names:
            raise UnknownProviderError(f"Provider not registered: {name}")
        return self._display_names[name]

    def capabilities(
        self,
        conversation_key: str,
        cancel_token: CancellationToken,
        file_sender: IFileSender | None = None,
    ) -> ProviderCapabilities:
        """Build the environment capability set for one turn."""
        return ProviderCapabilities(
            workspace=self._settings.workspace,
            cancel_token=cancel_token,
            conversation_key=conversation_key,
            file_sender=file_sender,
        )
