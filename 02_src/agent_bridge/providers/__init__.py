"""Agent backend providers."""

from .base import IAgentProvider, IFileSender, ProviderCapabilities
from .selector import ProviderSelector, UnknownProviderError

__all__ = [
    "IAgentProvider",
    "IFileSender",
    "ProviderCapabilities",
    "ProviderSelector",
    "UnknownProviderError",
]
