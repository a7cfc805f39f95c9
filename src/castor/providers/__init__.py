"""Provider implementations."""

from .base import Provider, ProviderRequest
from .gemini import GeminiProvider
from .mock import MockProvider

__all__ = [
    "GeminiProvider",
    "MockProvider",
    "Provider",
    "ProviderRequest",
]
