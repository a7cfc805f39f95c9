"""Client facade: one provider shared by ``models`` and ``chats``."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from castor.chats import Chats
from castor.config import Config
from castor.errors import ConfigurationError
from castor.models import Models

if TYPE_CHECKING:
    from castor.providers.base import Provider

logger = logging.getLogger(__name__)


class Client:
    """Entry point for content generation and chat sessions.

    Example:
        client = Client(Config())
        response = await client.models.generate_content(
            model="gemini-2.5-flash", contents="Hello"
        )
        await client.aclose()
    """

    def __init__(
        self, config: Config | None = None, *, provider: Provider | None = None
    ) -> None:
        """Create a client; *provider* overrides the one chosen from *config*."""
        self.config = config if config is not None else Config()
        if provider is None:
            provider = _get_provider(self.config)
        self._provider = provider
        self.models = Models(self._provider, headers=self.config.headers)
        self.chats = Chats(self.models)

    async def aclose(self) -> None:
        """Release provider resources. Cleanup failures are logged, not raised."""
        try:
            await self._provider.aclose()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            # Cleanup should never mask the primary failure.
            logger.warning("Provider cleanup failed: %s", exc)

    async def __aenter__(self) -> Client:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


def _get_provider(config: Config) -> Provider:
    """Get the appropriate provider based on configuration."""
    if config.use_mock:
        from castor.providers.mock import MockProvider

        return MockProvider()

    from castor.providers.gemini import GeminiProvider

    if not config.api_key:
        raise ConfigurationError(
            "api_key required for real API",
            hint="Set GEMINI_API_KEY or pass Config(api_key=...).",
        )
    return GeminiProvider(config.api_key)
