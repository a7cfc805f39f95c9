"""Provider protocol: the transport seam the AFC engine consumes."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Mapping

    from castor.types import Content, GenerateContentConfig, GenerateContentResponse


@dataclass(frozen=True)
class ProviderRequest:
    """One round trip's worth of input.

    ``config.tools`` holds declaration-only tools by the time a provider sees
    it; callable tools are resolved by the models layer.
    """

    model: str
    contents: tuple[Content, ...]
    config: GenerateContentConfig
    headers: Mapping[str, str] = field(default_factory=dict)


@runtime_checkable
class Provider(Protocol):
    """Minimal provider protocol: one buffered or streamed round trip.

    Failures propagate to the caller; castor never retries a round trip.
    """

    async def generate(self, request: ProviderRequest) -> GenerateContentResponse:
        """Send one request and return the complete response."""
        ...

    def stream(self, request: ProviderRequest) -> AsyncIterator[GenerateContentResponse]:
        """Send one request and yield response fragments as they arrive."""
        ...

    async def aclose(self) -> None:
        """Release transport resources."""
        ...
