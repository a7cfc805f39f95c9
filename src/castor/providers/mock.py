"""Mock provider for offline use and testing."""

from __future__ import annotations

from typing import TYPE_CHECKING

from castor.types import Candidate, Content, GenerateContentResponse, TextPart

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from castor.providers.base import ProviderRequest


class MockProvider:
    """Mock provider that answers without API calls.

    It never requests function calls, so the AFC loop always terminates after
    one round trip.
    """

    async def generate(self, request: ProviderRequest) -> GenerateContentResponse:
        """Return a deterministic mock response.

        Echo the text of the last user turn, so chat transcripts built in mock
        mode stay readable.
        """
        return GenerateContentResponse(
            candidates=(
                Candidate(
                    content=Content(
                        role="model", parts=(TextPart(text=self._echo(request)),)
                    ),
                    finish_reason="STOP",
                ),
            ),
            usage={"input_tokens": 10, "total_tokens": 20},
            model_version=f"mock-{request.model}",
        )

    async def stream(
        self, request: ProviderRequest
    ) -> AsyncIterator[GenerateContentResponse]:
        """Yield the mock echo in two fragments."""
        text = self._echo(request)
        head, tail = text[: len(text) // 2], text[len(text) // 2 :]
        for piece in (head, tail):
            yield GenerateContentResponse.from_content(
                Content(role="model", parts=(TextPart(text=piece),))
            )

    async def aclose(self) -> None:
        """Nothing to release."""

    @staticmethod
    def _echo(request: ProviderRequest) -> str:
        for content in reversed(request.contents):
            if content.role != "user":
                continue
            texts = [p.text for p in content.parts if isinstance(p, TextPart)]
            if texts:
                return f"echo: {''.join(texts)[:100]}"
        return "echo: "
