"""Client configuration.

``Config`` says how to reach the backend: which provider, which credentials,
which extra headers. What to ask for (tools, AFC limits, sampling) is
per-request and lives in ``GenerateContentConfig``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
import os
from typing import Literal

from dotenv import load_dotenv

from castor._validation import _frozen_copy
from castor.errors import ConfigurationError

load_dotenv()

ProviderName = Literal["gemini"]

API_KEY_ENV_VAR = "GEMINI_API_KEY"


@dataclass(frozen=True)
class Config:
    """Immutable client configuration.

    Example:
        config = Config()  # reads GEMINI_API_KEY
        offline = Config(use_mock=True)
    """

    provider: ProviderName = "gemini"
    #: Read from ``GEMINI_API_KEY`` when left as *None*.
    api_key: str | None = None
    #: Answer from ``MockProvider`` instead of the network.
    use_mock: bool = False
    #: Extra outbound headers sent with every round trip.
    headers: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate fields and fill ``api_key`` from the environment."""
        if self.provider != "gemini":
            raise ConfigurationError(
                f"Unknown provider: {self.provider!r}",
                hint="Castor talks to Gemini only; use provider='gemini'.",
            )

        if not all(
            isinstance(k, str) and isinstance(v, str) for k, v in self.headers.items()
        ):
            raise ConfigurationError(
                "headers must map strings to strings",
                hint="Pass headers={'x-custom-header': 'value'}.",
            )
        object.__setattr__(self, "headers", _frozen_copy(self.headers))

        if self.use_mock:
            return
        if self.api_key is None:
            object.__setattr__(self, "api_key", os.environ.get(API_KEY_ENV_VAR))
        if not self.api_key:
            raise ConfigurationError(
                "An API key is required unless use_mock=True",
                hint=(
                    f"Set the {API_KEY_ENV_VAR} environment variable "
                    "or pass api_key=..."
                ),
            )

    def __repr__(self) -> str:
        key = "[REDACTED]" if self.api_key else None
        return (
            f"Config(provider={self.provider!r}, api_key={key}, "
            f"use_mock={self.use_mock}, headers={sorted(self.headers)})"
        )

    __str__ = __repr__
