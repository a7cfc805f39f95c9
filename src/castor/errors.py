"""Exception hierarchy for Castor.

Every error carries an optional ``hint``: one actionable sentence for the
person reading the traceback.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator


class CastorError(Exception):
    """Base exception for all Castor errors."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class ConfigurationError(CastorError):
    """A request, tool set or client setting is unusable.

    Raised before any round trip when possible: invalid configs, duplicate
    function names, missing credentials. Also raised mid-loop when the model
    calls a function that no callable tool provides.
    """


class ToolContractError(CastorError):
    """A callable tool answered a batch of function calls incorrectly.

    Raised when a tool returns a different number of responses than calls it
    received, or a response whose name does not match its call.
    """

    def __init__(
        self, message: str, *, hint: str | None = None, tool_name: str | None = None
    ) -> None:
        super().__init__(message, hint=hint)
        self.tool_name = tool_name


class InternalError(CastorError):
    """An invariant inside Castor was violated (a bug)."""


class APIError(CastorError):
    """A provider round trip failed.

    ``retryable`` and ``status_code`` describe the failure for the caller,
    who may resend the whole logical message. Castor itself never retries.
    """

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        retryable: bool | None = None,
        status_code: int | None = None,
        provider: str | None = None,
        phase: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.retryable = retryable
        self.status_code = status_code
        self.provider = provider
        self.phase = phase


class RateLimitError(APIError):
    """The provider rejected the request with HTTP 429."""


def _exception_chain(exc: BaseException) -> Iterator[BaseException]:
    """Yield *exc*, then every exception reachable via cause or context.

    Each exception is yielded once, so cyclic chains terminate.
    """
    pending = [exc]
    visited: set[int] = set()
    while pending:
        current = pending.pop()
        if id(current) in visited:
            continue
        visited.add(id(current))
        yield current
        pending.extend(
            linked
            for linked in (current.__context__, current.__cause__)
            if linked is not None
        )
