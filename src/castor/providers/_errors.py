"""Map provider SDK exceptions into ``APIError``.

Every provider funnels its failures through ``wrap_provider_error`` so the
AFC loop and its callers see one exception type with stable metadata.
"""

from __future__ import annotations

import asyncio

import httpx

from castor.errors import APIError, RateLimitError, _exception_chain

# Statuses for which a caller may safely resend a whole logical message.
_RETRYABLE_STATUS_CODES = frozenset({408, 409, 429, 500, 502, 503, 504})
_AUTH_HINT = "Check the API key and its permissions (GEMINI_API_KEY or Config.api_key)."


def _as_status(value: object) -> int | None:
    if isinstance(value, int) and not isinstance(value, bool) and 100 <= value < 600:
        return value
    return None


def extract_status_code(exc: BaseException) -> int | None:
    """Return the first HTTP status found on *exc* or anything it chains to."""
    for link in _exception_chain(exc):
        candidates = [getattr(link, name, None) for name in ("status_code", "code")]
        candidates.append(getattr(getattr(link, "response", None), "status_code", None))
        candidates.append(getattr(link, "status", None))
        for value in candidates:
            status = _as_status(value)
            if status is not None:
                return status
    return None


def _is_retryable(exc: BaseException, status_code: int | None) -> bool:
    if status_code is not None:
        return status_code in _RETRYABLE_STATUS_CODES
    # No status at all: a transport-level failure (timeout, refused connection).
    return any(isinstance(link, httpx.RequestError) for link in _exception_chain(exc))


def _needs_auth_hint(status_code: int | None, detail: str) -> bool:
    if status_code in (401, 403):
        return True
    lowered = detail.lower()
    return status_code == 400 and ("api key" in lowered or "api_key" in lowered)


def wrap_provider_error(
    exc: BaseException,
    *,
    provider: str,
    phase: str,
    message: str | None = None,
    hint: str | None = None,
) -> APIError:
    """Return an ``APIError`` describing *exc*.

    An ``APIError`` is returned as-is with missing provider, phase and hint
    filled in. Cancellation is never wrapped: it is re-raised immediately.
    """
    if isinstance(exc, asyncio.CancelledError):
        raise exc

    if isinstance(exc, APIError):
        exc.provider = exc.provider or provider
        exc.phase = exc.phase or phase
        exc.hint = exc.hint or hint
        return exc

    status_code = extract_status_code(exc)
    detail = str(exc)
    if hint is None and _needs_auth_hint(status_code, detail):
        hint = _AUTH_HINT

    summary = message or f"{provider} {phase} failed"
    if status_code is not None:
        summary = f"{summary} (status={status_code})"
    error_type = RateLimitError if status_code == 429 else APIError
    return error_type(
        f"{summary}: {detail}" if detail else summary,
        hint=hint,
        retryable=_is_retryable(exc, status_code),
        status_code=status_code,
        provider=provider,
        phase=phase,
    )
