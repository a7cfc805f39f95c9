"""Validation helpers for the frozen dataclasses in ``castor.types``.

Every check raises from ``__post_init__`` so an invalid part, turn or
declaration never exists.
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import Any


def _frozen_copy(mapping: Mapping[str, Any] | None) -> Mapping[str, Any]:
    """Snapshot *mapping* behind a read-only proxy; ``None`` becomes empty."""
    if isinstance(mapping, MappingProxyType):
        return mapping
    return MappingProxyType(dict(mapping or {}))


def _all_instances(values: tuple[object, ...], kinds: tuple[type, ...]) -> bool:
    return all(isinstance(v, kinds) for v in values)


def _require(
    *,
    condition: bool,
    message: str,
    exc: type[Exception] = ValueError,
    field_name: str | None = None,
) -> None:
    """Raise *exc* with *message*, prefixed by *field_name*, unless *condition*."""
    if condition:
        return
    raise exc(f"{field_name}: {message}" if field_name else message)


def _require_name(value: object, field_name: str) -> None:
    """Function and tool names must be non-empty strings."""
    _require(
        condition=isinstance(value, str) and value != "",
        message="must be a non-empty str",
        field_name=field_name,
        exc=TypeError,
    )
