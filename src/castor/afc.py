"""Capability resolution for automatic function calling (AFC).

Decides, per request, whether the AFC loop runs at all and with what call
budget. An invalid budget is a configuration mistake, but it degrades to
"AFC off" with a warning rather than failing the request.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from castor.types import CallableTool

if TYPE_CHECKING:
    from castor.types import GenerateContentConfig, ToolUnion

logger = logging.getLogger(__name__)

DEFAULT_MAX_REMOTE_CALLS = 10


def is_callable_tool(tool: ToolUnion) -> bool:
    """Whether *tool* carries a local executor."""
    return isinstance(tool, CallableTool)


def _is_valid_max_remote_calls(value: object) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return value > 0
    if isinstance(value, float):
        return value.is_integer() and value > 0
    return False


def should_disable_afc(config: GenerateContentConfig | None) -> bool:
    """Return whether automatic function calling is disabled for *config*."""
    if config is None:
        return True

    afc = config.automatic_function_calling
    if afc is not None and afc.disable:
        return True

    if not any(is_callable_tool(tool) for tool in config.tools or ()):
        return True

    max_calls = afc.maximum_remote_calls if afc is not None else None
    if max_calls is not None and not _is_valid_max_remote_calls(max_calls):
        logger.warning(
            "Invalid maximum_remote_calls value provided for automatic function "
            "calling: %r. Automatic function calling is disabled. Provide an "
            "integer greater than 0.",
            max_calls,
        )
        return True
    return False


def max_remote_calls(config: GenerateContentConfig | None) -> int:
    """Return the effective round-trip budget for *config*."""
    afc = config.automatic_function_calling if config is not None else None
    if afc is None or afc.maximum_remote_calls is None:
        return DEFAULT_MAX_REMOTE_CALLS
    if not _is_valid_max_remote_calls(afc.maximum_remote_calls):
        return DEFAULT_MAX_REMOTE_CALLS
    return int(afc.maximum_remote_calls)


def should_append_afc_history(config: GenerateContentConfig | None) -> bool:
    """Return whether AFC tool turns should be kept in history."""
    afc = config.automatic_function_calling if config is not None else None
    return not (afc is not None and afc.ignore_call_history)
