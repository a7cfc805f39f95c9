"""Normalize caller input into Content turns.

Callers may pass a plain string, a single part, a list of parts, a Content,
or a list mixing Contents and parts. Loose parts are grouped into ``user``
turns in the order they appear.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TypeAlias

from castor.errors import ConfigurationError
from castor.types import PART_TYPES, Content, Part, Role, TextPart

PartInput: TypeAlias = str | Part
ContentInput: TypeAlias = Content | PartInput
ContentsInput: TypeAlias = ContentInput | Sequence[ContentInput]


def to_part(value: PartInput) -> Part:
    """Coerce a string or part into a Part."""
    if isinstance(value, str):
        return TextPart(text=value)
    if isinstance(value, PART_TYPES):
        return value
    raise ConfigurationError(
        f"Unsupported part type: {type(value).__name__}",
        hint="Pass a string, TextPart, FunctionResponse, or another castor Part.",
    )


def to_content(
    message: ContentInput | Sequence[PartInput], *, role: Role = "user"
) -> Content:
    """Coerce one message into a single Content turn."""
    if isinstance(message, Content):
        return message
    if isinstance(message, str) or isinstance(message, PART_TYPES):
        return Content(role=role, parts=(to_part(message),))
    if isinstance(message, Sequence):
        if not message:
            raise ConfigurationError(
                "message must not be empty",
                hint="Pass a string or at least one part.",
            )
        return Content(role=role, parts=tuple(to_part(p) for p in message))
    raise ConfigurationError(
        f"Unsupported message type: {type(message).__name__}",
        hint="Pass a string, a Part, a list of parts, or a Content.",
    )


def to_contents(contents: ContentsInput) -> list[Content]:
    """Coerce request contents into an ordered list of turns."""
    if isinstance(contents, Content | str) or isinstance(contents, PART_TYPES):
        return [to_content(contents)]
    if not isinstance(contents, Sequence):
        raise ConfigurationError(
            f"Unsupported contents type: {type(contents).__name__}",
            hint="Pass a string, a Content, or a list of Contents and parts.",
        )

    result: list[Content] = []
    pending: list[Part] = []
    for item in contents:
        if isinstance(item, Content):
            if pending:
                result.append(Content(role="user", parts=tuple(pending)))
                pending = []
            result.append(item)
        else:
            pending.append(to_part(item))
    if pending:
        result.append(Content(role="user", parts=tuple(pending)))

    if not result:
        raise ConfigurationError(
            "contents must not be empty",
            hint="Pass at least one message.",
        )
    return result
