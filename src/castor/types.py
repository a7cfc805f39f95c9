"""Provider-neutral conversation types.

These types keep the AFC engine decoupled from any vendor SDK: providers
translate them to and from their own representations at the transport seam.

A ``Part`` is a closed union of frozen dataclasses. Tools are a closed union
too: a declaration-only ``Tool`` (the model may call it, the caller resolves
the call) or a ``CallableTool`` (declarations plus a local executor).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Literal, TypeAlias

from pydantic import BaseModel

from castor._validation import (
    _all_instances,
    _frozen_copy,
    _require,
    _require_name,
)
from castor.errors import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

Role = Literal["user", "model"]
ResponseSchemaInput = type[BaseModel] | dict[str, Any]

_ROLES: frozenset[str] = frozenset({"user", "model"})


# =============================================================================
# Parts
# =============================================================================


def _require_signature(value: object) -> None:
    _require(
        condition=value is None or isinstance(value, bytes),
        message="thought_signature must be bytes or None",
        exc=TypeError,
    )


@dataclass(frozen=True, slots=True)
class TextPart:
    """Plain text. ``thought`` marks model reasoning summaries.

    ``thought_signature`` is an opaque token the model attaches to its own
    output; it must be sent back unchanged in later turns.
    """

    text: str
    thought: bool = False
    thought_signature: bytes | None = None

    def __post_init__(self) -> None:
        """Validate TextPart invariants."""
        _require(
            condition=isinstance(self.text, str),
            message="text must be a str",
            exc=TypeError,
        )
        _require_signature(self.thought_signature)


@dataclass(frozen=True, slots=True)
class InlineDataPart:
    """Inline binary media."""

    data: bytes
    mime_type: str

    def __post_init__(self) -> None:
        """Validate InlineDataPart invariants."""
        _require(
            condition=isinstance(self.data, bytes | bytearray),
            message="data must be bytes-like",
            exc=TypeError,
        )
        _require(
            condition=isinstance(self.mime_type, str) and self.mime_type.strip() != "",
            message="mime_type must be a non-empty str",
            exc=TypeError,
        )


@dataclass(frozen=True, slots=True)
class FileDataPart:
    """Reference to media already uploaded to the backend."""

    uri: str
    mime_type: str | None = None

    def __post_init__(self) -> None:
        """Validate FileDataPart invariants."""
        _require(
            condition=isinstance(self.uri, str) and self.uri != "",
            message="uri must be a non-empty str",
            exc=TypeError,
        )


@dataclass(frozen=True, slots=True)
class FunctionCall:
    """A function invocation requested by the model."""

    name: str
    args: Mapping[str, Any] = field(default_factory=dict)
    id: str | None = None
    thought_signature: bytes | None = None

    def __post_init__(self) -> None:
        """Validate the name and freeze the arguments."""
        _require_name(self.name, "FunctionCall.name")
        _require_signature(self.thought_signature)
        object.__setattr__(self, "args", _frozen_copy(self.args))


@dataclass(frozen=True, slots=True)
class FunctionResponse:
    """The result of a function invocation, sent back to the model."""

    name: str
    response: Mapping[str, Any] = field(default_factory=dict)
    id: str | None = None

    def __post_init__(self) -> None:
        """Validate the name and freeze the payload."""
        _require_name(self.name, "FunctionResponse.name")
        object.__setattr__(self, "response", _frozen_copy(self.response))


Part: TypeAlias = (
    TextPart | InlineDataPart | FileDataPart | FunctionCall | FunctionResponse
)
PART_TYPES: tuple[type, ...] = (
    TextPart,
    InlineDataPart,
    FileDataPart,
    FunctionCall,
    FunctionResponse,
)


@dataclass(frozen=True, slots=True)
class Content:
    """One conversation turn: a role and its ordered parts."""

    role: Role
    parts: tuple[Part, ...] = ()

    def __post_init__(self) -> None:
        """Validate the role and normalize parts to a tuple."""
        _require(
            condition=self.role in _ROLES,
            message=f"role must be 'user' or 'model', got {self.role!r}",
            field_name="Content.role",
        )
        if not isinstance(self.parts, tuple):
            object.__setattr__(self, "parts", tuple(self.parts))
        _require(
            condition=_all_instances(self.parts, PART_TYPES),
            message="parts must contain only Part values",
            field_name="Content.parts",
            exc=TypeError,
        )

    @property
    def function_calls(self) -> list[FunctionCall]:
        """Function calls carried by this turn, in order."""
        return [p for p in self.parts if isinstance(p, FunctionCall)]


# =============================================================================
# Tools
# =============================================================================


class Behavior(StrEnum):
    """How the backend should schedule a declared function."""

    BLOCKING = "BLOCKING"
    NON_BLOCKING = "NON_BLOCKING"


@dataclass(frozen=True)
class FunctionDeclaration:
    """A function the model may call.

    ``parameters`` is a schema in the Gemini dialect (upper-case ``type``
    names, camelCase keys). ``parameters_json_schema`` is plain JSON Schema
    and is sent as-is. At most one of the two may be set.
    """

    name: str
    description: str | None = None
    parameters: Mapping[str, Any] | None = None
    behavior: Behavior | None = None
    parameters_json_schema: Mapping[str, Any] | None = None

    def __post_init__(self) -> None:
        """Validate FunctionDeclaration invariants."""
        _require_name(self.name, "FunctionDeclaration.name")
        _require(
            condition=self.parameters is None or self.parameters_json_schema is None,
            message="parameters and parameters_json_schema are mutually exclusive",
            field_name="FunctionDeclaration.parameters_json_schema",
        )


@dataclass(frozen=True)
class Tool:
    """Declaration-only tool: the caller resolves any calls manually."""

    function_declarations: tuple[FunctionDeclaration, ...] = ()

    def __post_init__(self) -> None:
        """Normalize declarations to a tuple."""
        if not isinstance(self.function_declarations, tuple):
            object.__setattr__(
                self, "function_declarations", tuple(self.function_declarations)
            )


class CallableTool(ABC):
    """A tool that can both describe itself and execute what it declares.

    ``call`` receives every call the model addressed to this tool within one
    round trip, as a single batch, and must return one ``FunctionResponse``
    per call in the same order. How a batch is ordered internally is the
    tool's own contract.
    """

    @abstractmethod
    async def declarations(self) -> list[FunctionDeclaration]:
        """Return the function declarations this tool answers."""

    @abstractmethod
    async def call(self, calls: Sequence[FunctionCall]) -> list[FunctionResponse]:
        """Execute a batch of calls, returning responses in call order."""


ToolUnion: TypeAlias = Tool | CallableTool


# =============================================================================
# Request configuration
# =============================================================================


@dataclass(frozen=True)
class AutomaticFunctionCallingConfig:
    """Controls the AFC loop.

    ``maximum_remote_calls`` is validated lazily: an invalid value disables
    AFC with a warning instead of failing the request.
    """

    disable: bool = False
    #: Round trips allowed per logical message; default 10 when None.
    maximum_remote_calls: int | float | None = None
    #: When set, tool turns are not recorded into chat history.
    ignore_call_history: bool = False


@dataclass(frozen=True)
class FunctionCallingConfig:
    """How the model may use the declared functions."""

    mode: Literal["AUTO", "ANY", "NONE", "VALIDATED"] | None = None
    allowed_function_names: tuple[str, ...] | None = None


@dataclass(frozen=True)
class ToolConfig:
    """Tool configuration passed through to the backend."""

    function_calling_config: FunctionCallingConfig | None = None


@dataclass(frozen=True)
class GenerateContentConfig:
    """Per-request generation settings."""

    system_instruction: str | Content | None = None
    temperature: float | None = None
    top_p: float | None = None
    max_output_tokens: int | None = None
    #: Pydantic ``BaseModel`` subclass or JSON Schema dict for structured output.
    response_schema: ResponseSchemaInput | None = None
    tools: tuple[ToolUnion, ...] | None = None
    tool_config: ToolConfig | None = None
    automatic_function_calling: AutomaticFunctionCallingConfig | None = None

    def __post_init__(self) -> None:
        """Validate config shapes early for clear errors."""
        if self.system_instruction is not None and not isinstance(
            self.system_instruction, str | Content
        ):
            raise ConfigurationError(
                "system_instruction must be a string or Content",
                hint="Pass system_instruction='You are a concise assistant.'",
            )

        if self.response_schema is not None and not (
            isinstance(self.response_schema, dict)
            or (
                isinstance(self.response_schema, type)
                and issubclass(self.response_schema, BaseModel)
            )
        ):
            raise ConfigurationError(
                "response_schema must be a Pydantic model class or JSON schema dict",
                hint="Pass a BaseModel subclass or a dict following JSON Schema.",
            )

        if self.max_output_tokens is not None and (
            isinstance(self.max_output_tokens, bool)
            or not isinstance(self.max_output_tokens, int)
            or self.max_output_tokens <= 0
        ):
            raise ConfigurationError(
                "max_output_tokens must be a positive integer",
                hint="Pass max_output_tokens=1024 or leave it unset.",
            )

        if self.tools is not None:
            if not isinstance(self.tools, tuple):
                object.__setattr__(self, "tools", tuple(self.tools))
            for tool in self.tools:
                if not isinstance(tool, Tool | CallableTool):
                    raise ConfigurationError(
                        f"Unsupported tool type: {type(tool).__name__}",
                        hint="Pass castor.Tool declarations or CallableTool instances.",
                    )

    def response_schema_json(self) -> dict[str, Any] | None:
        """Return JSON Schema for provider APIs."""
        schema = self.response_schema
        if schema is None:
            return None
        if isinstance(schema, dict):
            return schema
        return schema.model_json_schema()


# =============================================================================
# Responses
# =============================================================================


@dataclass(frozen=True)
class Candidate:
    """One candidate answer from the model."""

    content: Content | None = None
    finish_reason: str | None = None
    index: int = 0


@dataclass(frozen=True)
class GenerateContentResponse:
    """A response, or one streamed fragment of a response."""

    candidates: tuple[Candidate, ...] = ()
    usage: Mapping[str, int] = field(default_factory=dict)
    #: Request contents plus every AFC tool turn, when history is kept.
    automatic_function_calling_history: tuple[Content, ...] | None = None
    model_version: str | None = None

    @classmethod
    def from_content(cls, content: Content) -> GenerateContentResponse:
        """Wrap a single content as a one-candidate response."""
        return cls(candidates=(Candidate(content=content),))

    @property
    def content(self) -> Content | None:
        """Content of the first candidate, if any."""
        if not self.candidates:
            return None
        return self.candidates[0].content

    @property
    def parts(self) -> tuple[Part, ...]:
        content = self.content
        return content.parts if content is not None else ()

    @property
    def text(self) -> str | None:
        """Concatenated non-thought text of the first candidate."""
        texts = [
            p.text for p in self.parts if isinstance(p, TextPart) and not p.thought
        ]
        if not texts:
            return None
        return "".join(texts)

    @property
    def function_calls(self) -> list[FunctionCall]:
        """Function calls in the first candidate, in order."""
        return [p for p in self.parts if isinstance(p, FunctionCall)]


def is_valid_content(content: Content | None) -> bool:
    """Whether a model turn is fit for the curated transcript."""
    if content is None or not content.parts:
        return False
    return all(not (isinstance(p, TextPart) and p.text == "") for p in content.parts)
