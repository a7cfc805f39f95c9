"""Bridge MCP (Model Context Protocol) servers into a single callable tool.

Each server is reached through its own ``mcp.ClientSession``. The bridge lists
every server's tools once at construction, rejects function names exposed by
more than one server, and routes each call back to the server that owns it.

Example:
    async with ClientSession(read, write) as session:
        await session.initialize()
        tool = await mcp_to_tool(session)
        config = GenerateContentConfig(tools=[tool])
"""

from __future__ import annotations

from collections.abc import Mapping
from importlib.metadata import PackageNotFoundError, version
import logging
from typing import TYPE_CHECKING, Any, Protocol

from pydantic import ValidationError

from castor.errors import ConfigurationError
from castor.types import CallableTool, FunctionDeclaration, FunctionResponse

if TYPE_CHECKING:
    from collections.abc import Sequence

    from mcp import types as mcp_types

    from castor.types import FunctionCall, ToolUnion

logger = logging.getLogger(__name__)

GOOGLE_API_CLIENT_HEADER = "x-goog-api-client"


def _mcp_version() -> str:
    try:
        return version("mcp")
    except PackageNotFoundError:
        return "unknown"


MCP_LABEL = f"mcp_used/{_mcp_version()}"


class McpSession(Protocol):
    """The subset of ``mcp.ClientSession`` the bridge relies on."""

    async def list_tools(self) -> mcp_types.ListToolsResult: ...  # noqa: D102

    async def call_tool(  # noqa: D102
        self, name: str, arguments: dict[str, Any] | None = None
    ) -> mcp_types.CallToolResult: ...


def set_mcp_usage_header(headers: Mapping[str, str] | None) -> dict[str, str]:
    """Return a copy of *headers* with the MCP usage label in the client header.

    Idempotent: the label is appended only when it is not already present.
    """
    updated = dict(headers or {})
    current = updated.get(GOOGLE_API_CLIENT_HEADER, "")
    if MCP_LABEL in current.split():
        return updated
    updated[GOOGLE_API_CLIENT_HEADER] = f"{current} {MCP_LABEL}".strip()
    return updated


def has_mcp_tool_usage(tools: Sequence[ToolUnion] | None) -> bool:
    """Whether any tool in *tools* is backed by MCP servers."""
    return any(isinstance(tool, McpCallableTool) for tool in tools or ())


def _field(model: object, name: str, legacy_name: str, default: Any = None) -> Any:
    """Read a field under its current name or its 1.x camelCase name."""
    return getattr(model, name, getattr(model, legacy_name, default))


# Nested-schema keys that are never forwarded.
_DROPPED_SCHEMA_KEYS = frozenset(
    {
        "$defs",
        "$ref",
        "additionalProperties",
        "additional_properties",
        "defs",
        "oneOf",
        "one_of",
        "ref",
    }
)


def _supported_schema_keys() -> frozenset[str]:
    from google.genai import types

    fields = types.JSONSchema.model_fields
    keys = {*fields, *(info.alias for info in fields.values() if info.alias)}
    return frozenset(keys - _DROPPED_SCHEMA_KEYS)


def _filter_schema(
    schema: Mapping[str, Any], supported: frozenset[str]
) -> dict[str, Any]:
    """Drop unknown keys, recursing into ``items``, ``properties`` and ``anyOf``."""
    filtered: dict[str, Any] = {}
    for key, value in schema.items():
        if key not in supported:
            continue
        if key == "items":
            if not isinstance(value, Mapping):
                continue
            value = _filter_schema(value, supported)
        elif key == "properties":
            value = {
                name: _filter_schema(sub, supported)
                for name, sub in value.items()
                if isinstance(sub, Mapping)
            }
        elif key in ("anyOf", "any_of"):
            value = [_filter_schema(sub, supported) for sub in value]
        filtered[key] = value
    return filtered


def to_gemini_schema(json_schema: Mapping[str, Any] | None) -> dict[str, Any] | None:
    """Translate an MCP input schema (JSON Schema) into the Gemini dialect.

    Keys the Gemini schema cannot express are dropped silently; the type
    mapping itself is done by ``google.genai.types.Schema.from_json_schema``.
    """
    from google.genai import types

    if not json_schema:
        return None
    filtered = _filter_schema(json_schema, _supported_schema_keys())
    schema = types.Schema.from_json_schema(
        json_schema=types.JSONSchema(**filtered), api_option="GEMINI_API"
    )
    return schema.model_dump(mode="json", by_alias=True, exclude_none=True) or None


def _call_result_payload(result: mcp_types.CallToolResult) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "content": [
            block.model_dump(mode="json", by_alias=True, exclude_none=True)
            for block in result.content
        ]
    }
    structured = _field(result, "structured_content", "structuredContent")
    if structured is not None:
        payload["structuredContent"] = structured
    if _field(result, "is_error", "isError", False):
        return {"error": {**payload, "isError": True}}
    return payload


class McpCallableTool(CallableTool):
    """One callable tool fronting one or more MCP servers.

    Build with ``await McpCallableTool.create(*sessions)``. Calls addressed to
    the bridge within a round trip run sequentially in call order. A server
    result flagged ``isError`` is passed to the model as ``{"error": ...}``;
    an exception raised by a session propagates unchanged.
    """

    def __init__(
        self,
        listings: Sequence[tuple[McpSession, Sequence[mcp_types.Tool]]],
    ) -> None:
        """Index pre-fetched tool listings, one ``(session, tools)`` per server."""
        self._listings = tuple((session, tuple(tools)) for session, tools in listings)
        self._sessions_by_name: dict[str, McpSession] = {}
        for session, tools in self._listings:
            for tool in tools:
                if tool.name in self._sessions_by_name:
                    raise ConfigurationError(
                        f"Duplicate function name {tool.name} found in MCP tools. "
                        "Please ensure function names are unique."
                    )
                self._sessions_by_name[tool.name] = session

    @classmethod
    async def create(cls, *sessions: McpSession) -> McpCallableTool:
        """List every session's tools and build the bridge."""
        listings = []
        for session in sessions:
            result = await session.list_tools()
            listings.append((session, result.tools))
        bridge = cls(listings)
        logger.debug(
            "Bridged %d MCP tool(s) from %d server(s)",
            len(bridge._sessions_by_name),
            len(sessions),
        )
        return bridge

    async def declarations(self) -> list[FunctionDeclaration]:
        """Translate each server's tools into Gemini declarations, in server order."""
        declarations: list[FunctionDeclaration] = []
        for _, tools in self._listings:
            for tool in tools:
                input_schema = _field(tool, "input_schema", "inputSchema", {})
                try:
                    parameters = to_gemini_schema(input_schema)
                except ValidationError as e:
                    raise ConfigurationError(
                        f"MCP tool {tool.name!r} has an input schema Gemini "
                        "cannot express",
                        hint="Check the server's inputSchema for invalid types.",
                    ) from e
                declarations.append(
                    FunctionDeclaration(
                        name=tool.name,
                        description=tool.description,
                        parameters=parameters,
                    )
                )
        return declarations

    async def call(self, calls: Sequence[FunctionCall]) -> list[FunctionResponse]:
        """Route each call to the server that exposes it."""
        responses: list[FunctionResponse] = []
        for fc in calls:
            session = self._sessions_by_name.get(fc.name)
            if session is None:
                raise ConfigurationError(f"No MCP server exposes function {fc.name!r}")
            result = await session.call_tool(fc.name, arguments=dict(fc.args))
            responses.append(
                FunctionResponse(
                    name=fc.name, response=_call_result_payload(result), id=fc.id
                )
            )
        return responses


async def mcp_to_tool(*sessions: McpSession) -> McpCallableTool:
    """Expose the tools of *sessions* as one callable tool."""
    return await McpCallableTool.create(*sessions)
