"""Test helpers (small, reusable doubles).

Keep this file tiny and purpose-built: it exists to prevent test suites from
growing lots of one-off provider and tool subclasses as coverage expands.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass, field
from typing import Any

from mcp import types as mcp_types

from castor.providers.base import ProviderRequest
from castor.types import (
    CallableTool,
    Content,
    FunctionCall,
    FunctionDeclaration,
    FunctionResponse,
    GenerateContentResponse,
    TextPart,
)

ScriptItem = GenerateContentResponse | BaseException


def text_response(text: str) -> GenerateContentResponse:
    """A one-candidate model response carrying *text*."""
    return GenerateContentResponse.from_content(
        Content(role="model", parts=(TextPart(text=text),))
    )


def call_response(*calls: FunctionCall) -> GenerateContentResponse:
    """A one-candidate model response carrying *calls*."""
    return GenerateContentResponse.from_content(Content(role="model", parts=calls))


def divide_call(numerator: float = 10, denominator: float = 2) -> FunctionCall:
    return FunctionCall(
        name="customDivide",
        args={"numerator": numerator, "denominator": denominator},
    )


@dataclass
class ScriptedProvider:
    """Provider double that plays back scripted responses and streams.

    ``script`` feeds ``generate``; ``streams`` feeds ``stream``, one list of
    fragments per round trip. Exceptions in either are raised in place.
    Every request is recorded for assertions.
    """

    script: list[ScriptItem] = field(default_factory=list)
    streams: list[list[ScriptItem]] = field(default_factory=list)
    requests: list[ProviderRequest] = field(default_factory=list)
    streams_opened: int = 0
    streams_closed: int = 0
    aclose_calls: int = 0

    async def generate(self, request: ProviderRequest) -> GenerateContentResponse:
        self.requests.append(request)
        if not self.script:
            return text_response("ok")
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    async def stream(
        self, request: ProviderRequest
    ) -> AsyncIterator[GenerateContentResponse]:
        self.requests.append(request)
        self.streams_opened += 1
        fragments = self.streams.pop(0) if self.streams else [text_response("ok")]
        try:
            for item in fragments:
                if isinstance(item, BaseException):
                    raise item
                yield item
        finally:
            self.streams_closed += 1

    async def aclose(self) -> None:
        self.aclose_calls += 1


class CustomDivideTool(CallableTool):
    """Callable tool that answers every ``customDivide`` call with 42."""

    def __init__(self) -> None:
        self.batches: list[list[FunctionCall]] = []

    async def declarations(self) -> list[FunctionDeclaration]:
        return [
            FunctionDeclaration(
                name="customDivide",
                description="Divide two numbers.",
                parameters={
                    "type": "OBJECT",
                    "properties": {
                        "numerator": {"type": "NUMBER"},
                        "denominator": {"type": "NUMBER"},
                    },
                },
            )
        ]

    async def call(self, calls: Sequence[FunctionCall]) -> list[FunctionResponse]:
        self.batches.append(list(calls))
        return [
            FunctionResponse(name=fc.name, response={"result": 42}) for fc in calls
        ]


@dataclass
class FakeMcpSession:
    """In-memory stand-in for ``mcp.ClientSession``.

    ``tools`` maps tool names to their input schemas. Calls return the
    scripted ``results`` entry for the tool name, or a text echo of the
    arguments; exceptions in ``results`` are raised.
    """

    tools: dict[str, dict[str, Any]] = field(default_factory=dict)
    results: dict[str, mcp_types.CallToolResult | BaseException] = field(
        default_factory=dict
    )
    calls: list[tuple[str, dict[str, Any] | None]] = field(default_factory=list)
    list_calls: int = 0

    async def list_tools(self) -> mcp_types.ListToolsResult:
        self.list_calls += 1
        return mcp_types.ListToolsResult(
            tools=[
                mcp_types.Tool.model_validate(
                    {
                        "name": name,
                        "description": f"The {name} tool.",
                        "inputSchema": schema,
                    }
                )
                for name, schema in self.tools.items()
            ]
        )

    async def call_tool(
        self, name: str, arguments: dict[str, Any] | None = None
    ) -> mcp_types.CallToolResult:
        self.calls.append((name, arguments))
        result = self.results.get(name)
        if isinstance(result, BaseException):
            raise result
        if result is not None:
            return result
        return mcp_types.CallToolResult.model_validate(
            {"content": [{"type": "text", "text": f"{name}:{arguments}"}]}
        )
