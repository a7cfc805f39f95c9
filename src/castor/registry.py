"""Tool registry: declaration aggregation and function-call dispatch.

A registry is built once per logical message from the callable tools in the
request. Building it queries every tool for its declarations and fails fast
on duplicate function names, before any round trip is attempted.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
import logging
from typing import TYPE_CHECKING

from castor.errors import ConfigurationError, ToolContractError
from castor.types import CallableTool, Tool

if TYPE_CHECKING:
    from collections.abc import Sequence

    from castor.types import (
        FunctionCall,
        FunctionDeclaration,
        FunctionResponse,
        ToolUnion,
    )

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Maps function names to the callable tools that answer them."""

    def __init__(
        self,
        tools: Sequence[CallableTool],
        declarations: Sequence[Sequence[FunctionDeclaration]],
    ) -> None:
        """Index *declarations* (one sequence per tool, in tool order).

        Prefer ``await ToolRegistry.build(tools)``, which queries the tools.
        """
        self._tools: tuple[CallableTool, ...] = tuple(tools)
        self._declarations_by_tool: dict[int, tuple[FunctionDeclaration, ...]] = {}
        self._owners: dict[str, CallableTool] = {}
        self._declarations: list[FunctionDeclaration] = []

        for tool, decls in zip(self._tools, declarations, strict=True):
            self._declarations_by_tool[id(tool)] = tuple(decls)
            for decl in decls:
                if decl.name in self._owners:
                    raise ConfigurationError(
                        f"Duplicate function name {decl.name} found in callable "
                        "tools. Please ensure function names are unique.",
                        hint="Function names must be unique within a request.",
                    )
                self._owners[decl.name] = tool
                self._declarations.append(decl)

    @classmethod
    async def build(cls, tools: Sequence[ToolUnion]) -> ToolRegistry:
        """Query every callable tool in *tools* and index its declarations."""
        callables = [t for t in tools if isinstance(t, CallableTool)]
        declarations = await asyncio.gather(*(t.declarations() for t in callables))
        registry = cls(callables, declarations)
        logger.debug(
            "Built tool registry: %d function(s) from %d callable tool(s)",
            len(registry._declarations),
            len(callables),
        )
        return registry

    @property
    def declarations(self) -> tuple[FunctionDeclaration, ...]:
        """All declarations, in tool order."""
        return tuple(self._declarations)

    def tool_for(self, name: str) -> CallableTool:
        """Return the tool that owns function *name*."""
        tool = self._owners.get(name)
        if tool is None:
            raise ConfigurationError(
                f"No callable tool provides function {name!r}",
                hint=(
                    "The model called a function that has no local executor. "
                    "Resolve declaration-only tools manually or disable AFC."
                ),
            )
        return tool

    def resolve_tools(self, tools: Sequence[ToolUnion]) -> tuple[Tool, ...]:
        """Replace each callable tool with a declaration-only equivalent."""
        resolved: list[Tool] = []
        for tool in tools:
            if isinstance(tool, CallableTool):
                resolved.append(
                    Tool(function_declarations=self._declarations_by_tool[id(tool)])
                )
            else:
                resolved.append(tool)
        return tuple(resolved)

    async def dispatch(self, calls: Sequence[FunctionCall]) -> list[FunctionResponse]:
        """Execute *calls* and return one response per call, in call order.

        Calls are grouped by owning tool; each tool receives its subset as one
        batch. Batches for different tools run concurrently. When one batch
        raises, the others are cancelled and that exception propagates as is.
        """
        groups: dict[int, tuple[CallableTool, list[int]]] = {}
        for index, fc in enumerate(calls):
            tool = self.tool_for(fc.name)
            groups.setdefault(id(tool), (tool, []))[1].append(index)

        batches = list(groups.values())
        logger.debug(
            "Dispatching %d function call(s) to %d tool(s)", len(calls), len(batches)
        )
        try:
            async with asyncio.TaskGroup() as group:
                tasks = [
                    group.create_task(tool.call([calls[i] for i in indices]))
                    for tool, indices in batches
                ]
        except BaseExceptionGroup as failed:
            error = failed.exceptions[0]
            raise error from error.__cause__
        results = [task.result() for task in tasks]

        ordered: list[FunctionResponse | None] = [None] * len(calls)
        for (tool, indices), responses in zip(batches, results, strict=True):
            if len(responses) != len(indices):
                raise ToolContractError(
                    f"{type(tool).__name__} returned {len(responses)} response(s) "
                    f"for {len(indices)} call(s)",
                    hint="CallableTool.call must return exactly one response per call.",
                    tool_name=type(tool).__name__,
                )
            for index, response in zip(indices, responses, strict=True):
                fc = calls[index]
                if response.name != fc.name:
                    raise ToolContractError(
                        f"{type(tool).__name__} answered call {fc.name!r} with a "
                        f"response named {response.name!r}",
                        hint="Return responses in the same order as the calls.",
                        tool_name=type(tool).__name__,
                    )
                if response.id is None and fc.id is not None:
                    response = replace(response, id=fc.id)
                ordered[index] = response
        return [r for r in ordered if r is not None]
