"""Content generation with automatic function calling (AFC).

A logical message is one or more round trips to the provider. When the model
answers with function calls and callable tools can serve them, the calls are
dispatched locally, their responses are appended as a ``user`` turn, and the
conversation is sent again until the model stops calling functions or the
round-trip budget runs out.
"""

from __future__ import annotations

from contextlib import aclosing
from dataclasses import dataclass, replace
import logging
from typing import TYPE_CHECKING

from castor.afc import (
    is_callable_tool,
    max_remote_calls,
    should_append_afc_history,
    should_disable_afc,
)
from castor.errors import ConfigurationError, InternalError
from castor.mcp import has_mcp_tool_usage, set_mcp_usage_header
from castor.providers.base import ProviderRequest
from castor.registry import ToolRegistry
from castor.request import to_contents
from castor.types import (
    Content,
    GenerateContentConfig,
    GenerateContentResponse,
    TextPart,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Mapping, Sequence

    from castor.providers.base import Provider
    from castor.request import ContentsInput
    from castor.types import FunctionResponse, Part

    RoundCallback = Callable[[list[Content]], None]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _PreparedCall:
    """Everything resolved once per logical message, before any round trip."""

    model: str
    contents: tuple[Content, ...]
    config: GenerateContentConfig
    headers: Mapping[str, str]
    registry: ToolRegistry | None
    afc_enabled: bool
    budget: int
    append_history: bool

    def request(self, contents: Sequence[Content]) -> ProviderRequest:
        return ProviderRequest(
            model=self.model,
            contents=tuple(contents),
            config=self.config,
            headers=self.headers,
        )


def merge_turns(contents: Sequence[Content]) -> list[Content]:
    """Join consecutive same-role contents into single turns.

    Streamed fragments split one turn across many contents; adjacent text
    parts with the same ``thought`` flag are concatenated. A thought signature
    stays on the merged part; two signed parts are never joined.
    """
    turns: list[tuple[str, list[Part]]] = []
    for content in contents:
        if not turns or turns[-1][0] != content.role:
            turns.append((content.role, []))
        parts = turns[-1][1]
        for part in content.parts:
            previous = parts[-1] if parts else None
            if (
                isinstance(part, TextPart)
                and isinstance(previous, TextPart)
                and previous.thought == part.thought
                and not (previous.thought_signature and part.thought_signature)
            ):
                parts[-1] = TextPart(
                    text=previous.text + part.text,
                    thought=part.thought,
                    thought_signature=(
                        previous.thought_signature or part.thought_signature
                    ),
                )
            else:
                parts.append(part)
    return [
        Content(role=role, parts=tuple(parts))  # type: ignore[arg-type]
        for role, parts in turns
    ]


class Models:
    """Generate content, driving the AFC loop when callable tools are present."""

    def __init__(
        self, provider: Provider, *, headers: Mapping[str, str] | None = None
    ) -> None:
        """Bind to a provider and the outbound headers sent on every request."""
        self._provider = provider
        self._headers = dict(headers or {})

    async def _prepare(
        self,
        model: str,
        contents: ContentsInput,
        config: GenerateContentConfig | None,
    ) -> _PreparedCall:
        if not isinstance(model, str) or not model.strip():
            raise ConfigurationError(
                "model must be a non-empty string",
                hint="Pass model='gemini-2.5-flash' or another model id.",
            )
        if config is not None and not isinstance(config, GenerateContentConfig):
            raise ConfigurationError(
                f"config must be a GenerateContentConfig, got {type(config).__name__}",
                hint="Build it with castor.GenerateContentConfig(...).",
            )
        turns = tuple(to_contents(contents))

        afc_enabled = not should_disable_afc(config)
        request_config = config if config is not None else GenerateContentConfig()
        tools = request_config.tools or ()

        # Callable tools are always sent as declarations, even with AFC off.
        registry: ToolRegistry | None = None
        if any(is_callable_tool(tool) for tool in tools):
            registry = await ToolRegistry.build(tools)
            request_config = replace(
                request_config, tools=registry.resolve_tools(tools)
            )

        headers: Mapping[str, str] = self._headers
        if has_mcp_tool_usage(tools):
            headers = set_mcp_usage_header(headers)

        return _PreparedCall(
            model=model,
            contents=turns,
            config=request_config,
            headers=headers,
            registry=registry,
            afc_enabled=afc_enabled and registry is not None,
            budget=max_remote_calls(config),
            append_history=should_append_afc_history(config),
        )

    async def generate_content(
        self,
        *,
        model: str,
        contents: ContentsInput,
        config: GenerateContentConfig | None = None,
    ) -> GenerateContentResponse:
        """Generate a response, resolving function calls automatically.

        Args:
            model: Model id, e.g. ``"gemini-2.5-flash"``.
            contents: A string, part, Content, or a list of them.
            config: Optional generation settings, tools and AFC controls.

        Returns:
            The final response. When the call budget runs out it may still
            carry unresolved function calls; that is not an error.

        Example:
            response = await client.models.generate_content(
                model="gemini-2.5-flash",
                contents="What is 10 divided by 4?",
                config=GenerateContentConfig(tools=[FunctionTool(custom_divide)]),
            )
            print(response.text)
        """
        call = await self._prepare(model, contents, config)
        if not call.afc_enabled or call.registry is None:
            return await self._provider.generate(call.request(call.contents))

        remaining = call.budget
        conversation = list(call.contents)
        afc_turns: list[Content] = []
        round_trip = 0
        while True:
            round_trip += 1
            logger.debug(
                "AFC round trip %d (%d remaining) for model %s",
                round_trip,
                remaining,
                call.model,
            )
            response = await self._provider.generate(call.request(conversation))
            function_calls = response.function_calls
            if not function_calls:
                break
            if remaining <= 0:
                logger.info(
                    "AFC call budget of %d exhausted; returning %d unresolved "
                    "function call(s)",
                    call.budget,
                    len(function_calls),
                )
                break

            responses = await call.registry.dispatch(function_calls)
            model_turn = response.content
            if model_turn is None:
                raise InternalError("function calls without a model turn")
            response_turn = Content(role="user", parts=tuple(responses))
            conversation += [model_turn, response_turn]
            afc_turns += [model_turn, response_turn]
            remaining -= 1

        if call.append_history:
            response = replace(
                response,
                automatic_function_calling_history=call.contents + tuple(afc_turns),
            )
        return response

    async def generate_content_stream(
        self,
        *,
        model: str,
        contents: ContentsInput,
        config: GenerateContentConfig | None = None,
    ) -> AsyncIterator[GenerateContentResponse]:
        """Stream a response, resolving function calls between round trips.

        Validation and tool discovery happen before this returns; the
        returned iterator performs the round trips lazily. Each function
        response turn is yielded as a ``user``-role fragment right after the
        fragment that requested it. Closing the iterator early stops any
        further round trips.

        Example:
            stream = await client.models.generate_content_stream(
                model="gemini-2.5-flash", contents="Hello"
            )
            async for chunk in stream:
                print(chunk.text or "", end="")
        """
        return await self._open_stream(model, contents, config)

    async def _open_stream(
        self,
        model: str,
        contents: ContentsInput,
        config: GenerateContentConfig | None,
        on_round: RoundCallback | None = None,
    ) -> AsyncIterator[GenerateContentResponse]:
        """Prepare the call and return its lazy stream.

        *on_round* receives the turns each dispatched round adds to the
        conversation, exactly as they are sent on the next round trip.
        """
        call = await self._prepare(model, contents, config)
        if not call.afc_enabled:
            return self._stream_once(call)
        return self._stream_with_afc(call, on_round)

    async def _stream_once(
        self, call: _PreparedCall
    ) -> AsyncIterator[GenerateContentResponse]:
        request = call.request(call.contents)
        async with aclosing(self._provider.stream(request)) as stream:
            async for fragment in stream:
                yield fragment

    async def _stream_with_afc(
        self, call: _PreparedCall, on_round: RoundCallback | None = None
    ) -> AsyncIterator[GenerateContentResponse]:
        registry = call.registry
        if registry is None:
            raise InternalError("AFC stream started without a tool registry")

        remaining = call.budget
        conversation = list(call.contents)
        round_trip = 0
        while True:
            round_trip += 1
            logger.debug(
                "AFC stream round trip %d (%d remaining) for model %s",
                round_trip,
                remaining,
                call.model,
            )
            model_fragments: list[Content] = []
            round_responses: list[FunctionResponse] = []
            exhausted = False

            async with aclosing(
                self._provider.stream(call.request(conversation))
            ) as stream:
                async for fragment in stream:
                    yield fragment
                    if fragment.content is not None:
                        model_fragments.append(fragment.content)
                    function_calls = fragment.function_calls
                    if not function_calls:
                        continue
                    if remaining <= 0:
                        exhausted = True
                        continue
                    responses = await registry.dispatch(function_calls)
                    round_responses += responses
                    yield GenerateContentResponse.from_content(
                        Content(role="user", parts=tuple(responses))
                    )

            if exhausted:
                logger.info(
                    "AFC call budget of %d exhausted; stream ends with "
                    "unresolved function calls",
                    call.budget,
                )
            if not round_responses:
                return

            round_turns = [
                *merge_turns(model_fragments),
                Content(role="user", parts=tuple(round_responses)),
            ]
            conversation += round_turns
            if on_round is not None:
                on_round(list(round_turns))
            remaining -= 1
