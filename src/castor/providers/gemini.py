"""Gemini provider implementation."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from castor.errors import APIError
from castor.providers._errors import wrap_provider_error
from castor.types import (
    Candidate,
    Content,
    FileDataPart,
    FunctionCall,
    FunctionResponse,
    GenerateContentResponse,
    InlineDataPart,
    Part,
    TextPart,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from castor.providers.base import ProviderRequest
    from castor.types import FunctionDeclaration, Tool


class GeminiProvider:
    """Google Gemini API provider backed by the ``google-genai`` SDK."""

    def __init__(self, api_key: str) -> None:
        """Create provider with an API key."""
        self.api_key = api_key
        self._client: Any = None

    def _get_client(self) -> Any:
        """Lazy-initialize the Gemini client."""
        if self._client is None:
            try:
                from google import genai
            except ImportError as e:
                raise APIError(
                    "google-genai package not installed",
                    hint="pip install google-genai",
                ) from e

            self._client = genai.Client(api_key=self.api_key)
        return self._client

    # -------------------------------------------------------------------------
    # castor -> SDK
    # -------------------------------------------------------------------------

    @staticmethod
    def _convert_part(part: Part) -> Any:
        from google.genai import types

        if isinstance(part, TextPart):
            return types.Part(
                text=part.text,
                thought=True if part.thought else None,
                thought_signature=part.thought_signature,
            )
        if isinstance(part, InlineDataPart):
            return types.Part(
                inline_data=types.Blob(data=bytes(part.data), mime_type=part.mime_type)
            )
        if isinstance(part, FileDataPart):
            return types.Part(
                file_data=types.FileData(file_uri=part.uri, mime_type=part.mime_type)
            )
        if isinstance(part, FunctionCall):
            return types.Part(
                function_call=types.FunctionCall(
                    name=part.name, args=dict(part.args), id=part.id
                ),
                thought_signature=part.thought_signature,
            )
        return types.Part(
            function_response=types.FunctionResponse(
                name=part.name, response=dict(part.response), id=part.id
            )
        )

    def _convert_content(self, content: Content) -> Any:
        from google.genai import types

        return types.Content(
            role=content.role, parts=[self._convert_part(p) for p in content.parts]
        )

    @staticmethod
    def _convert_declaration(declaration: FunctionDeclaration) -> Any:
        from google.genai import types

        parameters = (
            types.Schema.model_validate(dict(declaration.parameters))
            if declaration.parameters
            else None
        )
        return types.FunctionDeclaration(
            name=declaration.name,
            description=declaration.description,
            parameters=parameters,
            parameters_json_schema=(
                dict(declaration.parameters_json_schema)
                if declaration.parameters_json_schema is not None
                else None
            ),
            behavior=declaration.behavior.value if declaration.behavior else None,
        )

    def _convert_tools(self, tools: tuple[Tool, ...]) -> list[Any]:
        from google.genai import types

        return [
            types.Tool(
                function_declarations=[
                    self._convert_declaration(d) for d in tool.function_declarations
                ]
            )
            for tool in tools
        ]

    def _build_config(self, request: ProviderRequest) -> Any:
        from google.genai import types

        config = request.config
        config_kwargs: dict[str, Any] = {
            # castor drives the function-calling loop itself.
            "automatic_function_calling": types.AutomaticFunctionCallingConfig(
                disable=True
            ),
        }

        if isinstance(config.system_instruction, Content):
            config_kwargs["system_instruction"] = self._convert_content(
                config.system_instruction
            )
        elif config.system_instruction is not None:
            config_kwargs["system_instruction"] = config.system_instruction
        if config.temperature is not None:
            config_kwargs["temperature"] = config.temperature
        if config.top_p is not None:
            config_kwargs["top_p"] = config.top_p
        if config.max_output_tokens is not None:
            config_kwargs["max_output_tokens"] = config.max_output_tokens

        response_schema = config.response_schema_json()
        if response_schema is not None:
            config_kwargs["response_mime_type"] = "application/json"
            config_kwargs["response_json_schema"] = response_schema

        if config.tools:
            tools: tuple[Tool, ...] = config.tools  # type: ignore[assignment]
            config_kwargs["tools"] = self._convert_tools(tools)

        fcc = config.tool_config.function_calling_config if config.tool_config else None
        if fcc is not None:
            config_kwargs["tool_config"] = types.ToolConfig(
                function_calling_config=types.FunctionCallingConfig(
                    mode=fcc.mode,
                    allowed_function_names=(
                        list(fcc.allowed_function_names)
                        if fcc.allowed_function_names is not None
                        else None
                    ),
                )
            )

        if request.headers:
            config_kwargs["http_options"] = types.HttpOptions(
                headers=dict(request.headers)
            )

        return types.GenerateContentConfig(**config_kwargs)

    # -------------------------------------------------------------------------
    # Round trips
    # -------------------------------------------------------------------------

    async def generate(self, request: ProviderRequest) -> GenerateContentResponse:
        """Generate content from the Gemini model."""
        client = self._get_client()
        try:
            response = await client.aio.models.generate_content(
                model=request.model,
                contents=[self._convert_content(c) for c in request.contents],
                config=self._build_config(request),
            )

            if not response:
                raise APIError("Gemini returned an empty response.")

            return self._parse_response(response)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise wrap_provider_error(
                e,
                provider="gemini",
                phase="generate",
                message="Gemini generate failed",
            ) from e

    async def stream(
        self, request: ProviderRequest
    ) -> AsyncIterator[GenerateContentResponse]:
        """Stream content from the Gemini model, one fragment at a time."""
        client = self._get_client()
        try:
            iterator = await client.aio.models.generate_content_stream(
                model=request.model,
                contents=[self._convert_content(c) for c in request.contents],
                config=self._build_config(request),
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise wrap_provider_error(
                e,
                provider="gemini",
                phase="stream",
                message="Gemini stream failed",
            ) from e

        try:
            while True:
                try:
                    chunk = await anext(iterator)
                except StopAsyncIteration:
                    break
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    raise wrap_provider_error(
                        e,
                        provider="gemini",
                        phase="stream",
                        message="Gemini stream failed",
                    ) from e
                yield self._parse_response(chunk)
        finally:
            aclose = getattr(iterator, "aclose", None)
            if callable(aclose):
                await aclose()

    async def aclose(self) -> None:
        """Close the underlying SDK client, if one was created."""
        if self._client is None:
            return
        aclose = getattr(self._client.aio, "aclose", None)
        if callable(aclose):
            await aclose()

    # -------------------------------------------------------------------------
    # SDK -> castor
    # -------------------------------------------------------------------------

    @staticmethod
    def _parse_part(part: Any) -> Part | None:
        """Convert one SDK part, skipping kinds castor does not model."""
        signature = getattr(part, "thought_signature", None)
        function_call = getattr(part, "function_call", None)
        if function_call is not None:
            return FunctionCall(
                name=str(function_call.name),
                args=function_call.args or {},
                id=function_call.id,
                thought_signature=signature,
            )
        function_response = getattr(part, "function_response", None)
        if function_response is not None:
            return FunctionResponse(
                name=str(function_response.name),
                response=function_response.response or {},
                id=function_response.id,
            )
        text = getattr(part, "text", None)
        if isinstance(text, str):
            return TextPart(
                text=text,
                thought=bool(getattr(part, "thought", False)),
                thought_signature=signature,
            )
        inline_data = getattr(part, "inline_data", None)
        if inline_data is not None and inline_data.data is not None:
            return InlineDataPart(
                data=inline_data.data,
                mime_type=inline_data.mime_type or "application/octet-stream",
            )
        file_data = getattr(part, "file_data", None)
        if file_data is not None and file_data.file_uri:
            return FileDataPart(uri=file_data.file_uri, mime_type=file_data.mime_type)
        return None

    def _parse_content(self, content: Any) -> Content | None:
        if content is None:
            return None
        parts = [self._parse_part(p) for p in content.parts or ()]
        role = content.role if content.role in ("user", "model") else "model"
        return Content(role=role, parts=tuple(p for p in parts if p is not None))

    def _parse_response(self, response: Any) -> GenerateContentResponse:
        """Parse a Gemini response (or stream chunk) into castor types."""
        candidates: list[Candidate] = []
        for index, cand in enumerate(getattr(response, "candidates", None) or ()):
            finish_reason = getattr(cand, "finish_reason", None)
            if finish_reason is not None:
                finish_reason = getattr(finish_reason, "value", str(finish_reason))
            candidates.append(
                Candidate(
                    content=self._parse_content(getattr(cand, "content", None)),
                    finish_reason=finish_reason,
                    index=cand.index if isinstance(cand.index, int) else index,
                )
            )

        usage: dict[str, int] = {}
        um = getattr(response, "usage_metadata", None)
        if um is not None:
            # Gemini SDK attrs -> provider-agnostic keys
            usage = {
                "input_tokens": getattr(um, "prompt_token_count", None) or 0,
                "output_tokens": getattr(um, "candidates_token_count", None) or 0,
                "total_tokens": getattr(um, "total_token_count", None) or 0,
            }
            thoughts_toks = getattr(um, "thoughts_token_count", None)
            if thoughts_toks is not None:
                usage["reasoning_tokens"] = thoughts_toks

        return GenerateContentResponse(
            candidates=tuple(candidates),
            usage=usage,
            model_version=getattr(response, "model_version", None),
        )
