"""Multi-turn chat sessions with comprehensive and curated history.

The comprehensive history records every turn, including function-calling
turns and user turns whose round failed. The curated history keeps only
rounds that ended with a valid model answer; it is what gets sent to the
model on the next message.
"""

from __future__ import annotations

from contextlib import aclosing
import logging
from typing import TYPE_CHECKING

from castor.afc import should_append_afc_history
from castor.errors import ConfigurationError
from castor.models import merge_turns
from castor.request import to_content
from castor.types import Content, GenerateContentConfig, is_valid_content

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from castor.models import Models
    from castor.request import ContentInput, PartInput
    from castor.types import GenerateContentResponse

logger = logging.getLogger(__name__)


def extract_curated_history(history: Sequence[Content]) -> list[Content]:
    """Drop model turns that are not valid, together with their user turn.

    Consecutive model turns form one answer; if any of them is invalid the
    whole answer and the user turn before it are left out.
    """
    curated: list[Content] = []
    i = 0
    while i < len(history):
        if history[i].role == "user":
            curated.append(history[i])
            i += 1
            continue
        answer: list[Content] = []
        valid = True
        while i < len(history) and history[i].role == "model":
            answer.append(history[i])
            valid = valid and is_valid_content(history[i])
            i += 1
        if valid:
            curated += answer
        elif curated:
            curated.pop()
    return curated


class Chat:
    """A chat session bound to one model and a default config.

    Sends on one chat are expected to be sequential; the session does no
    locking of its own.
    """

    def __init__(
        self,
        models: Models,
        *,
        model: str,
        config: GenerateContentConfig | None = None,
        history: Sequence[Content] = (),
    ) -> None:
        """Start a session from an optional initial history."""
        for turn in history:
            if not isinstance(turn, Content):
                raise ConfigurationError(
                    f"history must contain Content turns, got {type(turn).__name__}",
                    hint="Build turns with Content(role='user', parts=(...)).",
                )
        self._models = models
        self.model = model
        self.config = config
        self._comprehensive: list[Content] = list(history)
        self._curated: list[Content] = extract_curated_history(history)

    def get_history(self, *, curated: bool = False) -> list[Content]:
        """Return a copy of the comprehensive (default) or curated history."""
        return list(self._curated if curated else self._comprehensive)

    async def send_message(
        self,
        message: ContentInput | Sequence[PartInput],
        *,
        config: GenerateContentConfig | None = None,
    ) -> GenerateContentResponse:
        """Send one message and record the exchange.

        Args:
            message: A string, part, list of parts, or a user Content.
            config: Overrides the chat's default config for this message.

        Example:
            chat = client.chats.create(model="gemini-2.5-flash")
            response = await chat.send_message("Why is the sky blue?")
            print(response.text)
        """
        user_turn = to_content(message)
        self._comprehensive.append(user_turn)
        contents = [*self._curated, user_turn]
        response = await self._models.generate_content(
            model=self.model,
            contents=contents,
            config=config if config is not None else self.config,
        )

        history = response.automatic_function_calling_history
        afc_turns = list(history[len(contents) :]) if history is not None else []
        self._record(user_turn, afc_turns, response.content)
        return response

    async def send_message_stream(
        self,
        message: ContentInput | Sequence[PartInput],
        *,
        config: GenerateContentConfig | None = None,
    ) -> AsyncIterator[GenerateContentResponse]:
        """Send one message and stream the answer.

        The exchange is recorded once the returned iterator is exhausted. A
        stream that is closed early or fails records nothing beyond the user
        turn.

        Example:
            stream = await chat.send_message_stream("Tell me a story")
            async for chunk in stream:
                print(chunk.text or "", end="")
        """
        user_turn = to_content(message)
        self._comprehensive.append(user_turn)
        request_config = config if config is not None else self.config
        rounds: list[list[Content]] = []
        stream = await self._models._open_stream(
            self.model, [*self._curated, user_turn], request_config, rounds.append
        )
        return self._record_stream(user_turn, stream, rounds, request_config)

    async def _record_stream(
        self,
        user_turn: Content,
        stream: AsyncIterator[GenerateContentResponse],
        rounds: list[list[Content]],
        config: GenerateContentConfig | None,
    ) -> AsyncIterator[GenerateContentResponse]:
        # Only the fragments of the last round trip form the output turn.
        fragments: list[Content] = []
        rounds_seen = 0
        async with aclosing(stream) as chunks:  # type: ignore[type-var]
            async for chunk in chunks:
                if len(rounds) != rounds_seen:
                    rounds_seen = len(rounds)
                    fragments = []
                if chunk.content is not None:
                    fragments.append(chunk.content)
                yield chunk
        if len(rounds) != rounds_seen:
            fragments = []

        turns = merge_turns(fragments)
        output = turns[-1] if turns and turns[-1].role == "model" else None
        afc_turns = (
            [turn for round_turns in rounds for turn in round_turns]
            if should_append_afc_history(config)
            else []
        )
        self._record(user_turn, afc_turns, output)

    def _record(
        self, user_turn: Content, afc_turns: list[Content], output: Content | None
    ) -> None:
        self._comprehensive += afc_turns
        # A round without output still leaves a model turn in the full record.
        self._comprehensive.append(
            output if output is not None else Content(role="model", parts=())
        )
        if is_valid_content(output):
            self._curated += [user_turn, *afc_turns, output]  # type: ignore[list-item]
        else:
            logger.debug("Model returned no valid output; curated history unchanged")


class Chats:
    """Factory for chat sessions sharing one ``Models`` instance."""

    def __init__(self, models: Models) -> None:
        """Bind to the models layer used by every chat."""
        self._models = models

    def create(
        self,
        *,
        model: str,
        config: GenerateContentConfig | None = None,
        history: Sequence[Content] | None = None,
    ) -> Chat:
        """Create a chat session.

        Example:
            chat = client.chats.create(
                model="gemini-2.5-flash",
                config=GenerateContentConfig(tools=[FunctionTool(custom_divide)]),
            )
        """
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
        return Chat(self._models, model=model, config=config, history=history or ())
