"""User-supplied callable tools.

``FunctionTool`` turns plain Python callables into a ``CallableTool``: the
declaration is derived from the signature (via a pydantic model) and the
docstring and is sent as plain JSON Schema. Arguments from the model are
validated against that same pydantic model before the function runs.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
import inspect
import logging
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, create_model

from castor.errors import ConfigurationError
from castor.types import CallableTool, FunctionDeclaration, FunctionResponse

if TYPE_CHECKING:
    from collections.abc import Sequence

    from castor.types import FunctionCall

logger = logging.getLogger(__name__)

Handler = Callable[..., Any]


def _summary(func: Handler) -> str | None:
    doc = inspect.getdoc(func)
    if not doc:
        return None
    return doc.split("\n\n", 1)[0].replace("\n", " ").strip() or None


def _arguments_model(func: Handler) -> type[BaseModel]:
    """Build a pydantic model mirroring *func*'s keyword-addressable parameters."""
    try:
        hints = inspect.get_annotations(func, eval_str=True)
    except Exception:
        hints = {}
    fields: dict[str, Any] = {}
    for name, param in inspect.signature(func).parameters.items():
        if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue
        if param.kind is param.POSITIONAL_ONLY:
            raise ConfigurationError(
                f"Function {func.__name__!r} has positional-only parameter {name!r}",
                hint="Tool functions are called with keyword arguments.",
            )
        annotation = hints.get(name, Any)
        default = ... if param.default is param.empty else param.default
        fields[name] = (annotation, default)
    return create_model(
        f"{func.__name__}_args",
        __config__=ConfigDict(arbitrary_types_allowed=True),
        **fields,
    )


def _as_response_payload(value: Any) -> Mapping[str, Any]:
    if isinstance(value, Mapping):
        return value
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    return {"result": value}


class FunctionTool(CallableTool):
    """A callable tool backed by local Python functions.

    Calls addressed to one ``FunctionTool`` within a round trip run
    sequentially, in the order the model issued them. Exceptions raised by a
    function propagate to the caller unchanged.

    Example:
        def custom_divide(numerator: float, denominator: float) -> float:
            return numerator / denominator

        tool = FunctionTool(custom_divide)
    """

    def __init__(self, *functions: Handler) -> None:
        """Derive declarations and argument models from *functions*."""
        self._handlers: dict[str, Handler] = {}
        self._models: dict[str, type[BaseModel]] = {}
        self._declarations: list[FunctionDeclaration] = []
        for func in functions:
            if not callable(func):
                raise ConfigurationError(
                    f"FunctionTool expects callables, got {type(func).__name__}"
                )
            model = _arguments_model(func)
            schema = model.model_json_schema()
            schema.pop("title", None)
            declaration = FunctionDeclaration(
                name=func.__name__,
                description=_summary(func),
                parameters_json_schema=schema,
            )
            self._register(declaration, func, model)

    @classmethod
    def from_handlers(
        cls,
        declarations: Sequence[FunctionDeclaration],
        handlers: Mapping[str, Handler],
    ) -> FunctionTool:
        """Pair explicit declarations with handlers looked up by name.

        Handlers receive the model's arguments as keyword arguments, without
        validation.
        """
        tool = cls()
        for declaration in declarations:
            handler = handlers.get(declaration.name)
            if handler is None:
                raise ConfigurationError(
                    f"No handler provided for function {declaration.name!r}",
                    hint="Pass handlers={name: callable} covering every declaration.",
                )
            tool._register(declaration, handler, None)
        return tool

    def _register(
        self,
        declaration: FunctionDeclaration,
        handler: Handler,
        model: type[BaseModel] | None,
    ) -> None:
        if declaration.name in self._handlers:
            raise ConfigurationError(
                f"Duplicate function name {declaration.name!r} in FunctionTool",
                hint="Each function in one FunctionTool needs a unique name.",
            )
        self._handlers[declaration.name] = handler
        if model is not None:
            self._models[declaration.name] = model
        self._declarations.append(declaration)

    async def declarations(self) -> list[FunctionDeclaration]:
        """Return the declarations derived at construction."""
        return list(self._declarations)

    async def call(self, calls: Sequence[FunctionCall]) -> list[FunctionResponse]:
        """Run each call in order and wrap its return value."""
        responses: list[FunctionResponse] = []
        for fc in calls:
            handler = self._handlers.get(fc.name)
            if handler is None:
                raise ConfigurationError(
                    f"FunctionTool has no function named {fc.name!r}"
                )
            kwargs = dict(fc.args)
            model = self._models.get(fc.name)
            if model is not None:
                validated = model.model_validate(kwargs)
                kwargs = {name: getattr(validated, name) for name in model.model_fields}

            logger.debug("Calling function %s", fc.name)
            result = handler(**kwargs)
            if inspect.isawaitable(result):
                result = await result
            responses.append(
                FunctionResponse(
                    name=fc.name, response=_as_response_payload(result), id=fc.id
                )
            )
        return responses
