"""FunctionTool: declarations from Python callables, validated execution."""

from __future__ import annotations

from pydantic import BaseModel, ValidationError
import pytest

from castor.errors import ConfigurationError
from castor.tools import FunctionTool
from castor.types import FunctionCall, FunctionDeclaration

pytestmark = pytest.mark.unit


def custom_divide(numerator: float, denominator: float = 1.0) -> float:
    """Divide two numbers.

    Longer explanation that should not end up in the declaration.
    """
    return numerator / denominator


async def fetch_weather(city: str) -> dict[str, str]:
    """Look up the weather for a city."""
    return {"city": city, "forecast": "sunny"}


class Reading(BaseModel):
    celsius: float


def read_thermometer() -> Reading:
    return Reading(celsius=21.5)


@pytest.mark.asyncio
async def test_declaration_is_derived_from_signature_and_docstring() -> None:
    [declaration] = await FunctionTool(custom_divide).declarations()

    assert declaration.name == "custom_divide"
    assert declaration.description == "Divide two numbers."
    assert declaration.parameters is None
    schema = declaration.parameters_json_schema
    assert schema is not None
    assert "title" not in schema
    assert schema["type"] == "object"
    assert schema["required"] == ["numerator"]
    assert schema["properties"]["numerator"]["type"] == "number"
    assert schema["properties"]["denominator"]["default"] == 1.0


@pytest.mark.asyncio
async def test_nested_models_keep_their_references() -> None:
    def log_reading(reading: Reading, note: str = "") -> str:
        """Store a thermometer reading."""
        return note

    [declaration] = await FunctionTool(log_reading).declarations()

    schema = declaration.parameters_json_schema
    assert schema is not None
    assert schema["properties"]["reading"] == {"$ref": "#/$defs/Reading"}
    assert schema["$defs"]["Reading"]["properties"]["celsius"]["type"] == "number"


@pytest.mark.asyncio
async def test_function_without_docstring_has_no_description() -> None:
    [declaration] = await FunctionTool(read_thermometer).declarations()
    assert declaration.description is None


@pytest.mark.asyncio
async def test_sync_results_are_wrapped_under_result() -> None:
    tool = FunctionTool(custom_divide)

    [response] = await tool.call(
        [
            FunctionCall(
                name="custom_divide",
                args={"numerator": 10, "denominator": 4},
                id="c1",
            )
        ]
    )

    assert response.name == "custom_divide"
    assert response.response == {"result": 2.5}
    assert response.id == "c1"


@pytest.mark.asyncio
async def test_async_mapping_results_are_passed_through() -> None:
    tool = FunctionTool(fetch_weather)

    [response] = await tool.call(
        [FunctionCall(name="fetch_weather", args={"city": "Lisbon"})]
    )

    assert response.response == {"city": "Lisbon", "forecast": "sunny"}


@pytest.mark.asyncio
async def test_pydantic_results_are_dumped() -> None:
    [response] = await FunctionTool(read_thermometer).call(
        [FunctionCall(name="read_thermometer")]
    )
    assert response.response == {"celsius": 21.5}


@pytest.mark.asyncio
async def test_arguments_are_validated_before_the_call() -> None:
    calls: list[float] = []

    def record(value: float) -> float:
        """Record a value."""
        calls.append(value)
        return value

    tool = FunctionTool(record)

    with pytest.raises(ValidationError):
        await tool.call([FunctionCall(name="record", args={"value": "not a number"})])
    assert calls == []


@pytest.mark.asyncio
async def test_batch_runs_sequentially_in_call_order() -> None:
    order: list[str] = []

    async def step(label: str) -> str:
        """Record a step."""
        order.append(label)
        return label

    tool = FunctionTool(step)
    await tool.call(
        [FunctionCall(name="step", args={"label": label}) for label in "abc"]
    )

    assert order == ["a", "b", "c"]


@pytest.mark.asyncio
async def test_function_exceptions_propagate() -> None:
    with pytest.raises(ZeroDivisionError):
        await FunctionTool(custom_divide).call(
            [
                FunctionCall(
                    name="custom_divide", args={"numerator": 1, "denominator": 0}
                )
            ]
        )


def test_duplicate_function_names_are_rejected() -> None:
    with pytest.raises(ConfigurationError):
        FunctionTool(custom_divide, custom_divide)


def test_positional_only_parameters_are_rejected() -> None:
    def positional(x: int, /) -> int:
        return x

    with pytest.raises(ConfigurationError):
        FunctionTool(positional)


def test_non_callables_are_rejected() -> None:
    with pytest.raises(ConfigurationError):
        FunctionTool("not a function")  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_from_handlers_pairs_explicit_declarations() -> None:
    declaration = FunctionDeclaration(
        name="customDivide",
        parameters={"type": "OBJECT", "properties": {"a": {"type": "NUMBER"}}},
    )
    tool = FunctionTool.from_handlers([declaration], {"customDivide": lambda **_: 42})

    assert await tool.declarations() == [declaration]
    [response] = await tool.call([FunctionCall(name="customDivide", args={"a": 1})])
    assert response.response == {"result": 42}


def test_from_handlers_requires_a_handler_per_declaration() -> None:
    with pytest.raises(ConfigurationError):
        FunctionTool.from_handlers([FunctionDeclaration(name="orphan")], {})
