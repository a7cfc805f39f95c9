"""MCP input schema translation into the Gemini dialect."""

from __future__ import annotations

import pytest

from castor.mcp import to_gemini_schema

pytestmark = pytest.mark.unit


def test_primitive_kinds_map_one_to_one() -> None:
    for source, target in [
        ("string", "STRING"),
        ("number", "NUMBER"),
        ("integer", "INTEGER"),
        ("boolean", "BOOLEAN"),
        ("array", "ARRAY"),
        ("object", "OBJECT"),
    ]:
        assert to_gemini_schema({"type": source}) == {"type": target}


def test_unknown_keys_are_dropped_recursively() -> None:
    schema = {
        "type": "object",
        "$schema": "http://json-schema.org/draft-07/schema#",
        "additionalProperties": False,
        "properties": {
            "tags": {
                "type": "array",
                "x-order": 3,
                "items": {"type": "string", "const": "x", "maxLength": 5},
            }
        },
    }

    assert to_gemini_schema(schema) == {
        "type": "OBJECT",
        "properties": {
            "tags": {"type": "ARRAY", "items": {"type": "STRING", "maxLength": 5}}
        },
    }


def test_descriptions_enums_and_required_are_kept() -> None:
    translated = to_gemini_schema(
        {
            "type": "object",
            "properties": {
                "color": {
                    "type": "string",
                    "description": "Ink color",
                    "enum": ["red", "blue"],
                }
            },
            "required": ["color"],
        }
    )

    assert translated == {
        "type": "OBJECT",
        "properties": {
            "color": {
                "type": "STRING",
                "description": "Ink color",
                "enum": ["red", "blue"],
            }
        },
        "required": ["color"],
    }


def test_nullable_type_list() -> None:
    assert to_gemini_schema({"type": ["string", "null"]}) == {
        "type": "STRING",
        "nullable": True,
    }


def test_any_of_with_null_becomes_nullable() -> None:
    assert to_gemini_schema({"anyOf": [{"type": "integer"}, {"type": "null"}]}) == {
        "type": "INTEGER",
        "nullable": True,
    }


def test_references_are_dropped() -> None:
    translated = to_gemini_schema(
        {
            "type": "object",
            "properties": {"point": {"$ref": "#/$defs/Point"}},
            "$defs": {"Point": {"type": "object"}},
        }
    )

    assert translated == {"type": "OBJECT", "properties": {"point": {}}}


def test_empty_schema_has_no_parameters() -> None:
    assert to_gemini_schema({}) is None
    assert to_gemini_schema(None) is None
