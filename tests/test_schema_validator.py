import pytest

from local_llm_lib.llm_core.exceptions import ToolValidationError
from local_llm_lib.llm_core.tools.schema import SchemaValidator


def test_assert_no_recursive_refs_no_recursion():
    schema = {
        "type": "object",
        "properties": {
            "prop1": {"type": "string"},
            "prop2": {"type": "object", "properties": {"subprop": {"type": "integer"}}},
        },
    }
    # Should not raise
    SchemaValidator.assert_no_recursive_refs(schema)


def test_assert_no_recursive_refs_with_recursion():
    schema = {
        "$defs": {"Node": {"type": "object", "properties": {"child": {"$ref": "#/$defs/Node"}}}},
        "properties": {"root": {"$ref": "#/$defs/Node"}},
    }
    with pytest.raises(ToolValidationError, match="Recursive structure detected"):
        SchemaValidator.assert_no_recursive_refs(schema)


def test_sanitize_schema_removes_metadata():
    schema = {
        "$schema": "http://json-schema.org/draft-07/schema#",
        "$id": "http://example.com/schema",
        "title": "MySchema",
        "type": "object",
        "properties": {"field": {"type": "string", "title": "FieldTitle"}},
        "definitions": {"SomeDef": {}},
    }
    sanitized = SchemaValidator.sanitize_schema(schema)

    assert "$schema" not in sanitized
    assert "$id" not in sanitized
    assert "title" not in sanitized
    assert "definitions" not in sanitized
    assert "title" not in sanitized["properties"]["field"]


def test_sanitize_schema_simplifies_optional():
    # Optional[int] -> anyOf: [integer, null]
    schema = {
        "type": "object",
        "properties": {
            "optional_field": {
                "anyOf": [{"type": "integer", "description": "An integer"}, {"type": "null"}],
                "description": "Parent description",
            }
        },
    }
    field = SchemaValidator.sanitize_schema(schema)["properties"]["optional_field"]

    assert "anyOf" not in field
    assert field["type"] == "integer"
    assert field["description"] == "Parent description"


def test_sanitize_schema_enforces_additional_properties():
    schema = {"type": "object", "properties": {"field": {"type": "string"}}}
    sanitized = SchemaValidator.sanitize_schema(schema)
    assert sanitized["additionalProperties"] is False


def test_normalize_input_schema():
    assert SchemaValidator.normalize_input_schema({}) == {"type": "object", "properties": {}}

    schema = {"type": "object", "properties": {"a": {"type": "string"}}, "required": ["a"]}
    normalized = SchemaValidator.normalize_input_schema(schema)
    assert normalized == schema
    assert normalized is not schema


def test_recursion_error_names_the_cycle():
    schema = {
        "$defs": {
            "A": {"type": "object", "properties": {"b": {"$ref": "#/$defs/B"}}},
            "B": {"type": "object", "properties": {"a": {"$ref": "#/$defs/A"}}},
        },
        "properties": {"root": {"$ref": "#/$defs/A"}},
    }
    with pytest.raises(ToolValidationError, match="A -> B -> A"):
        SchemaValidator.assert_no_recursive_refs(schema)
