"""
Transforms Test Suite

Tests for transforms.py:
- add_undefined_defaults() - declared-but-missing properties become None
- add_schema_defaults() - inline defaults are filled in
- remove_additional_properties() - undeclared keys are dropped
"""

import asyncio

from schemapipe.core.transforms import (
    add_schema_defaults,
    add_undefined_defaults,
    remove_additional_properties,
)
from schemapipe.core.visitor import visit_json

SCHEMA = {
    "type": "object",
    "properties": {
        "name": {"type": "string"},
        "size": {"type": "integer", "default": 1},
        "tags": {"type": "array", "default": []},
    },
    "patternProperties": {"^x-": {}},
}


class TestAddUndefinedDefaults:

    def test_adds_missing_properties(self):
        result = add_undefined_defaults({"name": "a"}, "", SCHEMA)
        assert result == {"name": "a", "size": None, "tags": None}

    def test_idempotent(self):
        """Applying it twice equals applying it once"""
        once = add_undefined_defaults({"name": "a"}, "", SCHEMA)
        assert add_undefined_defaults(once, "", SCHEMA) == once

    def test_does_not_mutate(self):
        value = {"name": "a"}
        add_undefined_defaults(value, "", SCHEMA)
        assert value == {"name": "a"}

    def test_leaves_non_objects(self):
        assert add_undefined_defaults([1], "", SCHEMA) == [1]
        assert add_undefined_defaults({"a": 1}, "", None) == {"a": 1}
        assert add_undefined_defaults({"a": 1}, "", True) == {"a": 1}

    def test_nested_through_visitor(self):
        """Run as a visitor pass, nested objects get their own declared keys"""
        schema = {
            "properties": {
                "inner": {"properties": {"x": {}, "y": {}}},
            }
        }
        result = asyncio.run(visit_json({"inner": {"x": 1}}, add_undefined_defaults, schema))
        assert result == {"inner": {"x": 1, "y": None}}


class TestAddSchemaDefaults:

    def test_fills_defaults(self):
        result = add_schema_defaults({"name": "a"}, "", SCHEMA)
        assert result == {"name": "a", "size": 1, "tags": []}

    def test_keeps_present_values(self):
        result = add_schema_defaults({"size": 5}, "", SCHEMA)
        assert result["size"] == 5

    def test_defaults_are_copied(self):
        """Each result gets its own copy of a mutable default"""
        first = add_schema_defaults({}, "", SCHEMA)
        first["tags"].append("x")
        second = add_schema_defaults({}, "", SCHEMA)
        assert second["tags"] == []
        assert SCHEMA["properties"]["tags"]["default"] == []


class TestRemoveAdditionalProperties:

    def test_drops_undeclared_keys(self):
        result = remove_additional_properties({"name": "a", "extra": 1, "x-note": 2}, "", SCHEMA)
        assert result == {"name": "a", "x-note": 2}

    def test_schema_without_properties_untouched(self):
        value = {"anything": 1}
        assert remove_additional_properties(value, "", {"type": "object"}) == value
