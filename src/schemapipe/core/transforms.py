"""Built-in transforms, usable as pre or post visitors.

Each transform has the visitor signature ``(value, pointer, schema)`` and returns a
new value, leaving its input untouched.
"""

import copy
import re
from typing import Any


def _declared_properties(value: Any, schema: Any) -> dict | None:
    if not isinstance(value, dict) or not isinstance(schema, dict):
        return None
    properties = schema.get("properties")
    return properties if isinstance(properties, dict) else None


def add_undefined_defaults(value: Any, pointer: str, schema: Any) -> Any:
    """Add every declared but missing property with a None value.

    Running it twice gives the same result as running it once.
    """
    properties = _declared_properties(value, schema)
    if properties is None:
        return value
    missing = [key for key in properties if key not in value]
    if not missing:
        return value
    return {**value, **{key: None for key in missing}}


def add_schema_defaults(value: Any, pointer: str, schema: Any) -> Any:
    """Fill missing properties from their inline ``default``"""
    properties = _declared_properties(value, schema)
    if properties is None:
        return value
    result = dict(value)
    for key, subschema in properties.items():
        if key not in result and isinstance(subschema, dict) and "default" in subschema:
            result[key] = copy.deepcopy(subschema["default"])
    return result


def remove_additional_properties(value: Any, pointer: str, schema: Any) -> Any:
    """Drop keys neither declared in ``properties`` nor matched by ``patternProperties``"""
    properties = _declared_properties(value, schema)
    if properties is None:
        return value
    patterns = schema.get("patternProperties") or {}
    return {
        key: child
        for key, child in value.items()
        if key in properties or any(re.search(pattern, key) for pattern in patterns)
    }
