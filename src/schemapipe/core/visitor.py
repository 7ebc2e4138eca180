"""Schema-aware traversal of JSON values.

``visit_json`` walks a value pre-order, handing each node to a visitor together with
its JSON Pointer and the subschema that applies to it, and rebuilds the tree from
what the visitor returns.
"""

import inspect
import re
from typing import Any, Awaitable, Callable

from schemapipe.core.engine import ResolvedReference, ValidatorContext, escape_pointer_token

JsonVisitor = Callable[[Any, str, Any], Any]
ReferenceResolver = Callable[[str, "ValidatorContext | None"], ResolvedReference]


def join_pointer(pointer: str, token: Any) -> str:
    """Append one reference token to a JSON Pointer"""
    return f"{pointer}/{escape_pointer_token(token)}"


async def _maybe_await(value: "Any | Awaitable[Any]") -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


# Keywords whose values map names to subschemas; merged name by name
MERGED_KEYWORDS = ("properties", "patternProperties")


def _merge(target: Any, siblings: dict) -> Any:
    """Apply the keywords written next to a $ref on top of the schema it points to"""
    if not siblings:
        return target
    merged = dict(target) if isinstance(target, dict) else {}
    for key, sibling in siblings.items():
        if key in MERGED_KEYWORDS and isinstance(sibling, dict) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **sibling}
        else:
            merged[key] = sibling
    return merged


def _dereference(schema: Any, resolver: ReferenceResolver | None,
                 context: ValidatorContext | None) -> tuple[Any, ValidatorContext | None]:
    """Follow $ref chains until a schema without $ref is reached.

    Keywords beside each $ref still apply, so they are merged over the target,
    the outermost reference winning.
    """
    seen: set[int] = set()
    layers: list[dict] = []
    while (
        resolver is not None
        and isinstance(schema, dict)
        and isinstance(schema.get("$ref"), str)
        and id(schema) not in seen
    ):
        seen.add(id(schema))
        resolved = resolver(schema["$ref"], context)
        if resolved.context is None and resolved.schema is None:
            break
        layers.append({key: child for key, child in schema.items() if key != "$ref"})
        schema, context = resolved.schema, resolved.context
    for siblings in reversed(layers):
        schema = _merge(schema, siblings)
    return schema, context


def property_schema(schema: Any, key: str) -> Any:
    """Subschema that applies to property ``key`` of an object"""
    if not isinstance(schema, dict):
        return None
    properties = schema.get("properties")
    if isinstance(properties, dict) and key in properties:
        return properties[key]
    patterns = schema.get("patternProperties")
    if isinstance(patterns, dict):
        for pattern, subschema in patterns.items():
            if re.search(pattern, key):
                return subschema
    additional = schema.get("additionalProperties")
    if isinstance(additional, dict):
        return additional
    return None


def item_schema(schema: Any, index: int) -> Any:
    """Subschema that applies to element ``index`` of an array"""
    if not isinstance(schema, dict):
        return None
    prefix = schema.get("prefixItems")
    items = schema.get("items")
    if isinstance(prefix, list):
        if index < len(prefix):
            return prefix[index]
        return items if isinstance(items, dict) else None
    if isinstance(items, list):
        # Tuple form of older drafts
        if index < len(items):
            return items[index]
        additional = schema.get("additionalItems")
        return additional if isinstance(additional, dict) else None
    return items if isinstance(items, dict) else None


async def visit_json(
    value: Any,
    visitor: JsonVisitor,
    schema: Any = None,
    resolver: ReferenceResolver | None = None,
    context: ValidatorContext | None = None,
    pointer: str = "",
) -> Any:
    """Visit every node of value and return the rebuilt tree.

    Args:
        value: JSON value to traverse. It is never modified.
        visitor: ``visitor(value, pointer, schema)`` returning the replacement
            value, or an awaitable of it
        schema: Schema for value; ``$ref`` nodes are resolved through resolver
        resolver: ``resolver(ref, context)`` returning a ResolvedReference
        context: Validator context refs are resolved against
        pointer: JSON Pointer of value inside the root document
    """
    schema, context = _dereference(schema, resolver, context)
    value = await _maybe_await(visitor(value, pointer, schema))

    if isinstance(value, dict):
        result = {}
        for key, child in value.items():
            result[key] = await visit_json(
                child, visitor, property_schema(schema, key), resolver, context,
                join_pointer(pointer, key),
            )
        return result

    if isinstance(value, list):
        result = []
        for index, child in enumerate(value):
            result.append(await visit_json(
                child, visitor, item_schema(schema, index), resolver, context,
                join_pointer(pointer, index),
            ))
        return result

    return value
