"""Validation handlers for schemapipe."""

from pathlib import Path
from typing import Any

import yaml

from schemapipe.core.errors import SchemaPipeError
from schemapipe.core.registry import SchemaRegistry
from schemapipe.io import load_document


def load_input(value: Any, path: str | None, name: str) -> Any:
    """Load a document from an inline value or file path"""
    if value is not None:
        return value
    if path:
        return load_document(Path(path))
    raise ValueError(f"Either '{name}' or '{name}_path' must be provided")


def preload_refs(registry: SchemaRegistry, refs: dict[str, Any] | None) -> None:
    """Register local documents under the URIs schemas reference them by.

    Values are documents, or file paths to load them from.
    """
    for uri, source in (refs or {}).items():
        document = load_document(Path(source)) if isinstance(source, (str, Path)) else source
        registry.add_schema(uri, document)


async def validate_data(registry: SchemaRegistry, args: dict) -> dict:
    """Run data through the schema's transform and validation pipeline"""
    schema = load_input(args.get("schema"), args.get("schema_path"), "schema")
    data = load_input(args.get("data"), args.get("data_path"), "data")
    preload_refs(registry, args.get("refs"))

    validator = await registry.compile(schema)
    result = await validator(data)

    errors = result.errors or []
    return {
        "success": result.success,
        "data": result.data,
        "errors": errors,
        "error_count": len(errors),
    }


async def check_schema(registry: SchemaRegistry, args: dict) -> dict:
    """Check that a schema compiles, fetching remote references if needed"""
    try:
        schema = load_input(args.get("schema"), args.get("schema_path"), "schema")
        preload_refs(registry, args.get("refs"))
        await registry.compile(schema)
    except (SchemaPipeError, ValueError, yaml.YAMLError, OSError) as e:
        return {"valid": False, "error": str(e)}

    return {"valid": True, "error": None}


# Handler registry
HANDLERS = {
    "validate_data": validate_data,
    "check_schema": check_schema,
}
