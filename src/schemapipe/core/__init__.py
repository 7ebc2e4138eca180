"""Core registry components."""

from schemapipe.core.errors import (
    SchemaPipeError,
    SchemaCompileError,
    MissingReferenceError,
    ReferenceResolutionError,
    ReferenceFetchError,
    CircularDependencyError,
    DependencyNotFoundError,
    OrderedSetLockedError,
    PipelineResult,
)
from schemapipe.core.ordered_set import PartiallyOrderedSet
from schemapipe.core.fetcher import HttpResponse, RemoteSchemaCache
from schemapipe.core.visitor import visit_json
from schemapipe.core.registry import SchemaRegistry

__all__ = [
    "SchemaRegistry",
    "PartiallyOrderedSet",
    "RemoteSchemaCache",
    "HttpResponse",
    "visit_json",
    "PipelineResult",
    "SchemaPipeError",
    "SchemaCompileError",
    "MissingReferenceError",
    "ReferenceResolutionError",
    "ReferenceFetchError",
    "CircularDependencyError",
    "DependencyNotFoundError",
    "OrderedSetLockedError",
]
