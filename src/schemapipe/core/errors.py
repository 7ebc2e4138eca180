"""Error types and pipeline result for the schemapipe registry."""

from dataclasses import dataclass, field as dataclass_field
from typing import Any


class SchemaPipeError(Exception):
    """Base exception for schemapipe errors."""
    pass


class SchemaCompileError(SchemaPipeError):
    """Raised when a schema cannot be compiled (malformed, unknown draft, bad pointer)."""
    pass


class MissingReferenceError(SchemaCompileError):
    """Raised by synchronous compilation when external documents are not available yet."""

    def __init__(self, uris):
        self.uris = sorted(set(uris))
        super().__init__(f"Missing schema documents: {', '.join(self.uris)}")


class ReferenceResolutionError(SchemaPipeError):
    """Raised when a reference cannot be resolved against a validator context."""

    def __init__(self, ref: str, reason: str = ""):
        self.ref = ref
        self.reason = reason
        message = f"Cannot resolve reference '{ref}'"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class ReferenceFetchError(SchemaPipeError):
    """Raised when a remote schema document cannot be fetched."""

    def __init__(self, uri: str, status: int | None, reason: str | None = None):
        self.uri = uri
        self.status = status
        self.reason = reason
        if reason is None:
            super().__init__(f"Request failed. Status Code: {status} ({uri})")
        else:
            super().__init__(f"Request failed. {reason} ({uri})")


class OrderedSetError(SchemaPipeError):
    """Base exception for transform ordering errors."""
    pass


class CircularDependencyError(OrderedSetError):
    """Raised when transform dependencies form a cycle."""

    def __init__(self, items: list[str]):
        self.items = list(items)
        super().__init__(f"Circular dependency: {' -> '.join(self.items)}")


class DependencyNotFoundError(OrderedSetError):
    """Raised when a declared dependency was never registered."""

    def __init__(self, item: str, dependency: str):
        self.item = item
        self.dependency = dependency
        super().__init__(f"'{item}' depends on '{dependency}', which was never added")


class OrderedSetLockedError(OrderedSetError):
    """Raised when an item is added while the set is being iterated."""
    pass


@dataclass
class SchemaViolation:
    """One violated constraint as reported by the validator engine"""
    path: str  # JSON Pointer into the data: "/items/0/name"
    message: str = ""  # Human-readable message
    keyword: str = ""  # Failing schema keyword: "type", "required", ...
    schema_path: str = ""  # JSON Pointer into the schema

    def render(self) -> str:
        """Render as '<path> <message>'"""
        return f"{self.path or '/'} {self.message}"

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization"""
        return {
            "path": self.path,
            "message": self.message,
            "keyword": self.keyword,
            "schema_path": self.schema_path,
        }


@dataclass
class ValidationOutcome:
    """Result of running a validator context on one value."""
    valid: bool
    violations: list[SchemaViolation] = dataclass_field(default_factory=list)


@dataclass
class PipelineResult:
    """Result of one pipeline invocation."""
    data: Any
    success: bool
    errors: list[str] | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization"""
        result = {"data": self.data, "success": self.success}
        if self.errors is not None:
            result["errors"] = list(self.errors)
        return result
