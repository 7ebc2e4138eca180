"""Validator engine capability backed by jsonschema.

The registry only talks to the two interfaces defined here:

- ``ValidatorEngine.compile(schema)`` returns a ``ValidatorContext`` or raises
  ``MissingReferenceError`` when external documents are needed,
- ``ValidatorContext.validate(value)`` and ``ValidatorContext.resolve_reference(ref)``.

``JsonSchemaEngine`` implements them with ``jsonschema`` validators and a
``referencing.Registry`` holding every document ingested so far.
"""

import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Iterator
from urllib.parse import urldefrag, urljoin

import jsonschema
import referencing.jsonschema
from jsonschema import validators
from jsonschema.exceptions import SchemaError, ValidationError as JsonSchemaValidationError
from jsonschema_specifications import REGISTRY as SPECIFICATIONS
from referencing import Registry, Resource
from referencing.exceptions import Unresolvable

from schemapipe.core.errors import (
    MissingReferenceError,
    ReferenceResolutionError,
    SchemaCompileError,
    SchemaViolation,
    ValidationOutcome,
)

logger = logging.getLogger(__name__)


# Supported drafts: name -> (validator class, referencing specification)
DRAFTS = {
    "4": (jsonschema.Draft4Validator, referencing.jsonschema.DRAFT4),
    "6": (jsonschema.Draft6Validator, referencing.jsonschema.DRAFT6),
    "7": (jsonschema.Draft7Validator, referencing.jsonschema.DRAFT7),
    "2019-09": (jsonschema.Draft201909Validator, referencing.jsonschema.DRAFT201909),
    "2020-12": (jsonschema.Draft202012Validator, referencing.jsonschema.DRAFT202012),
}

# Keywords whose values are data, not subschemas
DATA_KEYWORDS = {"enum", "const", "default", "examples"}

# Keywords whose values map names to subschemas
SCHEMA_MAP_KEYWORDS = {
    "properties", "patternProperties", "definitions", "$defs", "dependentSchemas",
}


@dataclass
class ResolvedReference:
    """A resolved reference: the context to keep resolving from and the schema found."""
    context: "ValidatorContext | None" = None
    schema: Any = None


@dataclass
class SchemaFormatter:
    """Check function for a named string format.

    ``validate`` returns a bool, or an awaitable bool when the check is asynchronous.
    """
    validate: Callable[[Any], "bool | Awaitable[bool]"]
    is_async: bool = False


@dataclass
class SchemaFormat:
    name: str
    formatter: SchemaFormatter


class ValidatorContext(ABC):
    """Compiled representation of one schema"""

    @property
    @abstractmethod
    def schema(self) -> Any:
        """The schema this context validates against"""

    @abstractmethod
    def validate(self, value: Any) -> "ValidationOutcome | Awaitable[ValidationOutcome]":
        """Validate a value. May answer synchronously or with an awaitable."""

    @abstractmethod
    def resolve_reference(self, ref: str) -> ResolvedReference:
        """Resolve a reference relative to this context. Never mutates the context."""


class ValidatorEngine(ABC):
    """Compiles schemas into validator contexts"""

    @abstractmethod
    def compile(self, schema: Any) -> ValidatorContext:
        """Compile without network access.

        Raises:
            MissingReferenceError: external documents must be loaded first
            SchemaCompileError: the schema is invalid
        """

    @abstractmethod
    async def compile_async(
        self, schema: Any, load_schema: Callable[[str], Awaitable[Any]]
    ) -> ValidatorContext:
        """Compile, loading missing documents through load_schema"""

    @abstractmethod
    def add_format(self, name: str, formatter: SchemaFormatter) -> None:
        """Register a named string format check"""

    @abstractmethod
    def add_schema(self, uri: str, document: Any) -> None:
        """Make a document available to references under uri"""


class _FormatChecks:
    """Custom format answers for one validate() call.

    ``results`` holds settled answers keyed by (format, value). ``pending`` collects
    awaitable checks met during a run, in document order, until they are awaited.
    """

    def __init__(self):
        self.results: dict[tuple[str, str], bool] = {}
        self.pending: dict[tuple[str, str], Awaitable[bool]] = {}

    def close_pending(self) -> None:
        for check in self.pending.values():
            _close(check)
        self.pending = {}


def _close(check: Awaitable) -> None:
    """Close a coroutine that will never be awaited"""
    close = getattr(check, "close", None)
    if close is not None:
        close()


_FORMAT_CHECKS: ContextVar[_FormatChecks | None] = ContextVar("schemapipe_format_checks", default=None)


def escape_pointer_token(token: Any) -> str:
    return str(token).replace("~", "~0").replace("/", "~1")


def _pointer(parts: Iterable[Any]) -> str:
    return "".join(f"/{escape_pointer_token(part)}" for part in parts)


def _violation(error: JsonSchemaValidationError) -> SchemaViolation:
    return SchemaViolation(
        path=_pointer(error.absolute_path),
        message=error.message,
        keyword=str(error.validator),
        schema_path=_pointer(error.absolute_schema_path),
    )


def iter_references(node: Any, base: str = "", names: bool = False) -> Iterator[tuple[str, str]]:
    """Yield (ref, scope) for every ``$ref`` in a schema document.

    ``scope`` is the base URI in effect at the ref, following nested ``$id`` values.
    """
    if isinstance(node, list):
        for item in node:
            yield from iter_references(item, base)
        return
    if not isinstance(node, dict):
        return
    if names:
        for value in node.values():
            yield from iter_references(value, base)
        return

    scope = base
    if isinstance(node.get("$id"), str):
        scope = urljoin(base, node["$id"])
    if isinstance(node.get("$ref"), str):
        yield node["$ref"], scope

    for key, value in node.items():
        if key in DATA_KEYWORDS:
            continue
        yield from iter_references(value, scope, names=key in SCHEMA_MAP_KEYWORDS)


class JsonSchemaContext(ValidatorContext):
    """Validator context over a jsonschema validator and a referencing resolver"""

    def __init__(self, validator: Any, schema: Any, resolver: Any, root: bool = True):
        self._validator = validator
        self._schema = schema
        self._resolver = resolver
        self._root = root

    @property
    def schema(self) -> Any:
        return self._schema

    def validate(self, value: Any) -> "ValidationOutcome | Awaitable[ValidationOutcome]":
        """Validate value.

        When a custom format answers with an awaitable, a coroutine is returned
        instead: it awaits the checks, then validates again with their answers.
        """
        checks = _FormatChecks()
        errors = self._run(value, checks)
        if not checks.pending:
            return self._outcome(errors)
        return self._settle(value, checks)

    def _run(self, value: Any, checks: _FormatChecks) -> list[JsonSchemaValidationError]:
        token = _FORMAT_CHECKS.set(checks)
        try:
            if self._root:
                return list(self._validator.iter_errors(value))
            return list(self._validator.descend(value, self._schema, resolver=self._resolver))
        finally:
            _FORMAT_CHECKS.reset(token)

    async def _settle(self, value: Any, checks: _FormatChecks) -> ValidationOutcome:
        # Answers can open new branches (if/then, anyOf) with checks of their own
        pending: dict = {}
        try:
            while checks.pending:
                pending, checks.pending = checks.pending, {}
                while pending:
                    key = next(iter(pending))
                    check = pending.pop(key)
                    checks.results[key] = bool(await check)
                errors = self._run(value, checks)
        except BaseException:
            checks.pending.update(pending)
            checks.close_pending()
            raise
        return self._outcome(errors)

    @staticmethod
    def _outcome(errors: list[JsonSchemaValidationError]) -> ValidationOutcome:
        return ValidationOutcome(
            valid=not errors,
            violations=[_violation(error) for error in errors],
        )

    def resolve_reference(self, ref: str) -> ResolvedReference:
        try:
            resolved = self._resolver.lookup(ref)
        except Unresolvable as error:
            raise ReferenceResolutionError(ref, str(error)) from error
        context = JsonSchemaContext(
            self._validator, resolved.contents, resolved.resolver, root=False,
        )
        return ResolvedReference(context=context, schema=resolved.contents)


class JsonSchemaEngine(ValidatorEngine):
    """ValidatorEngine implementation on top of jsonschema"""

    def __init__(self, default_draft: str = "2020-12", check_formats: bool = True):
        if str(default_draft) not in DRAFTS:
            raise SchemaCompileError(
                f"Unknown draft '{default_draft}'. Valid drafts: {list(DRAFTS)}"
            )
        self._default_validator, self._specification = DRAFTS[str(default_draft)]
        self._check_formats = check_formats
        self._formats: dict[str, SchemaFormatter] = {}
        self._registry: Registry = SPECIFICATIONS

    def add_format(self, name: str, formatter: SchemaFormatter) -> None:
        self._formats[name] = formatter

    def add_schema(self, uri: str, document: Any) -> None:
        resource = self._resource(document)
        registry = self._registry.with_resource(uri, resource)
        resource_id = resource.id()
        if resource_id and resource_id.rstrip("#") != uri.rstrip("#"):
            registry = registry.with_resource(resource_id, resource)
        self._registry = registry.crawl()

    def compile(self, schema: Any) -> ValidatorContext:
        validator_cls = validators.validator_for(schema, default=self._default_validator)
        try:
            validator_cls.check_schema(schema)
        except SchemaError as error:
            raise SchemaCompileError(f"Invalid schema: {error.message}") from error

        root = self._resource(schema)
        root_uri = (root.id() or "").rstrip("#")
        registry = self._registry.with_resource(root_uri, root).crawl()
        resolver = registry.resolver(base_uri=root_uri)
        self._check_references(schema, root_uri, registry, resolver)

        extended = validators.extend(validator_cls, {"format": self._format_keyword()})
        validator = extended(
            schema,
            registry=registry,
            format_checker=validator_cls.FORMAT_CHECKER if self._check_formats else None,
        )
        return JsonSchemaContext(validator, schema, resolver)

    async def compile_async(
        self, schema: Any, load_schema: Callable[[str], Awaitable[Any]]
    ) -> ValidatorContext:
        loaded: set[str] = set()
        while True:
            try:
                return self.compile(schema)
            except MissingReferenceError as error:
                repeated = loaded.intersection(error.uris)
                if repeated:
                    raise SchemaCompileError(
                        f"Loaded documents could not satisfy references: {sorted(repeated)}"
                    ) from error
                logger.debug("Loading %d missing schema document(s)", len(error.uris))
                documents = await asyncio.gather(*(load_schema(uri) for uri in error.uris))
                for uri, document in zip(error.uris, documents):
                    self.add_schema(uri, document)
                loaded.update(error.uris)

    def _resource(self, document: Any) -> Resource:
        return Resource.from_contents(document, default_specification=self._specification)

    def _check_references(self, schema: Any, root_uri: str, registry: Registry, resolver: Any) -> None:
        """Verify every reference reachable from schema resolves.

        Documents absent from the registry are collected and reported together via
        MissingReferenceError; anything else unresolvable is a compile error.
        """
        missing: set[str] = set()
        seen = {root_uri}
        queue: list[tuple[Any, str]] = [(schema, root_uri)]

        while queue:
            document, base = queue.pop(0)
            for ref, scope in iter_references(document, base):
                if ref.startswith("#"):
                    uri, target = urldefrag(scope)[0], f"{urldefrag(scope)[0]}{ref}"
                else:
                    target = urljoin(scope, ref)
                    uri = urldefrag(target)[0]
                if uri and uri not in registry:
                    missing.add(uri)
                    continue
                try:
                    resolver.lookup(target)
                except Unresolvable as error:
                    raise SchemaCompileError(
                        f"Unresolvable reference '{ref}' (in '{base or '#'}'): {error}"
                    ) from error
                if uri not in seen and uri not in SPECIFICATIONS:
                    seen.add(uri)
                    queue.append((registry[uri].contents, uri))

        if missing:
            raise MissingReferenceError(missing)

    def _format_keyword(self):
        formats = self._formats

        def format_(validator, format_name, instance, schema):
            formatter = formats.get(format_name)
            if formatter is None:
                if validator.format_checker is not None:
                    try:
                        validator.format_checker.check(instance, format_name)
                    except jsonschema.FormatError as error:
                        yield JsonSchemaValidationError(error.message, cause=error.cause)
                return
            if not isinstance(instance, str):
                return

            checks = _FORMAT_CHECKS.get()
            key = (format_name, instance)
            if checks is not None and key in checks.results:
                valid = checks.results[key]
            else:
                result = formatter.validate(instance)
                if inspect.isawaitable(result):
                    if checks is None:
                        _close(result)
                        raise RuntimeError(f"Asynchronous format '{format_name}' checked outside validate()")
                    if key in checks.pending:
                        _close(result)
                    else:
                        checks.pending[key] = result
                    # Provisional until the check is awaited and the value revalidated
                    return
                valid = bool(result)
                if checks is not None:
                    checks.results[key] = valid
            if not valid:
                yield JsonSchemaValidationError(f"{instance!r} is not a {format_name!r}")

        return format_
