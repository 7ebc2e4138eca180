"""Schema registry: compiles schemas into transform-and-validate pipelines.

Usage:
    registry = SchemaRegistry()
    validator = await registry.compile(schema)
    result = await validator(data)
    if not result.success:
        print(result.errors)
"""

import inspect
import logging
from typing import Any, Awaitable, Callable, Iterable

from schemapipe.config.project import RegistryConfig
from schemapipe.core.engine import (
    JsonSchemaEngine,
    ResolvedReference,
    SchemaFormat,
    ValidatorContext,
    ValidatorEngine,
)
from schemapipe.core.errors import MissingReferenceError, PipelineResult
from schemapipe.core.fetcher import RemoteSchemaCache
from schemapipe.core.ordered_set import PartiallyOrderedSet
from schemapipe.core.transforms import (
    add_schema_defaults,
    add_undefined_defaults,
    remove_additional_properties,
)
from schemapipe.core.visitor import JsonVisitor, visit_json

logger = logging.getLogger(__name__)

SchemaValidator = Callable[[Any], Awaitable[PipelineResult]]


class SchemaRegistry:
    """Owns formats, transforms and the remote document cache for a set of schemas"""

    def __init__(
        self,
        formats: Iterable[SchemaFormat] | None = None,
        *,
        config: RegistryConfig | None = None,
        engine: ValidatorEngine | None = None,
        fetcher: RemoteSchemaCache | None = None,
    ):
        self.config = config or RegistryConfig()
        self._engine = engine or JsonSchemaEngine(
            default_draft=self.config.default_draft,
            check_formats=self.config.check_formats,
        )
        self._fetcher = fetcher or RemoteSchemaCache(timeout=self.config.fetch_timeout)
        self._pre = PartiallyOrderedSet()
        self._post = PartiallyOrderedSet()

        for schema_format in formats or []:
            self.add_format(schema_format)

        if self.config.remove_additional:
            self.add_pre_transform(remove_additional_properties)
        if self.config.use_defaults:
            self.add_pre_transform(add_schema_defaults)
        self.add_post_transform(add_undefined_defaults)

    @property
    def fetcher(self) -> RemoteSchemaCache:
        return self._fetcher

    def add_format(self, schema_format: SchemaFormat) -> None:
        """Register a named string format check with the engine"""
        self._engine.add_format(schema_format.name, schema_format.formatter)

    def add_pre_transform(self, visitor: JsonVisitor, dependencies: Iterable[Any] | None = None) -> None:
        """Add a transformation step run before validation.

        Args:
            visitor: Visitor applied to every value
            dependencies: Visitors (or their names) that must run first
        """
        self._pre.add(visitor, dependencies)

    def add_post_transform(self, visitor: JsonVisitor, dependencies: Iterable[Any] | None = None) -> None:
        """Add a transformation step run after successful validation.

        The data is not validated again afterwards, so a post transform that breaks
        the schema does not produce an error.
        """
        self._post.add(visitor, dependencies)

    def add_schema(self, uri: str, document: Any) -> None:
        """Make a document available to $ref under uri without fetching it"""
        self._engine.add_schema(uri, document)

    def _resolve(self, ref: str, context: ValidatorContext | None) -> ResolvedReference:
        if context is None:
            return ResolvedReference()
        return context.resolve_reference(ref)

    async def compile(self, schema: Any) -> SchemaValidator:
        """Compile a schema into a validation pipeline.

        Compilation is attempted without network access first. Only when external
        documents are missing are they fetched, then compilation is retried.

        Raises:
            SchemaCompileError: The schema or one of its references is invalid
            ReferenceFetchError: A referenced document could not be fetched
        """
        try:
            context = self._engine.compile(schema)
        except MissingReferenceError as e:
            logger.info("Compiling asynchronously, missing documents: %s", ", ".join(e.uris))
            context = await self._engine.compile_async(schema, self._fetcher.fetch)

        async def validator(data: Any) -> PipelineResult:
            for transform in self._pre.ordered():
                logger.debug("Running pre transform %s", getattr(transform, "__name__", transform))
                data = await visit_json(data, transform, schema, self._resolve, context)

            outcome = context.validate(data)
            if inspect.isawaitable(outcome):
                outcome = await outcome

            if not outcome.valid:
                logger.debug("Validation failed with %d error(s)", len(outcome.violations))
                return PipelineResult(
                    data=data,
                    success=False,
                    errors=[violation.render() for violation in outcome.violations],
                )

            for transform in self._post.ordered():
                logger.debug("Running post transform %s", getattr(transform, "__name__", transform))
                data = await visit_json(data, transform, schema, self._resolve, context)
            return PipelineResult(data=data, success=True)

        return validator
