"""schemapipe - Schema-driven validation and transformation pipelines."""

__version__ = "0.1.0"

from schemapipe.core.registry import SchemaRegistry
from schemapipe.core.engine import SchemaFormat, SchemaFormatter
from schemapipe.core.errors import PipelineResult
from schemapipe.config.project import ProjectConfig, RegistryConfig

__all__ = [
    "SchemaRegistry",
    "SchemaFormat",
    "SchemaFormatter",
    "PipelineResult",
    "ProjectConfig",
    "RegistryConfig",
]
