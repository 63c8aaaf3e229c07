"""Data-source collectors and the pipeline that runs them."""

from .base import DEFAULT_TIMEOUT, BaseCollector, CollectorMetadata, SourceConfig
from .errors import (
    CollectorError,
    ConfigurationError,
    ExportError,
    InframapError,
    PipelineError,
    SourceError,
    ValidationFailed,
    ValidationProblem,
)
from .merger import merge
from .pipeline import CollectResult, ValidationReport, collect_infrastructure, validate_sources
from .registry import CollectorRegistry, default_registry

__all__ = [
    "DEFAULT_TIMEOUT",
    "BaseCollector",
    "CollectResult",
    "CollectorError",
    "CollectorMetadata",
    "CollectorRegistry",
    "ConfigurationError",
    "ExportError",
    "InframapError",
    "PipelineError",
    "SourceConfig",
    "SourceError",
    "ValidationFailed",
    "ValidationProblem",
    "ValidationReport",
    "collect_infrastructure",
    "default_registry",
    "merge",
    "validate_sources",
]
