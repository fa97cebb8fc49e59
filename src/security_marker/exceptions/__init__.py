"""Exception hierarchy for Security Marker."""

from .base import SecurityMarkerError
from .config import ConfigurationError, InvalidConfigError
from .pipeline import (
    CacheStorageError,
    ClassificationError,
    ExtractorUnavailableError,
    GenerationError,
    PipelineError,
    ResponseParseError,
    SymbolIndexError,
)

__all__ = [
    "SecurityMarkerError",
    "ConfigurationError",
    "InvalidConfigError",
    "PipelineError",
    "ExtractorUnavailableError",
    "SymbolIndexError",
    "GenerationError",
    "ResponseParseError",
    "ClassificationError",
    "CacheStorageError",
]
