"""Pipeline exceptions: collaborators, generation, classification, storage."""

from pathlib import Path
from typing import Any, Optional, Union

from .base import SecurityMarkerError


class PipelineError(SecurityMarkerError):
    """Base class for errors raised while producing explanations."""

    pass


class ExtractorUnavailableError(PipelineError):
    """Raised when the metrics extractor cannot process a source root."""

    def __init__(self, source_root: Union[str, Path], reason: str):
        super().__init__(
            f"Metrics extractor unavailable for {source_root}",
            details={"source_root": str(source_root), "reason": reason},
        )
        self.source_root = source_root
        self.reason = reason


class SymbolIndexError(PipelineError):
    """Raised when the symbol index cannot be queried."""

    def __init__(self, reason: str):
        super().__init__("Symbol index unavailable", details={"reason": reason})
        self.reason = reason


class GenerationError(PipelineError):
    """Raised when the generation service fails for one method.

    ``usage`` carries the token accounting of a request that was billed but
    produced no usable completion.
    """

    def __init__(self, signature: str, reason: str, usage: Optional[Any] = None):
        super().__init__(
            f"Explanation generation failed for {signature}",
            details={"signature": signature, "reason": reason},
        )
        self.signature = signature
        self.reason = reason
        self.usage = usage


class ResponseParseError(PipelineError):
    """Raised when a generation response is not the expected structured document."""

    def __init__(self, reason: str, raw: Optional[str] = None, usage: Optional[Any] = None):
        super().__init__(f"Malformed generation response: {reason}", details={"reason": reason})
        self.reason = reason
        self.raw = raw
        self.usage = usage


class ClassificationError(PipelineError, ValueError):
    """Raised when classification parameters are invalid."""

    def __init__(self, reason: str):
        super().__init__(f"Cannot classify scores: {reason}", details={"reason": reason})
        self.reason = reason


class CacheStorageError(SecurityMarkerError):
    """Raised when a durable cache file cannot be read or written."""

    def __init__(self, path: Union[str, Path], reason: str):
        super().__init__(
            f"Cache storage failure: {path}",
            details={"path": str(path), "reason": reason},
        )
        self.path = path
        self.reason = reason
