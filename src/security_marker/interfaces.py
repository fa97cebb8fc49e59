"""Collaborator interfaces consumed by the explanation pipeline.

The host supplies concrete implementations; the ones bundled in
``security_marker.index``, ``security_marker.metrics`` and
``security_marker.generation.llm`` cover Python code bases.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Protocol, Union, runtime_checkable

from .models import GenerationResult, MetricKind


@runtime_checkable
class SymbolIndex(Protocol):
    """Authoritative method identities and their source text."""

    def all_authoritative_signatures(self) -> set[str]: ...

    def source_text_for(self, signature: str) -> Optional[str]: ...


@runtime_checkable
class MetricsExtractor(Protocol):
    """Per-method static metric scores for one source root."""

    def extract(self, source_root: Union[str, Path], metric: MetricKind) -> dict[str, float]: ...


@runtime_checkable
class GenerationService(Protocol):
    """Produces a structured explanation for one method.

    Implementations bound each call with their own timeout and raise on
    failure; the orchestrator treats every exception as a per-method failure.
    """

    def generate(
        self,
        signature: str,
        metric: MetricKind,
        metric_value: float,
        source_text: str,
    ) -> GenerationResult: ...
