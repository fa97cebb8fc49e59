"""Core data model: metric kinds, severity labels, responses and run records."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .logging_config import get_logger

logger = get_logger(__name__)


class MetricKind(Enum):
    """Static metric used to rank methods by security criticality."""

    COMPLEXITY = ("CC", "Cyclomatic Complexity")
    LOC = ("LOC", "Lines of Code")
    LCOM = ("LCOM", "Lack of Cohesion of Methods")

    def __init__(self, metric_id: str, label: str) -> None:
        self.metric_id = metric_id
        self.label = label

    @classmethod
    def from_id(cls, value: str) -> MetricKind:
        """Look up a metric by id or enum name; unknown ids fall back to COMPLEXITY."""
        wanted = value.strip().upper()
        for kind in cls:
            if wanted in (kind.metric_id, kind.name):
                return kind
        logger.warning("Unknown metric %r, falling back to %s", value, cls.COMPLEXITY.metric_id)
        return cls.COMPLEXITY

    @classmethod
    def is_known(cls, value: str) -> bool:
        wanted = value.strip().upper()
        return any(wanted in (kind.metric_id, kind.name) for kind in cls)


class SeverityLabel(Enum):
    """Ordinal criticality band. Declaration order is severity order."""

    VERY_LOW = "VERY_LOW"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    VERY_HIGH = "VERY_HIGH"

    @property
    def rank(self) -> int:
        return _SEVERITY_ORDER.index(self)

    @classmethod
    def parse(cls, text: str) -> Optional[SeverityLabel]:
        try:
            return cls(text.strip().upper())
        except ValueError:
            return None

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, SeverityLabel):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, SeverityLabel):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, SeverityLabel):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, SeverityLabel):
            return NotImplemented
        return self.rank >= other.rank


_SEVERITY_ORDER = list(SeverityLabel)

THREE_BANDS = (SeverityLabel.LOW, SeverityLabel.MEDIUM, SeverityLabel.HIGH)
FIVE_BANDS = tuple(_SEVERITY_ORDER)


def band_names(bins: int) -> list[str]:
    """Label names for a supported band count (3 or 5)."""
    bands = FIVE_BANDS if bins == 5 else THREE_BANDS
    return [label.value for label in bands]


def metric_key(signature: str, metric: MetricKind, value: float) -> str:
    """Composite raw-response cache key: ``signature|metric-id|value``."""
    return f"{signature}|{metric.metric_id}|{format_metric_value(value)}"


def format_metric_value(value: float) -> str:
    """Render integral scores without a trailing ``.0``."""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.4g}"


@dataclass(frozen=True)
class MetricScore:
    """One metric value for one method."""

    signature: str
    metric: MetricKind
    value: float

    @property
    def key(self) -> str:
        return metric_key(self.signature, self.metric, self.value)


@dataclass(frozen=True)
class ExplanationResponse:
    """Canonical structured generation response."""

    overview: str
    remediation: tuple[str, ...] = ()


@dataclass(frozen=True)
class Usage:
    """Token accounting reported by a generation service."""

    input_tokens: int = 0
    output_tokens: int = 0


@dataclass(frozen=True)
class GenerationResult:
    """What a generation service hands back for one method."""

    raw: str
    response: ExplanationResponse
    usage: Optional[Usage] = None


class RunState(Enum):
    """Lifecycle of a generation run."""

    IDLE = "idle"
    COLLECTING = "collecting"
    CLASSIFYING = "classifying"
    GENERATING = "generating"
    DONE = "done"
    CANCELLED = "cancelled"
    ABORTED = "aborted"


@dataclass
class GenerationRun:
    """Transient record of one orchestration pass."""

    metric: MetricKind
    is_manual_recompute: bool = False
    signatures: list[str] = field(default_factory=list)
    scores: dict[str, float] = field(default_factory=dict)
    levels: dict[str, str] = field(default_factory=dict)
    completed: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    state: RunState = RunState.IDLE
    cancel_event: threading.Event = field(default_factory=threading.Event)
    started_at: float = field(default_factory=time.monotonic)
    finished_at: Optional[float] = None

    @property
    def total(self) -> int:
        return len(self.signatures)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def advance(self, state: RunState) -> None:
        logger.debug("Run %s -> %s", self.state.value, state.value)
        self.state = state

    def finish(self, state: RunState) -> None:
        self.advance(state)
        self.finished_at = time.monotonic()

    @property
    def elapsed(self) -> float:
        end = self.finished_at if self.finished_at is not None else time.monotonic()
        return end - self.started_at


@dataclass(frozen=True)
class RunSummary:
    """Final report of a generation run."""

    metric: MetricKind
    state: RunState
    total: int
    completed: int
    succeeded: int
    failed: int
    skipped: int
    elapsed_seconds: float
    requests: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    cost: float = 0.0
    discounted_cost: float = 0.0

    @property
    def message(self) -> str:
        return (
            f"{self.state.value}: {self.completed}/{self.total} methods "
            f"({self.succeeded} ok, {self.failed} failed, {self.skipped} skipped) "
            f"using {self.metric.label}"
        )
