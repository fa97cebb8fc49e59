"""
Security Marker - security criticality classification for methods.

Ranks every method of a code base by a static metric, bins the scores into
severity levels and generates a natural-language explanation with
remediation steps for the critical ones.
"""

__version__ = "0.1.0"

from .config import MarkerConfig, load_config
from .models import MetricKind, RunState, RunSummary, SeverityLabel
from .service import MarkerService

__all__ = [
    "MarkerConfig",
    "MarkerService",
    "MetricKind",
    "RunState",
    "RunSummary",
    "SeverityLabel",
    "load_config",
]
