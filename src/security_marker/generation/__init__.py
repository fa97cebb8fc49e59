"""Explanation generation: orchestration, prompts, pricing and rendering."""

from .orchestrator import GenerationOrchestrator
from .pricing import RATES, UsageLedger, UsageTotals
from .prompts import MISSING_CODE, build_messages, parse_response
from .render import (
    UNAVAILABLE_MESSAGE,
    is_unavailable,
    render_explanation,
    render_placeholder,
    render_unavailable,
)
from .worker import BackgroundWorker

__all__ = [
    "BackgroundWorker",
    "GenerationOrchestrator",
    "MISSING_CODE",
    "RATES",
    "UNAVAILABLE_MESSAGE",
    "UsageLedger",
    "UsageTotals",
    "build_messages",
    "is_unavailable",
    "parse_response",
    "render_explanation",
    "render_placeholder",
    "render_unavailable",
]
