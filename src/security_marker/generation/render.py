"""Render explanations as HTML fragments for editor tooltips."""

from __future__ import annotations

import re
from collections.abc import Sequence
from html import escape, unescape

from ..models import ExplanationResponse, MetricKind, format_metric_value

UNAVAILABLE_MESSAGE = "A security critical assessment explanation is not available for this method."
UNAVAILABLE_MARKER = "explanation-unavailable"


def wrap_html(body: str) -> str:
    return f"<html><body>{body}</body></html>"


def criticality_header(metric: MetricKind, metric_value: float, level: str) -> str:
    return (
        f"<b>Security Criticality: </b> {escape(metric.label)}="
        f"{format_metric_value(metric_value)}, {escape(level)}"
    )


def bullet_list(items: Sequence[str]) -> str:
    if not items:
        return "<i>No items</i>"
    return "<ul>" + "".join(f"<li>{escape(item)}</li>" for item in items) + "</ul>"


def render_explanation(
    response: ExplanationResponse, metric: MetricKind, metric_value: float, level: str
) -> str:
    """Tooltip for a successfully generated explanation."""
    body = (
        f"{criticality_header(metric, metric_value, level)}\n"
        f"<p>{escape(response.overview)}</p>\n"
        f"<p><b>Remediation: </b>\n{bullet_list(response.remediation)}</p>"
    )
    return wrap_html(body)


def render_unavailable(metric: MetricKind, metric_value: float, level: str) -> str:
    """Clearly marked fallback shown when generation failed for a method."""
    body = (
        f'<p class="{UNAVAILABLE_MARKER}">{criticality_header(metric, metric_value, level)}</p>\n'
        f"<p>{UNAVAILABLE_MESSAGE}</p>"
    )
    return wrap_html(body)


def render_placeholder(metric: MetricKind, metric_value: float, level: str) -> str:
    """Shown while an explanation is still being generated."""
    note = (
        f"<b>Note:</b> <i>{escape(metric.label)}</i> is used to assess security criticality, "
        f"and its score is <i>{format_metric_value(metric_value)}</i>."
    )
    if level != "NA":
        note += f" This method falls under the <i>{escape(level)}</i> level."
    body = (
        "<b>Overview</b><br/>\n<i>Generating explanation...</i>\n<br/><br/>\n"
        "<b>Remediation</b>\n<i>Generating remediation steps...</i>\n<br/>\n"
        f'<span style="color:gray;">{note}</span>'
    )
    return wrap_html(body)


def is_unavailable(explanation: str) -> bool:
    return UNAVAILABLE_MARKER in explanation


_TAG = re.compile(r"<[^>]+>")
_BLANK_LINES = re.compile(r"\n{3,}")


def to_plain_text(explanation: str) -> str:
    """Terminal-friendly rendering of an explanation fragment."""
    text = explanation.replace("<li>", "\n  - ").replace("<br/>", "\n").replace("</p>", "\n")
    text = unescape(_TAG.sub("", text))
    lines = [line.rstrip() for line in text.splitlines()]
    return _BLANK_LINES.sub("\n\n", "\n".join(lines)).strip()
