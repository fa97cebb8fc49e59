"""Prompt templates and structured-response parsing for explanation generation."""

from __future__ import annotations

import re

import yaml

from ..exceptions import ResponseParseError
from ..models import ExplanationResponse, MetricKind, format_metric_value

MISSING_CODE = "Method code not available"

# Older prompt revisions asked for these instead of "remediation".
REMEDIATION_KEYS = ("remediation", "recommendedPractises", "recommendedPractices", "prevention")

_FENCE = re.compile(r"^\s*```[A-Za-z0-9_-]*\s*\n(?P<body>.*?)\n?```\s*$", re.DOTALL)

SYSTEM_PROMPT = """You are an assistant with expertise in explaining software security concepts in code snippets. You will be given a code snippet and the software metric used to identify the security criticality of that method. Explain to the developers why the given code is critical and which remediation steps keep them from introducing vulnerabilities unintentionally.

When providing a response, follow the guidelines below:
- The explanation must not exceed 750 words.
- Base the response only on the given information. Do not assume facts that are not in the code.
- If the given method is not critical for security, say so and give the reason. Do not make it critical.
- Do not wrap the document in triple backticks or triple quotes.
- For remediation, separate multiple points with a semicolon (;). Do not number them.
- Format the response as a YAML document using the schema below:

---
overview: "<why the given method is critical from a security perspective>"
remediation: "<steps that avoid security issues in the given method, separated by semicolons>"
"""


def build_user_prompt(metric: MetricKind, metric_value: float, source_text: str) -> str:
    """User message carrying the method source and its metric score."""
    return f"""Explain why the given code is security critical and how to remediate it.

Code Snippet:
```
{source_text or MISSING_CODE}
```

Metric used to compute the security criticality of the given method and its value:
```
{metric.label} : {format_metric_value(metric_value)}
```
"""


def build_messages(metric: MetricKind, metric_value: float, source_text: str) -> list[dict[str, str]]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": build_user_prompt(metric, metric_value, source_text)},
    ]


def strip_fences(raw: str) -> str:
    """Remove a Markdown code fence wrapped around the whole document."""
    m = _FENCE.match(raw)
    return m.group("body") if m else raw


def split_steps(value: object) -> tuple[str, ...]:
    """Semicolon-separated text or a YAML list -> tuple of non-empty steps."""
    if value is None:
        return ()
    if isinstance(value, (list, tuple)):
        items = [str(v) for v in value]
    else:
        items = str(value).split(";")
    return tuple(s.strip() for s in items if s and s.strip())


def parse_response(raw: str) -> ExplanationResponse:
    """Parse a YAML generation response into an ExplanationResponse.

    Raises:
        ResponseParseError: if the text is empty, not a YAML mapping, or has
            no overview
    """
    if raw is None or not raw.strip():
        raise ResponseParseError("empty response", raw)

    text = strip_fences(raw)
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ResponseParseError(f"invalid YAML: {e}", raw)

    if not isinstance(data, dict):
        raise ResponseParseError(f"expected a mapping, got {type(data).__name__}", raw)

    overview = data.get("overview")
    if overview is None or not str(overview).strip():
        raise ResponseParseError("missing overview", raw)

    remediation: object = None
    for key in REMEDIATION_KEYS:
        if key in data:
            remediation = data[key]
            break

    return ExplanationResponse(overview=str(overview).strip(), remediation=split_steps(remediation))
