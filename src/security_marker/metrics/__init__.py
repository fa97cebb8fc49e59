"""Reference static-metrics extractor for Python code bases."""

from .python_metrics import (
    PythonMetricsExtractor,
    cyclomatic_complexity,
    lack_of_cohesion,
    lines_of_code,
)

__all__ = [
    "PythonMetricsExtractor",
    "cyclomatic_complexity",
    "lack_of_cohesion",
    "lines_of_code",
]
