"""Severity classification of per-method metric scores."""

from .quantile import DEFAULT_LABELS, classify, label_counts

__all__ = ["DEFAULT_LABELS", "classify", "label_counts"]
