"""Durable, process-surviving storage for explanations and severity levels."""

from .store import METADATA_FILE, CacheTable, ExplanationCache

__all__ = ["CacheTable", "ExplanationCache", "METADATA_FILE"]
