"""Signature reconciliation between the metrics extractor and the symbol index."""

from .signature import (
    ParsedSignature,
    SignatureMatcher,
    match_signature,
    parse_signature,
    reconcile_scores,
    simple_type_name,
    split_params,
)

__all__ = [
    "ParsedSignature",
    "SignatureMatcher",
    "match_signature",
    "parse_signature",
    "reconcile_scores",
    "simple_type_name",
    "split_params",
]
