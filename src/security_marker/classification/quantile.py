"""Discretize per-method scores into ordinal severity labels.

Equal-frequency ("quantile") binning sorts the scores and cuts the sorted
sequence into ``bins`` groups whose sizes differ by at most one. Equal
scores may land in neighbouring groups when the split requires it; the
ordering guarantee is that every score in a later group is >= every score
in an earlier one, so labels are monotone in the score.

When the distribution cannot support ``bins`` groups (fewer distinct values
than bins), every method gets the most severe label: a flat metric
distribution is no evidence that everything is safe.

Example:
    >>> classify({"a": 5.0, "b": 5.0, "c": 5.0}, 3, ["LOW", "MEDIUM", "HIGH"])
    {'a': 'HIGH', 'b': 'HIGH', 'c': 'HIGH'}
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Literal

import numpy as np

from ..exceptions import ClassificationError
from ..logging_config import get_logger
from ..models import band_names

logger = get_logger(__name__)

Strategy = Literal["quantile", "uniform"]

DEFAULT_LABELS = tuple(band_names(3))


def classify(
    scores: Mapping[str, float],
    bins: int = 3,
    labels: Sequence[str] = DEFAULT_LABELS,
    strategy: Strategy = "quantile",
) -> dict[str, str]:
    """Assign ``labels[i]`` to the i-th lowest group of scores.

    Args:
        scores: signature -> score; zero scores are expected to be filtered
            out by the caller
        bins: number of groups
        labels: one label per group, lowest severity first
        strategy: "quantile" for equal-frequency groups, "uniform" for
            equal-width value ranges

    Returns:
        signature -> label, in the iteration order of ``scores``

    Raises:
        ClassificationError: on invalid bins/labels/strategy or non-finite scores
    """
    if bins < 1:
        raise ClassificationError(f"bins must be at least 1, got {bins}")
    if len(labels) < bins:
        raise ClassificationError(f"{bins} bins need {bins} labels, got {len(labels)}")
    if strategy not in ("quantile", "uniform"):
        raise ClassificationError(f"unknown strategy {strategy!r}")

    if not scores:
        return {}

    names = list(scores)
    values = np.asarray([float(scores[n]) for n in names], dtype=np.float64)
    if not np.all(np.isfinite(values)):
        raise ClassificationError("scores must be finite numbers")

    distinct = int(np.unique(values).size)
    if distinct < bins or bins == 1:
        logger.debug(
            "Degenerate distribution (%d distinct values, %d bins); using %s",
            distinct, bins, labels[-1],
        )
        return {n: labels[-1] for n in names}

    if strategy == "quantile":
        bin_index = _equal_frequency_bins(values, bins)
    else:
        bin_index = _equal_width_bins(values, bins)

    effective = int(np.unique(bin_index).size)
    if effective <= 1:
        return {n: labels[-1] for n in names}

    return {n: labels[int(b)] for n, b in zip(names, bin_index)}


def _equal_frequency_bins(values: np.ndarray, bins: int) -> np.ndarray:
    """Bin index per value; group sizes differ by at most one."""
    order = np.argsort(values, kind="stable")
    bin_index = np.empty(values.size, dtype=np.intp)
    for i, group in enumerate(np.array_split(order, bins)):
        bin_index[group] = i
    return bin_index


def _equal_width_bins(values: np.ndarray, bins: int) -> np.ndarray:
    """Bin index per value over equal-width ranges between min and max."""
    from sklearn.preprocessing import KBinsDiscretizer

    discretizer = KBinsDiscretizer(n_bins=bins, encode="ordinal", strategy="uniform")
    binned = discretizer.fit_transform(values.reshape(-1, 1))
    return binned[:, 0].astype(np.intp)


def label_counts(levels: Mapping[str, str], labels: Sequence[str] = DEFAULT_LABELS) -> dict[str, int]:
    """Number of signatures per label, in label order."""
    counts = {label: 0 for label in labels}
    for label in levels.values():
        counts[label] = counts.get(label, 0) + 1
    return counts
