"""
Fee-Rate Buckets
================
Exponentially spaced fee-rate thresholds and rate classification.

With increment_percent=50 and upper_limit=500.0 the boundaries are
1.5, 2.25, 3.375, ... up to the first value >= 500 (16 buckets).
The last bucket also collects every rate at or above the highest boundary.
"""

import numbers
from typing import List, Sequence, Tuple

import numpy as np

from fee_errors import InvalidBucketConfig

DEFAULT_INCREMENT_PERCENT = 50
DEFAULT_UPPER_LIMIT = 500.0


def build_boundaries(increment_percent: int, upper_limit: float) -> Tuple[float, ...]:
    """
    Build the ascending bucket boundary list.

    Args:
        increment_percent: growth between consecutive boundaries, in percent
        upper_limit: the first boundary reaching this value is the last one

    Raises:
        InvalidBucketConfig: increment_percent < 1 or upper_limit <= 1.0
    """
    if (
        isinstance(increment_percent, bool)
        or not isinstance(increment_percent, numbers.Integral)
        or increment_percent < 1
    ):
        raise InvalidBucketConfig(
            f"increment_percent must be a positive integer, got {increment_percent!r}"
        )
    if not upper_limit > 1.0:
        raise InvalidBucketConfig(f"upper_limit must be greater than 1.0, got {upper_limit!r}")

    multiplier = 1.0 + increment_percent / 100.0
    boundaries = []
    value = 1.0
    while value < upper_limit:
        value *= multiplier
        boundaries.append(value)
    return tuple(boundaries)


def classify(rate: float, boundaries: Sequence[float]) -> int:
    """Index of the first boundary strictly greater than `rate`, else the last index."""
    index = int(np.searchsorted(boundaries, rate, side="right"))
    return min(index, len(boundaries) - 1)


def empty_histogram(boundaries: Sequence[float]) -> List[int]:
    return [0] * len(boundaries)


def feature_names(boundaries: Sequence[float], prefix: str = "b") -> List[str]:
    """Model feature names for each bucket, e.g. b0..b15."""
    return [f"{prefix}{i}" for i in range(len(boundaries))]
