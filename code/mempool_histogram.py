"""
Mempool Histogram
=================
Live fee-rate histogram over mempool transactions, updated incrementally.

Each tracked txid remembers the bucket it was counted in, so removal always
decrements the same bucket. The caller decides when a transaction leaves the
mempool (confirmed, replaced, evicted) and calls remove().
"""

import logging
from typing import Dict, Optional, List, Sequence

from buckets import (
    build_boundaries, classify, empty_histogram,
    DEFAULT_INCREMENT_PERCENT, DEFAULT_UPPER_LIMIT,
)

logger = logging.getLogger(__name__)

# Rates at or below this are not tracked
MIN_TRACKED_RATE = 1.0


class MempoolHistogram:
    """
    Incremental mempool fee-rate histogram.

    Usage:
        mempool = MempoolHistogram(increment_percent=50, upper_limit=500.0)
        mempool.add(txid, 12.3)
        mempool.remove(txid)
        counts = mempool.get_histogram()
    """

    def __init__(
        self,
        increment_percent: int = DEFAULT_INCREMENT_PERCENT,
        upper_limit: float = DEFAULT_UPPER_LIMIT,
        boundaries: Optional[Sequence[float]] = None,
    ):
        self.boundaries = tuple(boundaries) if boundaries is not None else build_boundaries(
            increment_percent, upper_limit
        )
        self._counts: List[int] = empty_histogram(self.boundaries)
        self._members: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._members)

    def __contains__(self, txid: str) -> bool:
        return txid in self._members

    def add(self, txid: str, rate: float) -> bool:
        """
        Track `txid` at `rate`.

        Returns:
            True if the transaction is now counted, False for a no-op
            (rate <= 1.0 or txid already tracked)
        """
        if rate <= MIN_TRACKED_RATE or txid in self._members:
            return False
        index = classify(rate, self.boundaries)
        self._counts[index] += 1
        self._members[txid] = index
        return True

    def remove(self, txid: str) -> bool:
        """Stop tracking `txid`; returns False if it was not tracked."""
        index = self._members.pop(txid, None)
        if index is None:
            return False
        self._counts[index] -= 1
        return True

    def clear(self):
        self._counts = empty_histogram(self.boundaries)
        self._members.clear()

    def get_histogram(self) -> List[int]:
        return list(self._counts)

    def bucket_of(self, txid: str) -> Optional[int]:
        return self._members.get(txid)

    def tracked_txids(self) -> List[str]:
        return list(self._members)
