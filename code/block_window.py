"""
Block Window Histogram
======================
Fee-rate histogram over the K most recently added blocks.

The histogram is rebuilt from scratch every time a block is added to a full
window: the closed transaction set is the union of all transactions in the
window, so inputs spending outputs created inside the window resolve.
While the window holds fewer than K blocks no histogram is available.

If the same txid appears in more than one block, the copy from the most
recently added block is kept.
"""

import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Dict, Any, Optional, List, Tuple, Iterator, Sequence

from buckets import (
    build_boundaries, classify, empty_histogram,
    DEFAULT_INCREMENT_PERCENT, DEFAULT_UPPER_LIMIT,
)
from fee_errors import InvalidBucketConfig, HistogramUnavailable, NegativeFee
from transactions import Transaction, ClosedTransactionSet

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SIZE = 10


@dataclass(frozen=True)
class Block:
    """A block and its ordered transactions."""
    hash: str
    height: int
    time: int
    transactions: Tuple[Transaction, ...]

    @classmethod
    def from_rpc(cls, decoded: Dict[str, Any]) -> "Block":
        """Build from `getblock <hash> 2` output."""
        return cls(
            hash=decoded["hash"],
            height=int(decoded.get("height", 0)),
            time=int(decoded.get("time", 0)),
            transactions=tuple(Transaction.from_rpc(tx) for tx in decoded.get("tx") or []),
        )


class BlockWindowHistogram:
    """
    Sliding window of blocks with a periodically rebuilt fee-rate histogram.

    Usage:
        window = BlockWindowHistogram(increment_percent=50, upper_limit=500.0, window_size=10)
        for block in blocks:
            window.add(block)
        counts = window.get_histogram()   # None until 10 blocks were added
    """

    def __init__(
        self,
        increment_percent: int = DEFAULT_INCREMENT_PERCENT,
        upper_limit: float = DEFAULT_UPPER_LIMIT,
        window_size: int = DEFAULT_WINDOW_SIZE,
    ):
        if isinstance(window_size, bool) or not isinstance(window_size, int) or window_size < 1:
            raise InvalidBucketConfig(f"window_size must be a positive integer, got {window_size!r}")
        self.boundaries = build_boundaries(increment_percent, upper_limit)
        self.window_size = window_size
        self._blocks: deque = deque(maxlen=window_size)
        self._histogram: Optional[List[int]] = None
        self.last_rebuild_seconds: Optional[float] = None
        self.last_unresolved = 0

    def __len__(self) -> int:
        return len(self._blocks)

    @property
    def is_full(self) -> bool:
        return len(self._blocks) == self.window_size

    @property
    def blocks(self) -> Tuple[Block, ...]:
        """Blocks in the window, most recently added first."""
        return tuple(self._blocks)

    def transactions(self) -> Iterator[Transaction]:
        """Every transaction in the window, oldest block first."""
        for block in reversed(self._blocks):
            yield from block.transactions

    def add(self, block: Block):
        """Insert a block, evicting the oldest one when at capacity."""
        if self.is_full:
            evicted = self._blocks.pop()
            logger.debug(f"Evicted block {evicted.height} ({evicted.hash[:16]}...)")
        self._blocks.appendleft(block)

        if self.is_full:
            self._rebuild()

    def _rebuild(self):
        start = time.perf_counter()
        closed = ClosedTransactionSet.from_transactions(self.transactions())
        histogram = empty_histogram(self.boundaries)
        try:
            for rate in closed.fee_rates():
                histogram[classify(rate, self.boundaries)] += 1
        except NegativeFee:
            # The previous snapshot no longer describes the window
            self._histogram = None
            raise

        self._histogram = histogram
        self.last_unresolved = len(closed) - sum(histogram)
        self.last_rebuild_seconds = time.perf_counter() - start
        logger.info(
            f"Rebuilt block histogram: {len(closed)} txs, {sum(histogram)} resolved, "
            f"{self.last_rebuild_seconds * 1000:.1f}ms"
        )

    def get_histogram(self) -> Optional[List[int]]:
        """Bucket counts of the last rebuild, or None while filling or after a failed rebuild."""
        if self._histogram is None:
            return None
        return list(self._histogram)

    def require_histogram(self) -> List[int]:
        histogram = self.get_histogram()
        if histogram is None:
            raise HistogramUnavailable(len(self._blocks), self.window_size)
        return histogram

    def last_nonempty_block_time(self) -> Optional[int]:
        """Header time of the most recently added block holding more than a coinbase."""
        for block in self._blocks:
            if len(block.transactions) > 1:
                return block.time
        return None


def histogram_for_blocks(
    blocks: Sequence[Block],
    increment_percent: int = DEFAULT_INCREMENT_PERCENT,
    upper_limit: float = DEFAULT_UPPER_LIMIT,
) -> List[int]:
    """One-shot histogram over exactly `blocks`, added in the given order."""
    window = BlockWindowHistogram(increment_percent, upper_limit, window_size=len(blocks))
    for block in blocks:
        window.add(block)
    return window.require_histogram()
