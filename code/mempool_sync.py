"""
Mempool Sync
============
Keeps a MempoolHistogram in line with the node's mempool.

Each sync diffs the node's current txid list against what was seen before:
- txids gone from the mempool (confirmed or replaced) are removed
- new txids are fetched and their fee rate resolved against the block
  window's transactions plus the known mempool transactions
- known transactions that could not be resolved earlier are retried, since
  their parent may have arrived since
- a NegativeFee is recorded in the result and the pass carries on
"""

import logging
from dataclasses import dataclass, field
from itertools import chain
from typing import Dict, Any, Optional, Iterable, List, Set

from fee_errors import Unresolvable, NegativeFee
from mempool_histogram import MempoolHistogram
from transactions import Transaction, ClosedTransactionSet

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """Outcome of one mempool sync."""
    added: int = 0
    removed: int = 0
    unresolved: int = 0
    fetch_failed: int = 0
    tracked: int = 0
    # NegativeFee faults hit during the pass; the offending txids are skipped
    negative_fee: List[NegativeFee] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "added": self.added,
            "removed": self.removed,
            "unresolved": self.unresolved,
            "fetch_failed": self.fetch_failed,
            "tracked": self.tracked,
            "negative_fee": [e.txid for e in self.negative_fee],
        }


class MempoolSync:
    """
    Drives a MempoolHistogram from a block source.

    Usage:
        sync = MempoolSync(MempoolHistogram(), source, limit=None)
        result = sync.sync(window.transactions())
    """

    def __init__(self, histogram: MempoolHistogram, source, limit: Optional[int] = None):
        """
        Args:
            histogram: histogram to update
            source: object exposing mempool_txids() and get_transaction(txid)
            limit: consider only the first `limit` mempool txids (None = all)
        """
        self.histogram = histogram
        self.source = source
        self.limit = limit
        self._known: Dict[str, Transaction] = {}
        # txids that failed with NegativeFee, skipped while still in the mempool
        self._rejected: Set[str] = set()
        # resolved at or below the tracked minimum rate; never re-resolved
        self._ignored: Set[str] = set()

    @property
    def known_count(self) -> int:
        return len(self._known)

    def sync(self, window_transactions: Iterable[Transaction] = ()) -> SyncResult:
        result = SyncResult()

        txids = self.source.mempool_txids()
        if self.limit is not None:
            txids = txids[: self.limit]
        current = set(txids)

        for txid in [t for t in self._known if t not in current]:
            del self._known[txid]
            if self.histogram.remove(txid):
                result.removed += 1
        # Entries added to the histogram directly, outside of sync
        for txid in self.histogram.tracked_txids():
            if txid not in current and self.histogram.remove(txid):
                result.removed += 1

        self._rejected &= current
        self._ignored &= current

        for txid in txids:
            if txid in self._known or txid in self._rejected:
                continue
            tx = self.source.get_transaction(txid)
            if tx is None:
                result.fetch_failed += 1
                continue
            self._known[txid] = tx

        closed = ClosedTransactionSet.from_transactions(
            chain(window_transactions, self._known.values())
        )
        for txid in list(self._known):
            if txid in self.histogram or txid in self._ignored:
                continue
            try:
                rate = closed.fee_rate(txid)
            except Unresolvable as e:
                logger.debug(f"Mempool tx unresolved: {e}")
                result.unresolved += 1
                continue
            except NegativeFee as e:
                del self._known[txid]
                self._rejected.add(txid)
                result.negative_fee.append(e)
                continue
            if self.histogram.add(txid, rate):
                result.added += 1
            else:
                self._ignored.add(txid)

        result.tracked = len(self.histogram)
        logger.info(
            f"Mempool sync: +{result.added} -{result.removed} "
            f"unresolved={result.unresolved} tracked={result.tracked}"
        )
        return result

    def rebuild(self, window_transactions: Iterable[Transaction] = ()) -> SyncResult:
        """Drop all state and sync from scratch."""
        self.histogram.clear()
        self._known.clear()
        self._rejected.clear()
        self._ignored.clear()
        return self.sync(window_transactions)
