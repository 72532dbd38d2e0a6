"""
Fee Estimation Errors
=====================
Exception taxonomy shared by the fee-rate histogram pipeline.

- Unresolvable: a previous output is missing from the closed set (expected,
  the transaction is simply excluded)
- NegativeFee: outputs exceed inputs (data-integrity fault, always propagated)
- InvalidBucketConfig: rejected at construction time
- HistogramUnavailable: block window not yet full
"""

from typing import Optional


class FeeEstimationError(Exception):
    """Base class for all fee estimation errors."""


class Unresolvable(FeeEstimationError):
    """A transaction's fee cannot be computed from the closed set."""

    def __init__(self, txid: str, reason: str = "previous output not in closed set"):
        self.txid = txid
        self.reason = reason
        super().__init__(f"{txid}: {reason}")


class NegativeFee(FeeEstimationError):
    """Outputs exceed inputs for a transaction whose inputs all resolved."""

    def __init__(self, txid: str, sum_inputs: int, sum_outputs: int):
        self.txid = txid
        self.sum_inputs = sum_inputs
        self.sum_outputs = sum_outputs
        super().__init__(
            f"{txid}: outputs ({sum_outputs} sat) exceed inputs ({sum_inputs} sat)"
        )


class InvalidBucketConfig(FeeEstimationError, ValueError):
    """Bucket or window parameters that cannot produce a usable histogram."""


class HistogramUnavailable(FeeEstimationError):
    """The block window has no current histogram: still filling, or the last rebuild failed."""

    def __init__(self, have: int, need: int):
        self.have = have
        self.need = need
        if have < need:
            message = f"block window holds {have}/{need} blocks"
        else:
            message = "last block histogram rebuild failed"
        super().__init__(message)


class StaleChainError(FeeEstimationError):
    """The node returned a block without a previous block hash."""

    def __init__(self, block_hash: str, message: Optional[str] = None):
        self.block_hash = block_hash
        super().__init__(message or f"found a stale block: {block_hash}")


class ModelInputError(FeeEstimationError, ValueError):
    """Model inputs cannot be assembled from the available features."""
