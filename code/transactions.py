"""
Transactions & Fee Resolution
=============================
Transaction model parsed from Bitcoin Core verbose JSON, and fee-rate
resolution against a closed set of known transactions.

A fee can only be computed when every input's previous output belongs to a
transaction in the closed set. Output values are indexed once per closed set
so resolution never walks full transaction bodies twice.

Usage:
    closed = ClosedTransactionSet.from_transactions(block_txs)
    rate = closed.fee_rate(txid)       # sat/vbyte, or raises Unresolvable
    rates = closed.fee_rates()         # unresolvable txs silently excluded
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Any, Optional, List, Tuple, Iterable, Mapping

from fee_errors import Unresolvable, NegativeFee

logger = logging.getLogger(__name__)

SATS_PER_BTC = 100_000_000
WITNESS_SCALE_FACTOR = 4


def btc_to_sats(value) -> int:
    """Convert a BTC amount (Decimal, str or float from RPC) to satoshi."""
    # str() first so floats like 0.1 don't carry binary noise into Decimal
    return int((Decimal(str(value)) * SATS_PER_BTC).to_integral_value())


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class OutPoint:
    """Reference to a previous transaction output."""
    txid: str
    vout: int


@dataclass(frozen=True)
class TxInput:
    """Transaction input; coinbase inputs have no previous output."""
    prevout: Optional[OutPoint]

    @property
    def is_coinbase(self) -> bool:
        return self.prevout is None


@dataclass(frozen=True)
class Transaction:
    """Minimal transaction view needed for fee computation."""
    txid: str
    inputs: Tuple[TxInput, ...]
    output_values: Tuple[int, ...]
    weight: int

    @property
    def vsize(self) -> float:
        return self.weight / WITNESS_SCALE_FACTOR

    @property
    def is_coinbase(self) -> bool:
        return any(i.is_coinbase for i in self.inputs)

    @classmethod
    def from_rpc(cls, decoded: Dict[str, Any]) -> "Transaction":
        """
        Build from `getrawtransaction <txid> true` or a `getblock <hash> 2` entry.

        Weight falls back to vsize * 4, then size * 4, for nodes that omit it.
        """
        inputs = []
        for vin in decoded.get("vin") or []:
            if "coinbase" in vin or not vin.get("txid"):
                inputs.append(TxInput(prevout=None))
            else:
                inputs.append(TxInput(prevout=OutPoint(vin["txid"], int(vin.get("vout", 0)))))

        vouts = sorted(decoded.get("vout") or [], key=lambda v: v.get("n", 0))
        output_values = tuple(btc_to_sats(v.get("value", 0)) for v in vouts)

        weight = decoded.get("weight")
        if weight is None:
            weight = int(decoded.get("vsize", decoded.get("size", 0))) * WITNESS_SCALE_FACTOR

        return cls(
            txid=decoded["txid"],
            inputs=tuple(inputs),
            output_values=output_values,
            weight=int(weight),
        )


# =============================================================================
# CLOSED TRANSACTION SET (fee resolver)
# =============================================================================

@dataclass
class ClosedTransactionSet:
    """
    Universe of transactions against which previous outputs are resolved.

    The output-value table is derived once at construction.
    """
    txs: Dict[str, Transaction]
    output_values: Dict[str, Tuple[int, ...]] = field(init=False, repr=False)

    def __post_init__(self):
        self.output_values = {txid: tx.output_values for txid, tx in self.txs.items()}

    @classmethod
    def from_transactions(cls, txs: Iterable[Transaction]) -> "ClosedTransactionSet":
        """Later duplicates of a txid replace earlier ones."""
        return cls({tx.txid: tx for tx in txs})

    def __len__(self) -> int:
        return len(self.txs)

    def __contains__(self, txid: str) -> bool:
        return txid in self.txs

    def absolute_fee(self, tx: Transaction) -> int:
        """
        Fee in satoshi: sum of referenced previous outputs minus sum of outputs.

        Raises:
            Unresolvable: an input references a transaction outside the set
            NegativeFee: outputs exceed inputs
        """
        sum_outputs = sum(tx.output_values)
        sum_inputs = 0
        for txin in tx.inputs:
            if txin.is_coinbase:
                raise Unresolvable(tx.txid, "coinbase input")
            values = self.output_values.get(txin.prevout.txid)
            if values is None:
                raise Unresolvable(tx.txid, f"missing previous tx {txin.prevout.txid}")
            if txin.prevout.vout >= len(values):
                raise Unresolvable(
                    tx.txid, f"previous output {txin.prevout.txid}:{txin.prevout.vout} out of range"
                )
            sum_inputs += values[txin.prevout.vout]

        if sum_outputs > sum_inputs:
            raise NegativeFee(tx.txid, sum_inputs, sum_outputs)
        return sum_inputs - sum_outputs

    def fee_rate(self, txid: str) -> float:
        """Fee rate in sat/vbyte for a transaction of this set."""
        tx = self.txs.get(txid)
        if tx is None:
            raise Unresolvable(txid, "transaction not in closed set")
        if tx.weight <= 0:
            raise Unresolvable(txid, "transaction has no weight")
        fee = self.absolute_fee(tx)
        return fee / tx.vsize

    def fee_rates(self) -> List[float]:
        """
        Every resolvable fee rate in the set.

        Unresolvable transactions are skipped; NegativeFee propagates.
        """
        rates = []
        for txid in self.txs:
            try:
                rates.append(self.fee_rate(txid))
            except Unresolvable as e:
                logger.debug(f"Skipping {e}")
        return rates


# =============================================================================
# FUNCTIONAL ENTRY POINTS
# =============================================================================

def _as_closed_set(closed_set) -> ClosedTransactionSet:
    if isinstance(closed_set, ClosedTransactionSet):
        return closed_set
    return ClosedTransactionSet(dict(closed_set))


def resolve_fee_rate(closed_set: Mapping[str, Transaction], txid: str) -> float:
    """Fee rate of `txid` resolved against `closed_set` (mapping or ClosedTransactionSet)."""
    return _as_closed_set(closed_set).fee_rate(txid)


def fee_rates(closed_set: Mapping[str, Transaction]) -> List[float]:
    """All resolvable fee rates of `closed_set`."""
    return _as_closed_set(closed_set).fee_rates()
