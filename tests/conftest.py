"""
Fee Histogram Test Configuration and Fixtures
=============================================
Provides sample transaction/block data and shared fixtures for testing.
"""

import pytest
import sys
from pathlib import Path

# Add code directory to path for imports
CODE_DIR = Path(__file__).parent.parent / "code"
sys.path.insert(0, str(CODE_DIR))

from transactions import Transaction, TxInput, OutPoint
from block_window import Block


# =============================================================================
# BUILDERS
# =============================================================================

def make_tx(txid, spends, outputs, weight=400):
    """
    Build a Transaction.

    Args:
        spends: list of (txid, vout); None entries are coinbase inputs
        outputs: output values in satoshi
        weight: weight units (vsize = weight / 4)
    """
    inputs = tuple(
        TxInput(prevout=None) if s is None else TxInput(prevout=OutPoint(*s))
        for s in spends
    )
    return Transaction(txid=txid, inputs=inputs, output_values=tuple(outputs), weight=weight)


def make_coinbase(txid, value=625_000_000):
    return make_tx(txid, [None], [value], weight=548)


def make_block(block_hash, height, txs, time=1_600_000_000):
    return Block(hash=block_hash, height=height, time=time, transactions=tuple(txs))


def rpc_tx(txid, spends, outputs_btc, weight=400):
    """Decoded transaction dict as returned by getrawtransaction <txid> true."""
    vin = []
    for s in spends:
        if s is None:
            vin.append({"coinbase": "03a4090104", "sequence": 4294967295})
        else:
            vin.append({"txid": s[0], "vout": s[1], "scriptSig": {"asm": "", "hex": ""}, "sequence": 4294967295})
    return {
        "txid": txid,
        "size": weight // 4,
        "vsize": weight // 4,
        "weight": weight,
        "version": 2,
        "locktime": 0,
        "vin": vin,
        "vout": [
            {"value": v, "n": n, "scriptPubKey": {"type": "witness_v0_keyhash", "address": f"bc1q{n}"}}
            for n, v in enumerate(outputs_btc)
        ],
    }


def rpc_block(block_hash, height, txs, prev=None, time=1_600_000_000):
    """Decoded block dict as returned by getblock <hash> 2."""
    block = {
        "hash": block_hash,
        "height": height,
        "time": time,
        "nTx": len(txs),
        "tx": txs,
    }
    if prev:
        block["previousblockhash"] = prev
    return block


# =============================================================================
# SAMPLE TRANSACTION DATA
# =============================================================================

# Standard P2PKH transaction (2 inputs, 2 outputs)
SAMPLE_P2PKH_TX = {
    "txid": "a1b2c3d4e5f6a1b2c3d4e5f6a1b2c3d4e5f6a1b2c3d4e5f6a1b2c3d4e5f6a1b2",
    "size": 226,
    "vsize": 226,
    "weight": 904,
    "version": 2,
    "locktime": 0,
    "vin": [
        {
            "txid": "prev1111111111111111111111111111111111111111111111111111111111111111",
            "vout": 0,
            "scriptSig": {"asm": "3045...", "hex": "483045..."},
            "sequence": 4294967295
        },
        {
            "txid": "prev2222222222222222222222222222222222222222222222222222222222222222",
            "vout": 1,
            "scriptSig": {"asm": "3045...", "hex": "483045..."},
            "sequence": 4294967295
        }
    ],
    "vout": [
        {"value": 0.5, "n": 0, "scriptPubKey": {"type": "pubkeyhash", "address": "1BvBMSEYstWetqTFn5Au4m4GFg7xJaNVN2"}},
        {"value": 0.0001, "n": 1, "scriptPubKey": {"type": "pubkeyhash", "address": "1A1zP1eP5QGefi2DMPTfTL5SLmv7DivfNa"}}
    ]
}

# Coinbase transaction (mining reward)
SAMPLE_COINBASE_TX = {
    "txid": "coinbase1111111111111111111111111111111111111111111111111111111111",
    "size": 164,
    "vsize": 137,
    "weight": 548,
    "version": 1,
    "locktime": 0,
    "vin": [{"coinbase": "03a4090104...", "sequence": 4294967295}],
    "vout": [
        {"value": 6.25, "n": 0, "scriptPubKey": {"type": "pubkeyhash", "address": "1A1zP1eP5QGefi2DMPTfTL5SLmv7DivfNa"}}
    ]
}

# Transaction from an old node without a weight field
SAMPLE_NO_WEIGHT_TX = {
    "txid": "noweight111111111111111111111111111111111111111111111111111111111",
    "size": 250,
    "vsize": 166,
    "version": 2,
    "locktime": 0,
    "vin": [{"txid": "prev5555555555555555555555555555555555555555555555555555555555555555", "vout": 0}],
    "vout": [{"value": 0.5, "n": 0}]
}


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def sample_p2pkh_tx():
    """Standard P2PKH transaction."""
    return dict(SAMPLE_P2PKH_TX)


@pytest.fixture
def sample_coinbase_tx():
    """Coinbase (mining reward) transaction."""
    return dict(SAMPLE_COINBASE_TX)


@pytest.fixture
def sample_no_weight_tx():
    """Transaction without weight field."""
    return dict(SAMPLE_NO_WEIGHT_TX)


@pytest.fixture
def funded_chain():
    """
    A parent with two outputs and children at known fee rates.

    parent:0 = 100_000 sat, parent:1 = 50_000 sat
    child_50:  spends parent:0, pays 10_000 sat over 200 vB  -> 50 sat/vB
    child_2:   spends parent:1, pays 200 sat over 100 vB     -> 2 sat/vB
    orphan:    spends a tx outside the set                   -> unresolvable
    """
    parent = make_tx("parent", [None], [100_000, 50_000], weight=548)
    child_50 = make_tx("child_50", [("parent", 0)], [90_000], weight=800)
    child_2 = make_tx("child_2", [("parent", 1)], [49_800], weight=400)
    orphan = make_tx("orphan", [("elsewhere", 0)], [1_000], weight=400)
    return [parent, child_50, child_2, orphan]
