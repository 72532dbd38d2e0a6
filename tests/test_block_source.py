"""
Block Source Unit Tests
=======================
Tests for the Bitcoin Core RPC block source (RPC mocked).
"""

import pytest
from decimal import Decimal
from unittest.mock import Mock
from pathlib import Path
import sys

TESTS_DIR = Path(__file__).parent
sys.path.insert(0, str(TESTS_DIR))

from bitcoinrpc.authproxy import JSONRPCException

from conftest import rpc_tx, rpc_block
from block_source import BitcoinBlockSource
from fee_errors import StaleChainError


def make_rpc(chain):
    """Mock RPC over a list of decoded blocks, tip last."""
    by_hash = {b["hash"]: b for b in chain}
    rpc = Mock()
    rpc.getbestblockhash.return_value = chain[-1]["hash"]
    rpc.getblock.side_effect = lambda block_hash, verbosity: by_hash[block_hash]
    return rpc


@pytest.fixture
def chain():
    blocks = []
    prev = None
    for h in range(5):
        txs = [rpc_tx(f"cb{h}", [None], [Decimal("6.25")])]
        blocks.append(rpc_block(f"hash{h}", 800_000 + h, txs, prev=prev, time=1_700_000_000 + h))
        prev = f"hash{h}"
    return blocks


class TestRecentBlocks:
    """Tests for walking back from the tip."""

    def test_tip_first(self, chain):
        source = BitcoinBlockSource(rpc_client=make_rpc(chain))
        blocks = source.recent_blocks(3)

        assert [b.hash for b in blocks] == ["hash4", "hash3", "hash2"]
        assert blocks[0].height == 800_004

    def test_uses_verbosity_two(self, chain):
        rpc = make_rpc(chain)
        BitcoinBlockSource(rpc_client=rpc).recent_blocks(1)
        rpc.getblock.assert_called_once_with("hash4", 2)

    def test_whole_chain(self, chain):
        """Genesis has no previous hash, which is fine when it is the last one."""
        source = BitcoinBlockSource(rpc_client=make_rpc(chain))
        assert len(source.recent_blocks(5)) == 5

    def test_stale_block(self, chain):
        source = BitcoinBlockSource(rpc_client=make_rpc(chain))
        with pytest.raises(StaleChainError) as exc:
            source.recent_blocks(6)
        assert exc.value.block_hash == "hash0"

    def test_get_block(self, chain):
        source = BitcoinBlockSource(rpc_client=make_rpc(chain))
        block = source.get_block("hash2")
        assert block.transactions[0].output_values == (625_000_000,)


class TestMempool:
    """Tests for mempool lookups."""

    def test_mempool_txids(self):
        rpc = Mock()
        rpc.getrawmempool.return_value = ["a", "b"]
        source = BitcoinBlockSource(rpc_client=rpc)

        assert source.mempool_txids() == ["a", "b"]
        rpc.getrawmempool.assert_called_once_with(False)

    def test_get_transaction(self):
        rpc = Mock()
        rpc.getrawtransaction.return_value = rpc_tx("t", [("p", 1)], [Decimal("0.001")], weight=561)
        source = BitcoinBlockSource(rpc_client=rpc)

        tx = source.get_transaction("t")

        assert tx.txid == "t"
        assert tx.weight == 561
        assert tx.output_values == (100_000,)
        rpc.getrawtransaction.assert_called_once_with("t", True)

    def test_get_transaction_gone(self):
        """A txid that left the mempool returns None."""
        rpc = Mock()
        rpc.getrawtransaction.side_effect = JSONRPCException(
            {"code": -5, "message": "No such mempool or blockchain transaction"}
        )
        source = BitcoinBlockSource(rpc_client=rpc)
        assert source.get_transaction("t") is None

    def test_other_errors_propagate(self):
        rpc = Mock()
        rpc.getrawtransaction.side_effect = ConnectionError("connection refused")
        source = BitcoinBlockSource(rpc_client=rpc)
        with pytest.raises(ConnectionError):
            source.get_transaction("t")


class TestConstruction:
    """Tests for client setup."""

    def test_requires_url_or_client(self):
        with pytest.raises(ValueError):
            BitcoinBlockSource()


if __name__ == "__main__":
    pytest.main([__file__, "-v", "--tb=short"])
