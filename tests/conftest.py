"""
Pytest configuration and shared fixtures for the test suite.
"""

from collections import defaultdict
from typing import Dict, List, Optional, Set, Tuple

import pytest

from disburser.config import DisburserConfig, NetworkType
from disburser.core.entry import Address, Entry
from disburser.core.units import UNIT, parse_amount
from disburser.node.interface import ChainClient, ChainCallFailed
from disburser.tx.signer import TransactionSigner, generate_test_key


# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def test_config() -> DisburserConfig:
    """Create a test configuration."""
    return DisburserConfig(
        network=NetworkType.TESTNET,
        rpc_url="http://localhost:8545",
        contract_address="0x" + "ab" * 20,
        chain_id=1337,
        log_level="DEBUG",
    )


# ============================================================================
# Test Data Generators
# ============================================================================

def generate_test_address(index: int = 0) -> Address:
    """Generate a deterministic lowercase address."""
    return Address(f"0x{index + 1:040x}")


def make_entry(index: int, tokens: str = "1", line_number: Optional[int] = None) -> Entry:
    """Create an entry for the address with the given index."""
    return Entry(
        recipient=generate_test_address(index),
        amount=parse_amount(tokens),
        line_number=line_number if line_number is not None else index + 1,
    )


def make_entries(count: int, tokens: str = "1") -> List[Entry]:
    """Create `count` entries to distinct recipients."""
    return [make_entry(i, tokens) for i in range(count)]


# ============================================================================
# Recording Sleep
# ============================================================================

class RecordingSleep:
    """Stands in for time.sleep; records requested delays."""

    def __init__(self):
        self.calls: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)

    @property
    def total(self) -> float:
        return sum(self.calls)


@pytest.fixture
def sleeper() -> RecordingSleep:
    return RecordingSleep()


# ============================================================================
# Mock Chain Client
# ============================================================================

class MockChainClient(ChainClient):
    """
    In-memory token ledger for testing.

    Transfers debit the sender and credit the recipient. A credit can be
    delayed until the recipient has been read a number of times, or
    dropped entirely, to exercise settlement re-checks.
    """

    def __init__(self):
        self.balances: Dict[str, int] = defaultdict(int)
        self.nonces: Dict[str, int] = defaultdict(int)

        self.submitted: List[Tuple[str, int, int]] = []   # (recipient, amount, nonce)
        self.mints: List[int] = []
        self.balance_queries: Dict[str, int] = defaultdict(int)
        self.nonce_reads = 0
        self.connected = False

        # Failure injection
        self.fail_balance_queries: Dict[str, int] = {}
        self.fail_submit_nonces: Set[int] = set()
        self.fail_mint = False
        self.mint_shortfall = 0
        self.drop_transfers_to: Set[str] = set()
        self.settle_after_reads = 0

        self._pending: Dict[str, List[List[int]]] = defaultdict(list)  # [amount, reads_left]
        self._tx_counter = 0

    def connect(self) -> None:
        self.connected = True

    def disconnect(self) -> None:
        self.connected = False

    def _next_hash(self) -> str:
        self._tx_counter += 1
        return f"0x{self._tx_counter:064x}"

    def query_balance(self, address: str) -> int:
        self.balance_queries[address] += 1

        remaining = self.fail_balance_queries.get(address, 0)
        if remaining:
            self.fail_balance_queries[address] = remaining - 1
            raise ChainCallFailed("query_balance", f"node unavailable for {address}")

        still_pending = []
        for pending in self._pending[address]:
            pending[1] -= 1
            if pending[1] <= 0:
                self.balances[address] += pending[0]
            else:
                still_pending.append(pending)
        self._pending[address] = still_pending

        return self.balances[address]

    def read_nonce(self, address: str) -> int:
        self.nonce_reads += 1
        return self.nonces[address]

    def submit_transfer(self, recipient: str, amount: int, nonce: int, signer: TransactionSigner) -> str:
        if nonce in self.fail_submit_nonces:
            raise ChainCallFailed("submit_transfer", f"rejected nonce {nonce}")

        self.submitted.append((recipient, amount, nonce))
        self.nonces[signer.address] = nonce + 1
        self.balances[signer.address] -= amount

        if recipient in self.drop_transfers_to:
            pass
        elif self.settle_after_reads:
            self._pending[recipient].append([amount, self.settle_after_reads])
        else:
            self.balances[recipient] += amount

        return self._next_hash()

    def mint(self, amount: int, signer: TransactionSigner) -> str:
        if self.fail_mint:
            raise ChainCallFailed("mint", "execution reverted: caller is not the owner")

        self.mints.append(amount)
        self.nonces[signer.address] += 1
        self.balances[signer.address] += amount - self.mint_shortfall
        return self._next_hash()

    @property
    def submitted_nonces(self) -> List[int]:
        return [nonce for _, _, nonce in self.submitted]


@pytest.fixture
def mock_client() -> MockChainClient:
    """Create a mock chain client."""
    return MockChainClient()


# ============================================================================
# Test Signer
# ============================================================================

@pytest.fixture
def test_signer(test_config) -> TransactionSigner:
    """Create a test signer with a random key."""
    return generate_test_key(test_config)


@pytest.fixture
def funded_client(mock_client, test_signer) -> MockChainClient:
    """Mock client whose funding account holds 1,000,000 tokens."""
    mock_client.balances[test_signer.address] = 1_000_000 * UNIT
    return mock_client
