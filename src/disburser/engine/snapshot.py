"""
Balance Snapshot - captures recipient balances before transfers.

The snapshot is the "before" side of the delta check done after settlement.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Mapping, Optional, Sequence, Tuple

import structlog

from disburser.core.entry import Address, Entry
from disburser.engine.retry import RetryPolicy, query_balance_with_retry
from disburser.node.interface import ChainClient

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class BalanceSnapshot:
    """
    Pre-transfer balances of one chunk.

    On-chain balances are per address, so each distinct recipient holds
    one value; entries sharing a recipient share that value.

    Attributes:
        balances: Balance per distinct recipient
        entry_recipients: Recipient of each entry, by chunk-local index
    """

    balances: Mapping[Address, int]
    entry_recipients: Tuple[Address, ...]

    def for_address(self, address: Address) -> int:
        """Pre-balance of an address."""
        return self.balances[address]

    def for_entry(self, index: int) -> int:
        """Pre-balance of the recipient of the entry at chunk-local `index`."""
        return self.balances[self.entry_recipients[index]]

    def __len__(self) -> int:
        return len(self.balances)


class BalanceSnapshotter:
    """
    Reads the balance of every recipient in a chunk.

    A failed read is retried under the query policy; if it still fails
    the error propagates and the chunk cannot proceed.
    """

    def __init__(self, client: ChainClient, policy: RetryPolicy):
        self.client = client
        self.policy = policy

    def capture(
        self,
        entries: Sequence[Entry],
        on_captured: Optional[Callable[[int, Address, int], None]] = None,
    ) -> BalanceSnapshot:
        """
        Capture balances for the recipients of `entries`.

        Args:
            entries: Entries of one chunk
            on_captured: Called with (nth, address, balance) after each read

        Returns:
            Immutable snapshot

        Raises:
            ChainCallFailed: If a balance cannot be read within the policy
        """
        balances = {}
        for entry in entries:
            if entry.recipient in balances:
                continue
            balance = query_balance_with_retry(self.client, entry.recipient, self.policy)
            balances[entry.recipient] = balance
            logger.info(
                "balance_captured",
                nth=len(balances) - 1,
                address=entry.recipient,
                balance=balance,
            )
            if on_captured:
                on_captured(len(balances) - 1, entry.recipient, balance)

        return BalanceSnapshot(
            balances=MappingProxyType(balances),
            entry_recipients=tuple(e.recipient for e in entries),
        )
