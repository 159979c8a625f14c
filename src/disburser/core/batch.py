"""
Batch model.

Represents a fixed-size chunk of entries processed together, and the
per-transaction and per-recipient records produced while processing it.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Sequence, Tuple

from disburser.core.entry import Address, Entry
from disburser.core.units import format_units

# Bounds the nonce window and RPC burst of one chunk. Not a tunable.
CHUNK_SIZE = 50


class SettlementStatus(str, Enum):
    """Outcome of a recipient's settlement check."""
    SETTLED = "settled"           # Balance delta matched the expected amount
    FAILED = "failed"             # Still mismatched after all checks


@dataclass(frozen=True)
class Batch:
    """
    A contiguous slice of at most CHUNK_SIZE entries.

    Attributes:
        index: Position of this chunk in the run (0-based)
        start_index: Index of the first entry in the full entry list
        entries: Entries in original order
    """

    index: int
    start_index: int
    entries: Tuple[Entry, ...]

    @property
    def size(self) -> int:
        """Get the number of entries in this batch."""
        return len(self.entries)

    @property
    def is_empty(self) -> bool:
        """Check if batch has no entries."""
        return len(self.entries) == 0

    @property
    def total_amount(self) -> int:
        """Get total amount (minimal units) across all entries."""
        return sum(e.amount for e in self.entries)

    def recipients(self) -> List[Address]:
        """Distinct recipients in first-occurrence order."""
        return list(dict.fromkeys(e.recipient for e in self.entries))

    def aggregate(self) -> Dict[Address, int]:
        """
        Sum amounts per recipient.

        Duplicate recipients collapse into one key holding the total,
        keyed in first-occurrence order.
        """
        totals: Dict[Address, int] = {}
        for entry in self.entries:
            totals[entry.recipient] = totals.get(entry.recipient, 0) + entry.amount
        return totals

    def __repr__(self) -> str:
        return f"Batch(index={self.index}, start={self.start_index}, size={self.size})"


def split_into_batches(entries: Sequence[Entry], size: int = CHUNK_SIZE) -> List[Batch]:
    """
    Split entries into consecutive batches of at most `size` entries.

    Every entry lands in exactly one batch, in original order.
    """
    if size < 1:
        raise ValueError(f"Batch size must be positive, got {size}")
    return [
        Batch(index=n, start_index=start, entries=tuple(entries[start: start + size]))
        for n, start in enumerate(range(0, len(entries), size))
    ]


@dataclass(frozen=True)
class TransactionResult:
    """A submitted transfer."""

    entry_index: int
    nonce: int
    tx_hash: str
    recipient: Address
    amount: int

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "entry_index": self.entry_index,
            "nonce": self.nonce,
            "tx_hash": self.tx_hash,
            "recipient": self.recipient,
            "amount": format_units(self.amount),
        }


@dataclass(frozen=True)
class SettlementOutcome:
    """
    Reconciliation result for one aggregated recipient.

    Attributes:
        recipient: Recipient address
        expected_amount: Sum of all entry amounts sent to the recipient
        observed_delta: final_balance - pre_balance
        final_balance: Balance at the last check
        pre_balance: Balance captured before the chunk's transfers
        status: SETTLED or FAILED
        attempts: Number of balance checks performed
    """

    recipient: Address
    expected_amount: int
    observed_delta: int
    final_balance: int
    pre_balance: int
    status: SettlementStatus
    attempts: int = 1

    @property
    def is_settled(self) -> bool:
        return self.status == SettlementStatus.SETTLED

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "recipient": self.recipient,
            "status": self.status.value,
            "expected": format_units(self.expected_amount),
            "delta": format_units(self.observed_delta),
            "new_balance": format_units(self.final_balance),
            "old_balance": format_units(self.pre_balance),
            "attempts": self.attempts,
        }
