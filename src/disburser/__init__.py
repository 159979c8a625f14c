"""
EVM Token Disburser

Batch disbursement of a token from one funding account to many recipients.
Entries are processed in fixed-size chunks: balances are snapshotted, the
funding account is topped up by minting when short, transfers are submitted
with sequential nonces, and recipient balances are reconciled afterwards.
"""

__version__ = "0.1.0"

from disburser.core.entry import Entry, InvalidEntry
from disburser.core.batch import Batch, SettlementOutcome, SettlementStatus
from disburser.core.orchestrator import BatchOrchestrator, RunResult

__all__ = [
    "BatchOrchestrator",
    "RunResult",
    "Entry",
    "InvalidEntry",
    "Batch",
    "SettlementOutcome",
    "SettlementStatus",
]
