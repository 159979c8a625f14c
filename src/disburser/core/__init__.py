"""
Core disburser components.

This module contains the entry and batch models, unit conversion, and
the orchestrator that drives a run chunk by chunk.
"""

from disburser.core.entry import Entry, InvalidEntry, load_entries, parse_entries
from disburser.core.batch import (
    CHUNK_SIZE,
    Batch,
    SettlementOutcome,
    SettlementStatus,
    TransactionResult,
    split_into_batches,
)
from disburser.core.orchestrator import (
    BatchOrchestrator,
    ChunkAborted,
    ChunkRecorded,
    DisbursementAborted,
    RunResult,
    SettlementMismatch,
)

__all__ = [
    "Entry",
    "InvalidEntry",
    "load_entries",
    "parse_entries",
    "CHUNK_SIZE",
    "Batch",
    "SettlementOutcome",
    "SettlementStatus",
    "TransactionResult",
    "split_into_batches",
    "BatchOrchestrator",
    "ChunkAborted",
    "ChunkRecorded",
    "DisbursementAborted",
    "RunResult",
    "SettlementMismatch",
]
