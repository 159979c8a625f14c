"""
Main Batch Orchestrator.

Coordinates all components to disburse a full entry list chunk by chunk.
"""

import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple, Union

import structlog

from disburser.config import DisburserConfig, get_config
from disburser.core.batch import (
    Batch,
    SettlementOutcome,
    TransactionResult,
    split_into_batches,
)
from disburser.core.entry import Address, Entry
from disburser.engine.retry import RetryPolicy, query_balance_with_retry
from disburser.engine.snapshot import BalanceSnapshotter
from disburser.engine.supply import (
    InsufficientSupply,
    SupplyCheck,
    SupplyGuarantor,
    required_total,
)
from disburser.engine.verifier import SettlementVerifier
from disburser.node.interface import ChainClient, ChainCallFailed
from disburser.tx.sequencer import TransferSequencer
from disburser.tx.signer import TransactionSigner

logger = structlog.get_logger(__name__)

# Errors that stop the run; anything else is a bug and propagates as-is.
FATAL_ERRORS = (ChainCallFailed, InsufficientSupply)


class DisbursementAborted(Exception):
    """Raised for a run stopped by a fatal error."""

    def __init__(self, chunk_index: int, stage: str, error: Exception):
        super().__init__(f"Chunk {chunk_index} aborted during {stage}: {error}")
        self.chunk_index = chunk_index
        self.stage = stage
        self.error = error


class SettlementMismatch(Exception):
    """Raised for a completed run where some recipients did not settle."""

    def __init__(self, failed_count: int):
        super().__init__(f"!! {failed_count} entries failed !!")
        self.failed_count = failed_count


@dataclass(frozen=True)
class ChunkRecorded:
    """A chunk that ran to completion; mismatches are recorded, not raised."""

    batch: Batch
    supply: SupplyCheck
    transactions: Tuple[TransactionResult, ...]
    outcomes: Tuple[SettlementOutcome, ...]

    @property
    def failed_count(self) -> int:
        return sum(1 for o in self.outcomes if not o.is_settled)


@dataclass(frozen=True)
class ChunkAborted:
    """A chunk stopped by a fatal error; no later chunk runs."""

    batch: Batch
    stage: str
    error: Exception
    transactions: Tuple[TransactionResult, ...] = ()

    @property
    def failed_count(self) -> int:
        return 0


ChunkResult = Union[ChunkRecorded, ChunkAborted]


@dataclass(frozen=True)
class RunResult:
    """Folded result of a whole run."""

    total_entries: int
    chunks: Tuple[ChunkResult, ...] = field(default_factory=tuple)

    @property
    def aborted(self) -> Optional[ChunkAborted]:
        """The aborted chunk, if the run was stopped."""
        for chunk in self.chunks:
            if isinstance(chunk, ChunkAborted):
                return chunk
        return None

    @property
    def failed_count(self) -> int:
        """Recipients that did not settle, across all completed chunks."""
        return sum(c.failed_count for c in self.chunks)

    @property
    def transactions(self) -> List[TransactionResult]:
        return [tx for c in self.chunks for tx in c.transactions]

    @property
    def outcomes(self) -> List[SettlementOutcome]:
        return [o for c in self.chunks if isinstance(c, ChunkRecorded) for o in c.outcomes]

    @property
    def success(self) -> bool:
        return self.aborted is None and self.failed_count == 0

    def raise_for_status(self) -> None:
        """
        Raise if the run did not fully succeed.

        Raises:
            DisbursementAborted: If a chunk hit a fatal error
            SettlementMismatch: If any recipient did not settle
        """
        aborted = self.aborted
        if aborted is not None:
            raise DisbursementAborted(aborted.batch.index, aborted.stage, aborted.error) from aborted.error
        if self.failed_count:
            raise SettlementMismatch(self.failed_count)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        aborted = self.aborted
        return {
            "success": self.success,
            "total_entries": self.total_entries,
            "chunks": len(self.chunks),
            "transactions": len(self.transactions),
            "failed_count": self.failed_count,
            "aborted": (
                {"chunk": aborted.batch.index, "stage": aborted.stage, "error": str(aborted.error)}
                if aborted else None
            ),
        }


class BatchOrchestrator:
    """
    Main disbursement orchestrator.

    Coordinates all disburser components for each chunk:
    - Balance snapshot of the chunk's recipients
    - Supply guarantee for the funding account
    - Sequential transfer submission
    - Settlement verification

    Usage:
        ```python
        with Web3ChainClient(config) as client:
            orchestrator = BatchOrchestrator(client, config)
            result = orchestrator.run(entries, signer)
            result.raise_for_status()
        ```
    """

    def __init__(
        self,
        client: ChainClient,
        config: Optional[DisburserConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the orchestrator.

        Args:
            client: Chain client
            config: Disburser configuration
            sleep: Function used for every wait (settlement delays and retries)
        """
        self.config = config or get_config()
        self.client = client

        self.query_policy = RetryPolicy.for_queries(self.config, sleep)
        settlement_policy = RetryPolicy.for_settlement(self.config, sleep)

        self.snapshotter = BalanceSnapshotter(client, self.query_policy)
        self.guarantor = SupplyGuarantor(
            client,
            self.query_policy,
            settlement_delay_seconds=self.config.mint_settlement_delay_seconds,
            sleep=sleep,
        )
        self.sequencer = TransferSequencer(client)
        self.verifier = SettlementVerifier(
            client,
            self.query_policy,
            settlement_policy,
            settlement_delay_seconds=self.config.settlement_delay_seconds,
            sleep=sleep,
        )

        # Callbacks
        self._on_chunk_started: Optional[Callable[[Batch], None]] = None
        self._on_balance_captured: Optional[Callable[[int, Address, int], None]] = None
        self._on_transaction: Optional[Callable[[TransactionResult], None]] = None
        self._on_outcome: Optional[Callable[[SettlementOutcome], None]] = None
        self._on_chunk_finished: Optional[Callable[[ChunkResult], None]] = None

    def run(self, entries: Sequence[Entry], signer: TransactionSigner) -> RunResult:
        """
        Disburse all entries.

        Chunks run sequentially. A fatal error ends the run at the chunk
        where it happened; settlement mismatches are folded into the result.

        Args:
            entries: Entries in original order
            signer: Signer of the funding account

        Returns:
            RunResult covering every chunk that was started
        """
        batches = split_into_batches(entries)
        logger.info("run_starting", entries=len(entries), chunks=len(batches), sender=signer.address)

        results: List[ChunkResult] = []
        for batch in batches:
            result = self.run_batch(batch, signer)
            results.append(result)
            if isinstance(result, ChunkAborted):
                break

        run = RunResult(total_entries=len(entries), chunks=tuple(results))
        if run.success:
            logger.info("run_succeeded", **run.to_dict())
        else:
            logger.error("run_failed", **run.to_dict())
        return run

    def run_batch(self, batch: Batch, signer: TransactionSigner) -> ChunkResult:
        """
        Process one chunk.

        Args:
            batch: Chunk to process
            signer: Signer of the funding account

        Returns:
            ChunkRecorded, or ChunkAborted on a fatal error
        """
        logger.info("chunk_starting", chunk=batch.index, size=batch.size)
        if self._on_chunk_started:
            self._on_chunk_started(batch)

        transactions: List[TransactionResult] = []

        def submitted(tx: TransactionResult) -> None:
            transactions.append(tx)
            if self._on_transaction:
                self._on_transaction(tx)

        stage = "snapshot"
        try:
            snapshot = self.snapshotter.capture(batch.entries, on_captured=self._on_balance_captured)

            stage = "supply"
            funding_balance = query_balance_with_retry(self.client, signer.address, self.query_policy)
            supply = self.guarantor.ensure_supply(required_total(batch.entries), funding_balance, signer)

            stage = "transfer"
            self.sequencer.submit_all(batch, signer, on_submitted=submitted)

            stage = "settlement"
            outcomes = self.verifier.verify(batch, snapshot)

        except FATAL_ERRORS as e:
            logger.error("chunk_aborted", chunk=batch.index, stage=stage, sent=len(transactions), error=str(e))
            result: ChunkResult = ChunkAborted(
                batch=batch,
                stage=stage,
                error=e,
                transactions=tuple(transactions),
            )
        else:
            if self._on_outcome:
                for outcome in outcomes:
                    self._on_outcome(outcome)
            result = ChunkRecorded(
                batch=batch,
                supply=supply,
                transactions=tuple(transactions),
                outcomes=tuple(outcomes),
            )
            logger.info("chunk_finished", chunk=batch.index, failed=result.failed_count)

        if self._on_chunk_finished:
            self._on_chunk_finished(result)
        return result

    # Callback registration

    def on_chunk_started(self, callback: Callable[[Batch], None]) -> None:
        """Register callback for chunk start events."""
        self._on_chunk_started = callback

    def on_balance_captured(self, callback: Callable[[int, Address, int], None]) -> None:
        """Register callback for each pre-transfer balance read (nth, address, balance)."""
        self._on_balance_captured = callback

    def on_transaction(self, callback: Callable[[TransactionResult], None]) -> None:
        """Register callback for submitted transfers."""
        self._on_transaction = callback

    def on_outcome(self, callback: Callable[[SettlementOutcome], None]) -> None:
        """Register callback for settlement outcomes."""
        self._on_outcome = callback

    def on_chunk_finished(self, callback: Callable[[ChunkResult], None]) -> None:
        """Register callback for chunk completion (recorded or aborted)."""
        self._on_chunk_finished = callback
