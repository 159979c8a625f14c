"""
Settlement Verifier - reconciles recipient balances after transfers.

Success is judged by balance deltas, not by transaction receipts.
"""

import time
from typing import Callable, List

import structlog

from disburser.core.batch import Batch, SettlementOutcome, SettlementStatus
from disburser.core.units import SETTLEMENT_PRECISION, format_units
from disburser.engine.retry import RetryPolicy, query_balance_with_retry
from disburser.engine.snapshot import BalanceSnapshot
from disburser.node.interface import ChainClient

logger = structlog.get_logger(__name__)


def amounts_match(expected: int, delta: int) -> bool:
    """Compare at 10^-3 token granularity; sub-granularity noise is ignored."""
    return expected // SETTLEMENT_PRECISION == delta // SETTLEMENT_PRECISION


class SettlementVerifier:
    """
    Checks that every recipient of a batch received what was sent.

    Waits once for block inclusion, then checks each aggregated
    recipient, re-checking under the settlement policy until the delta
    matches or the attempt budget runs out.
    """

    def __init__(
        self,
        client: ChainClient,
        query_policy: RetryPolicy,
        settlement_policy: RetryPolicy,
        settlement_delay_seconds: float = 10.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the settlement verifier.

        Args:
            client: Chain client
            query_policy: Retry policy for each balance read
            settlement_policy: Attempt budget and delay for re-checks
            settlement_delay_seconds: Initial wait before the first check
            sleep: Function used for the initial wait
        """
        self.client = client
        self.query_policy = query_policy
        self.settlement_policy = settlement_policy
        self.settlement_delay_seconds = settlement_delay_seconds
        self.sleep = sleep

    def verify(self, batch: Batch, snapshot: BalanceSnapshot) -> List[SettlementOutcome]:
        """
        Verify every aggregated recipient of `batch`.

        Args:
            batch: The submitted batch
            snapshot: Balances captured before submission

        Returns:
            One outcome per distinct recipient, in first-occurrence order

        Raises:
            ChainCallFailed: If a balance read fails within the query policy
        """
        logger.info("awaiting_settlement", seconds=self.settlement_delay_seconds, batch=batch.index)
        self.sleep(self.settlement_delay_seconds)

        outcomes = []
        for nth, (recipient, expected) in enumerate(batch.aggregate().items()):
            outcome = self._check(recipient, expected, snapshot.for_address(recipient))
            log = logger.info if outcome.is_settled else logger.warning
            log("settlement_result", nth=nth, **outcome.to_dict())
            outcomes.append(outcome)

        return outcomes

    def _check(self, recipient: str, expected: int, pre_balance: int) -> SettlementOutcome:
        """Check one recipient until matched or out of attempts."""
        attempts = 0
        while True:
            attempts += 1
            balance = query_balance_with_retry(self.client, recipient, self.query_policy)
            delta = balance - pre_balance

            if amounts_match(expected, delta):
                status = SettlementStatus.SETTLED
                break
            if attempts >= self.settlement_policy.max_attempts:
                status = SettlementStatus.FAILED
                break

            logger.debug(
                "settlement_pending",
                recipient=recipient,
                attempt=attempts,
                expected=format_units(expected),
                delta=format_units(delta),
            )
            self.settlement_policy.wait()

        return SettlementOutcome(
            recipient=recipient,
            expected_amount=expected,
            observed_delta=delta,
            final_balance=balance,
            pre_balance=pre_balance,
            status=status,
            attempts=attempts,
        )
