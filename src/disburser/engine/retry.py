"""
Retry policies for chain reads.

A policy is a fixed attempt budget with a fixed delay between attempts.
The sleep function is injectable so tests can run without waiting.
"""

import time
from dataclasses import dataclass, field
from typing import Callable

import structlog

from disburser.config import DisburserConfig
from disburser.node.interface import ChainClient, ChainCallFailed

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """
    Fixed-delay retry policy.

    Attributes:
        max_attempts: Total attempts including the first one
        delay_seconds: Wait between attempts
        sleep: Function used to wait
    """

    max_attempts: int
    delay_seconds: float
    sleep: Callable[[float], None] = field(default=time.sleep, compare=False)

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")

    def wait(self) -> None:
        """Sleep for the policy delay."""
        self.sleep(self.delay_seconds)

    @classmethod
    def for_queries(cls, config: DisburserConfig, sleep: Callable[[float], None] = time.sleep) -> "RetryPolicy":
        """Policy for single balance queries."""
        return cls(config.query_retry_attempts, config.query_retry_delay_seconds, sleep)

    @classmethod
    def for_settlement(cls, config: DisburserConfig, sleep: Callable[[float], None] = time.sleep) -> "RetryPolicy":
        """Policy for settlement re-checks of one recipient."""
        return cls(config.settlement_check_attempts, config.settlement_retry_delay_seconds, sleep)


def query_balance_with_retry(client: ChainClient, address: str, policy: RetryPolicy) -> int:
    """
    Query a balance, retrying failed calls under `policy`.

    Raises:
        ChainCallFailed: The last failure once the attempt budget is spent
    """
    for attempt in range(1, policy.max_attempts + 1):
        try:
            return client.query_balance(address)
        except ChainCallFailed as e:
            if attempt >= policy.max_attempts:
                raise ChainCallFailed(
                    "query_balance",
                    f"{address} after {attempt} attempt(s): {e}",
                    cause=e,
                ) from e
            logger.warning("balance_query_retry", address=address, attempt=attempt, error=str(e))
            policy.wait()
