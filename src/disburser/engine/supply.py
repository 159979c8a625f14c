"""
Supply Guarantor - makes sure the funding account can cover a chunk.

Mints a buffer when the funding balance is short and confirms the
mint landed before any transfer is submitted.
"""

import time
from dataclasses import dataclass
from typing import Callable, Sequence

import structlog

from disburser.core.entry import Entry
from disburser.core.units import UNIT, format_units
from disburser.engine.retry import RetryPolicy, query_balance_with_retry
from disburser.node.interface import ChainClient
from disburser.tx.signer import TransactionSigner

logger = structlog.get_logger(__name__)

# Mint this many times the shortfall so top-ups stay rare.
MINT_MULTIPLIER = 100


class InsufficientSupply(Exception):
    """Raised when a mint did not raise the funding balance by the minted amount."""

    def __init__(self, address: str, minted: int, observed_increase: int):
        super().__init__(
            f"Insufficient balance, and mint failed! {address}: minted "
            f"{format_units(minted)}, balance rose by {format_units(observed_increase)}"
        )
        self.address = address
        self.minted = minted
        self.observed_increase = observed_increase


def required_total(entries: Sequence[Entry]) -> int:
    """
    Amount the funding account must hold before a chunk.

    The sum of entry amounts plus one whole token per entry as margin.
    """
    return sum(e.amount for e in entries) + len(entries) * UNIT


def mint_amount(required: int, funding_balance: int) -> int:
    """Amount to mint for a shortfall; 0 when there is none."""
    if funding_balance >= required:
        return 0
    return (required - funding_balance) * MINT_MULTIPLIER


@dataclass(frozen=True)
class SupplyCheck:
    """Result of a supply guarantee."""

    required: int
    balance_before: int
    minted: int = 0
    balance_after: int = 0
    tx_hash: str = ""

    @property
    def did_mint(self) -> bool:
        return self.minted > 0


class SupplyGuarantor:
    """
    Ensures the funding account holds the required total.

    Mint calls are never retried. The confirmation balance read uses
    the query retry policy.
    """

    def __init__(
        self,
        client: ChainClient,
        query_policy: RetryPolicy,
        settlement_delay_seconds: float = 5.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the supply guarantor.

        Args:
            client: Chain client
            query_policy: Retry policy for the confirmation balance read
            settlement_delay_seconds: Wait between mint and confirmation
            sleep: Function used to wait
        """
        self.client = client
        self.query_policy = query_policy
        self.settlement_delay_seconds = settlement_delay_seconds
        self.sleep = sleep

    def ensure_supply(
        self,
        required: int,
        funding_balance: int,
        signer: TransactionSigner,
    ) -> SupplyCheck:
        """
        Mint if the funding balance is below the required total.

        Args:
            required: Required total in minimal units
            funding_balance: Current funding account balance
            signer: Signer of the funding account

        Returns:
            SupplyCheck describing what happened

        Raises:
            ChainCallFailed: If the mint or the confirmation read fails
            InsufficientSupply: If the balance did not rise by the minted amount
        """
        minted = mint_amount(required, funding_balance)
        if not minted:
            logger.debug(
                "supply_sufficient",
                required=format_units(required),
                balance=format_units(funding_balance),
            )
            return SupplyCheck(required=required, balance_before=funding_balance,
                               balance_after=funding_balance)

        logger.info("minting", amount=format_units(minted), required=format_units(required),
                    balance=format_units(funding_balance))
        tx_hash = self.client.mint(minted, signer)

        self.sleep(self.settlement_delay_seconds)

        new_balance = query_balance_with_retry(self.client, signer.address, self.query_policy)
        increase = new_balance - funding_balance
        if increase != minted:
            logger.error(
                "mint_not_confirmed",
                minted=format_units(minted),
                increase=format_units(increase),
                tx_hash=tx_hash,
            )
            raise InsufficientSupply(signer.address, minted, increase)

        logger.info("mint_confirmed", balance=format_units(new_balance), tx_hash=tx_hash)
        return SupplyCheck(
            required=required,
            balance_before=funding_balance,
            minted=minted,
            balance_after=new_balance,
            tx_hash=tx_hash,
        )
