"""
Abstract interface for chain node access.

Defines the contract for blockchain access that all node adapters must implement.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from disburser.tx.signer import TransactionSigner


class ChainClient(ABC):
    """
    Abstract interface for token contract access on one chain.

    This interface defines all blockchain operations needed by the disburser:
    - Token balance queries
    - Account nonce reads
    - Signed transfer submission
    - Minting into the funding account

    Every call blocks until the node answers. Any failure is raised as
    ChainCallFailed; a call never partially succeeds.
    """

    def connect(self) -> None:
        """
        Establish connection to the node.

        Raises:
            ChainCallFailed: If the node cannot be reached
        """

    def disconnect(self) -> None:
        """Close connection to the node."""

    @abstractmethod
    def query_balance(self, address: str) -> int:
        """
        Get the token balance of an address.

        Args:
            address: Account address

        Returns:
            Balance in minimal units
        """
        pass

    @abstractmethod
    def read_nonce(self, address: str) -> int:
        """
        Get the next transaction nonce of an account.

        Args:
            address: Account address

        Returns:
            Count of transactions already sent from the account
        """
        pass

    @abstractmethod
    def submit_transfer(
        self,
        recipient: str,
        amount: int,
        nonce: int,
        signer: "TransactionSigner",
    ) -> str:
        """
        Sign and submit a token transfer.

        Args:
            recipient: Receiving address
            amount: Amount in minimal units
            nonce: Nonce to use for the transaction
            signer: Signer of the funding account

        Returns:
            Transaction hash
        """
        pass

    @abstractmethod
    def mint(self, amount: int, signer: "TransactionSigner") -> str:
        """
        Mint tokens into the signer's account.

        Args:
            amount: Amount in minimal units
            signer: Signer of the funding account

        Returns:
            Transaction hash
        """
        pass

    def __enter__(self) -> "ChainClient":
        self.connect()
        return self

    def __exit__(self, *exc_info) -> None:
        self.disconnect()


class ChainCallFailed(Exception):
    """
    Raised when an RPC call fails for any reason.

    Attributes:
        operation: Name of the failed call (e.g. "query_balance")
        cause: Underlying exception, if any
    """

    def __init__(
        self,
        operation: str,
        message: str,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(f"{operation} failed: {message}")
        self.operation = operation
        self.cause = cause
