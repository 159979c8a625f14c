"""
Transaction Signer - handles transaction signing.

Manages the funding account's private key and signs transactions locally.
"""

from pathlib import Path
from typing import Optional

import structlog
from eth_account import Account
from eth_account.signers.local import LocalAccount

from disburser.config import DisburserConfig, get_config

logger = structlog.get_logger(__name__)


class SignerError(Exception):
    """Raised when a private key cannot be loaded or used."""
    pass


class TransactionSigner:
    """
    Handles transaction signing with the funding account's key.

    Supports loading keys from:
    - File path (a single hex private key, optional 0x prefix)
    - Hex string (for environment variable configuration)

    Security note: In production, consider using a HSM or
    secure key management service.
    """

    def __init__(self, config: Optional[DisburserConfig] = None):
        """
        Initialize the transaction signer.

        Args:
            config: Disburser configuration
        """
        self.config = config or get_config()
        self._account: Optional[LocalAccount] = None

    def load_key_from_file(self, key_path: str) -> None:
        """
        Load the private key from a file.

        Args:
            key_path: Path to the key file
        """
        path = Path(key_path)
        if not path.exists():
            raise SignerError(f"Private key file not found: {key_path}")

        self.load_key_from_hex(path.read_text(encoding="utf-8").strip())
        logger.info("signing_key_loaded", path=key_path, address=self.address)

    def load_key_from_hex(self, key_hex: str) -> None:
        """
        Load the private key from a hex string.

        Args:
            key_hex: 32-byte private key in hex
        """
        try:
            self._account = Account.from_key(key_hex.strip())
        except Exception as e:
            raise SignerError(f"Invalid private key: {e}") from e

    def load_from_config(self) -> None:
        """Load the private key from configuration."""
        if self.config.private_key_path:
            self.load_key_from_file(self.config.private_key_path)
        elif self.config.private_key_hex:
            self.load_key_from_hex(self.config.private_key_hex)
            logger.info("signing_key_loaded_from_hex", address=self.address)
        else:
            raise SignerError("No private key configured")

    @property
    def address(self) -> Optional[str]:
        """Get the funding account address (lowercase)."""
        return self._account.address.lower() if self._account else None

    @property
    def is_loaded(self) -> bool:
        """Check if a private key is loaded."""
        return self._account is not None

    def sign_transaction(self, tx: dict) -> bytes:
        """
        Sign a transaction.

        Args:
            tx: Transaction fields (nonce, gas, chainId, ...)

        Returns:
            Raw signed transaction bytes
        """
        if not self._account:
            raise SignerError("No signing key loaded")

        signed = self._account.sign_transaction(tx)
        logger.debug("transaction_signed", nonce=tx.get("nonce"))
        return bytes(signed.raw_transaction)


def generate_test_key(config: Optional[DisburserConfig] = None) -> TransactionSigner:
    """
    Generate a new random signing key for testing.

    WARNING: Do not use in production. The key is not persisted.

    Returns:
        TransactionSigner with a new random key
    """
    signer = TransactionSigner(config)
    signer._account = Account.create()

    logger.warning("test_key_generated", address=signer.address)

    return signer
