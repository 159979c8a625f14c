"""
Web3 adapter for node integration.

Provides token contract access over a JSON-RPC HTTP endpoint via web3.py.
"""

from typing import Any, Callable, Optional

import requests
import structlog
from web3 import Web3
from web3.contract import Contract
from web3.exceptions import Web3Exception

from disburser.config import DisburserConfig, get_config
from disburser.node.interface import ChainClient, ChainCallFailed
from disburser.tx.signer import TransactionSigner

logger = structlog.get_logger(__name__)

# ERC-20 subset plus the owner-only mint used to top up the funding account.
TOKEN_ABI = [
    {
        "name": "balanceOf",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "account", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "name": "transfer",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "recipient", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "name": "mint",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "amount", "type": "uint256"}],
        "outputs": [{"name": "", "type": "bool"}],
    },
]

# Errors the node, transport or contract can raise for a single call.
RPC_ERRORS = (Web3Exception, requests.exceptions.RequestException, ValueError)


class Web3ChainClient(ChainClient):
    """
    web3.py adapter.

    Implements the ChainClient interface against a token contract using
    a blocking HTTP provider. Transactions are signed locally and sent raw.
    """

    def __init__(
        self,
        config: Optional[DisburserConfig] = None,
        web3: Optional[Web3] = None,
    ):
        """
        Initialize the web3 adapter.

        Args:
            config: Disburser configuration. Uses global config if not provided.
            web3: Pre-built Web3 instance (a provider is created from config if not provided)
        """
        self.config = config or get_config()
        self.rpc_url = self.config.rpc_endpoint
        self.contract_address = Web3.to_checksum_address(self.config.token_contract)
        self._web3 = web3
        self._contract: Optional[Contract] = None
        self._chain_id: Optional[int] = self.config.chain_id

    def connect(self) -> None:
        """Create the provider and bind the token contract."""
        if self._contract is not None:
            return

        if self._web3 is None:
            self._web3 = Web3(Web3.HTTPProvider(
                self.rpc_url,
                request_kwargs={"timeout": self.config.request_timeout_seconds},
            ))

        self._contract = self._web3.eth.contract(address=self.contract_address, abi=TOKEN_ABI)

        if self._chain_id is None:
            self._chain_id = self._call("chain_id", lambda: self._web3.eth.chain_id)

        logger.info(
            "web3_connected",
            rpc_url=self.rpc_url,
            contract=self.contract_address,
            chain_id=self._chain_id,
        )

    def disconnect(self) -> None:
        """Drop the contract binding."""
        if self._contract is not None:
            self._contract = None
            logger.info("web3_disconnected")

    @property
    def web3(self) -> Web3:
        if self._contract is None:
            self.connect()
        return self._web3

    @property
    def contract(self) -> Contract:
        if self._contract is None:
            self.connect()
        return self._contract

    def _call(self, operation: str, fn: Callable[[], Any]) -> Any:
        """Run one RPC interaction, mapping every failure to ChainCallFailed."""
        try:
            return fn()
        except RPC_ERRORS as e:
            logger.error("rpc_call_failed", operation=operation, error=str(e))
            raise ChainCallFailed(operation, str(e), cause=e) from e

    def query_balance(self, address: str) -> int:
        """Get the token balance of an address."""
        account = Web3.to_checksum_address(address)
        return int(self._call(
            "query_balance",
            lambda: self.contract.functions.balanceOf(account).call(),
        ))

    def read_nonce(self, address: str) -> int:
        """Get the confirmed transaction count of an account."""
        account = Web3.to_checksum_address(address)
        return int(self._call(
            "read_nonce",
            lambda: self.web3.eth.get_transaction_count(account),
        ))

    def _send(self, operation: str, function: Any, nonce: int, signer: TransactionSigner) -> str:
        """Build, sign and broadcast a contract call."""
        def send() -> str:
            tx = function.build_transaction({
                "from": Web3.to_checksum_address(signer.address),
                "nonce": nonce,
                "chainId": self._chain_id,
            })
            raw_tx = signer.sign_transaction(tx)
            return Web3.to_hex(self.web3.eth.send_raw_transaction(raw_tx))

        return self._call(operation, send)

    def submit_transfer(
        self,
        recipient: str,
        amount: int,
        nonce: int,
        signer: TransactionSigner,
    ) -> str:
        """Sign and submit a token transfer with an explicit nonce."""
        function = self.contract.functions.transfer(Web3.to_checksum_address(recipient), amount)
        tx_hash = self._send("submit_transfer", function, nonce, signer)
        logger.debug("transfer_sent", recipient=recipient, nonce=nonce, tx_hash=tx_hash)
        return tx_hash

    def mint(self, amount: int, signer: TransactionSigner) -> str:
        """Mint tokens into the signer's account, using its current nonce."""
        nonce = self.read_nonce(signer.address)
        function = self.contract.functions.mint(amount)
        tx_hash = self._send("mint", function, nonce, signer)
        logger.debug("mint_sent", amount=amount, nonce=nonce, tx_hash=tx_hash)
        return tx_hash
