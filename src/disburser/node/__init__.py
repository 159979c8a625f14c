"""
Node Integration Layer.

Provides abstracted access to token balances, nonces and transaction submission.
"""

from disburser.node.interface import ChainClient, ChainCallFailed
from disburser.node.web3_client import Web3ChainClient

__all__ = [
    "ChainClient",
    "ChainCallFailed",
    "Web3ChainClient",
]
