"""
Disbursement engine.

Balance snapshots, supply guarantees and settlement verification.
"""

from disburser.engine.retry import RetryPolicy
from disburser.engine.snapshot import BalanceSnapshot, BalanceSnapshotter
from disburser.engine.supply import InsufficientSupply, SupplyGuarantor
from disburser.engine.verifier import SettlementVerifier

__all__ = [
    "RetryPolicy",
    "BalanceSnapshot",
    "BalanceSnapshotter",
    "InsufficientSupply",
    "SupplyGuarantor",
    "SettlementVerifier",
]
