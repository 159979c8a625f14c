"""
Transaction module.

Handles transaction signing and sequential submission.
"""

from disburser.tx.signer import SignerError, TransactionSigner
from disburser.tx.sequencer import TransferSequencer

__all__ = [
    "SignerError",
    "TransactionSigner",
    "TransferSequencer",
]
