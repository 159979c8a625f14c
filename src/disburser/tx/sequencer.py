"""
Transfer Sequencer - submits one transfer per entry with ordered nonces.
"""

from typing import Callable, List, Optional

import structlog

from disburser.core.batch import Batch, TransactionResult
from disburser.core.units import format_units
from disburser.node.interface import ChainClient, ChainCallFailed
from disburser.tx.signer import TransactionSigner

logger = structlog.get_logger(__name__)


class TransferSequencer:
    """
    Submits a batch's transfers in entry order.

    The funding nonce is read once per batch and then reserved
    sequentially, so entry i uses starting_nonce + i. This assumes no
    other process sends from the funding account during the batch.
    """

    def __init__(self, client: ChainClient):
        self.client = client

    def submit_all(
        self,
        batch: Batch,
        signer: TransactionSigner,
        starting_nonce: Optional[int] = None,
        on_submitted: Optional[Callable[[TransactionResult], None]] = None,
    ) -> List[TransactionResult]:
        """
        Submit every entry of `batch`.

        Args:
            batch: Batch to submit
            signer: Signer of the funding account
            starting_nonce: Nonce of the first transfer (read from chain if None)
            on_submitted: Called with each result as soon as its transfer is accepted

        Returns:
            One TransactionResult per entry, in order

        Raises:
            ChainCallFailed: On the first failed submission; later entries are not sent
        """
        if starting_nonce is None:
            starting_nonce = self.client.read_nonce(signer.address)

        logger.info("sending_from", sender=signer.address, nonce=starting_nonce, size=batch.size)

        results = []
        for offset, entry in enumerate(batch.entries):
            nonce = starting_nonce + offset
            entry_index = batch.start_index + offset
            try:
                tx_hash = self.client.submit_transfer(entry.recipient, entry.amount, nonce, signer)
            except ChainCallFailed as e:
                raise ChainCallFailed(
                    "submit_transfer",
                    f"entry {entry_index} (line {entry.line_number}) to {entry.recipient} "
                    f"with nonce {nonce}: {e}",
                    cause=e,
                ) from e

            result = TransactionResult(
                entry_index=entry_index,
                nonce=nonce,
                tx_hash=tx_hash,
                recipient=entry.recipient,
                amount=entry.amount,
            )
            logger.info(
                "transfer_submitted",
                entry=entry_index,
                amount=format_units(entry.amount),
                recipient=entry.recipient,
                tx_hash=tx_hash,
            )
            results.append(result)
            if on_submitted:
                on_submitted(result)

        return results
