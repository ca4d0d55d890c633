"""Dry-run chain client that settles against an in-process ReceiverLedger."""

import asyncio
import hashlib
import logging
from typing import Optional

from shadowbridge.chain.base import ChainClient, SubmissionReceipt
from shadowbridge.chain.receiver import ReceiverLedger
from shadowbridge.ledger.models import TransferRecord

logger = logging.getLogger(__name__)


class LedgerChainClient(ChainClient):
    """Submits as the ledger's relayer; no network involved."""

    name = "dry-run"

    def __init__(
        self,
        ledger: ReceiverLedger,
        relayer: Optional[str] = None,
        confirmation_delay: float = 0.0,
    ):
        """Initialize client.

        Args:
            ledger: Receiver ledger to settle against
            relayer: Identity to submit as (defaults to the ledger's relayer)
            confirmation_delay: Seconds to wait before reporting confirmation
        """
        self.ledger = ledger
        self.relayer = relayer or ledger.relayer
        self.confirmation_delay = confirmation_delay

    def is_ready(self) -> bool:
        return True

    async def submit_transfer(self, transfer: TransferRecord) -> SubmissionReceipt:
        logger.info(
            f"[DRY RUN] Submitting transfer {transfer.id}: {transfer.amount_usd} USD "
            f"to {transfer.recipient} (message {transfer.message_hash})"
        )

        event = self.ledger.execute(
            caller=self.relayer,
            recipient=transfer.recipient,
            amount=transfer.amount_base_units,
            message_hash=transfer.message_hash,
            proof=transfer.proofs.amount_proof or "",
        )

        if self.confirmation_delay > 0:
            await asyncio.sleep(self.confirmation_delay)

        seed = f"{event.message_hash}:{event.block_number}".encode()
        tx_hash = "0x" + hashlib.sha256(seed).hexdigest()
        logger.info(f"[DRY RUN] Settlement confirmed: {tx_hash} (block {event.block_number})")

        return SubmissionReceipt(tx_hash=tx_hash, block_number=event.block_number)

    async def get_stats(self) -> tuple[int, int]:
        return self.ledger.get_stats()

    async def is_processed(self, message_hash: str) -> bool:
        return self.ledger.is_processed(message_hash)
