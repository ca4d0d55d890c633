"""Source chain (Midnight) event listener.

Polls the source chain indexer for TransferRegistered events and feeds them
into intake. Each event's transaction id becomes the transfer's
source_tx_hash, so a redelivered event produces the same message hash and
cannot settle twice on the destination ledger.
"""

import asyncio
import logging
from typing import Any, Optional

from shadowbridge.errors import RelayError
from shadowbridge.ledger.models import ProofBundle, TransferRecord, TransferSource
from shadowbridge.services.transfer_service import CreateTransferInput, TransferService

logger = logging.getLogger(__name__)


class SourceChainListener:
    """Runner that turns source chain events into queued transfers."""

    def __init__(
        self,
        service: TransferService,
        contract_address: str,
        indexer_url: str = "",
        interval: float = 10.0,
        destination_chain: str = "ethereum-sepolia",
    ):
        """Initialize listener.

        Args:
            service: Intake that validates and queues the transfers
            contract_address: Bridge contract on the source chain
            indexer_url: Source chain indexer endpoint
            interval: Seconds between poll cycles
            destination_chain: Tag applied to transfers built from events
        """
        self.service = service
        self.contract_address = contract_address
        self.indexer_url = indexer_url
        self.interval = interval
        self.destination_chain = destination_chain
        self.last_processed_block = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.is_running:
            logger.warning("Source chain listener already running")
            return
        logger.info(
            f"Starting source chain listener for {self.contract_address} "
            f"(indexer {self.indexer_url or 'not set'}, every {self.interval}s)"
        )
        self._task = asyncio.create_task(self._run(), name="source-listener")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Source chain listener stopped")

    async def _run(self) -> None:
        while True:
            try:
                await self.poll_events()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Error polling source chain events: {e}")
            await asyncio.sleep(self.interval)

    async def poll_events(self) -> int:
        """Run one poll cycle.

        Returns:
            Number of transfers queued
        """
        if not self.indexer_url:
            logger.warning("Source chain indexer URL not configured")
            return 0

        events = await self.fetch_events()
        queued = 0
        for event in events:
            if await self.process_event(event) is not None:
                queued += 1
        return queued

    async def fetch_events(self) -> list[dict[str, Any]]:
        """Fetch TransferRegistered events newer than ``last_processed_block``."""
        # TODO: query the Midnight indexer GraphQL API once its event schema is published
        logger.debug("Source chain event query not available yet")
        return []

    async def process_event(self, event: dict[str, Any]) -> Optional[TransferRecord]:
        """Queue the transfer described by one source chain event.

        Returns:
            The queued record, or None if the event was rejected
        """
        data = event.get("eventData") or {}
        tx_id = event.get("txId") or data.get("messageHash")

        request = CreateTransferInput(
            sender=data.get("sender") or data.get("senderCommit"),
            recipient=data.get("recipient") or data.get("recipientCommit"),
            destination_chain=data.get("destinationChain") or self.destination_chain,
            amount_usd=data.get("amountUsd"),
            proofs=ProofBundle.from_dict(data.get("proofs")),
            source_tx_hash=tx_id,
            metadata={
                "sourceBlockHeight": event.get("blockHeight"),
                "sourceContractAddress": self.contract_address,
            },
            source=TransferSource.CHAIN_EVENT,
        )

        try:
            transfer = await self.service.create_transfer(request)
        except RelayError as e:
            logger.error(f"Failed to process source chain event {tx_id}: {e}")
            return None

        block_height = event.get("blockHeight")
        if isinstance(block_height, int) and block_height > self.last_processed_block:
            self.last_processed_block = block_height

        logger.info(f"Enqueued transfer {transfer.id} from source chain event {tx_id}")
        return transfer
