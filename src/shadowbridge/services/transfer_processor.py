"""Transfer processor: drives queued transfers through verification and settlement.

A single worker task drains a FIFO queue. Each transfer runs
QUEUED -> PROOF_VERIFYING -> PROOF_VERIFIED -> SUBMITTING -> SETTLED
(or FAILED from any non-terminal stage) to completion before the next one
starts, so settlement order follows enqueue order and the relayer key is
used by at most one submission at a time.

Stopping the worker fails the transfer it was working on; recover() picks up
what a previous run left in the store.
"""

import asyncio
import logging
from typing import Optional

from shadowbridge.chain.base import ChainClient
from shadowbridge.config import AlreadyProcessedPolicy
from shadowbridge.errors import AlreadyProcessedError, TransientChainError
from shadowbridge.ledger.models import TransferRecord, TransferStatus, utcnow
from shadowbridge.ledger.store import TransferStore
from shadowbridge.verification.base import ProofVerifier

logger = logging.getLogger(__name__)

STOPPED_ERROR = "Relayer stopped during processing"
INTERRUPTED_ERROR = "Relayer restarted during processing"


class TransferProcessor:
    """Single-consumer queue over the transfer pipeline."""

    def __init__(
        self,
        store: TransferStore,
        verifier: ProofVerifier,
        chain_client: ChainClient,
        submission_timeout: Optional[float] = 180.0,
        already_processed_policy: AlreadyProcessedPolicy = AlreadyProcessedPolicy.SETTLED,
    ):
        """Initialize processor.

        Args:
            store: Transfer store holding the records
            verifier: Proof verifier run before submission
            chain_client: Destination chain client
            submission_timeout: Seconds one submission may take (None = unbounded)
            already_processed_policy: Status recorded when the ledger already
                consumed the message hash
        """
        self.store = store
        self.verifier = verifier
        self.chain_client = chain_client
        self.submission_timeout = submission_timeout
        self.already_processed_policy = already_processed_policy

        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._worker: Optional[asyncio.Task] = None
        self._current: Optional[str] = None

    def enqueue(self, transfer_id: str) -> None:
        """Append a transfer to the queue and make sure the worker is running."""
        self._queue.put_nowait(transfer_id)
        self._ensure_worker()

    def pending_jobs(self) -> int:
        """Queued transfers plus the one in flight."""
        return self._queue.qsize() + (1 if self._current is not None else 0)

    @property
    def is_running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def start(self) -> None:
        self._ensure_worker()

    async def stop(self) -> None:
        """Cancel the worker. Queued ids stay queued until the next start()."""
        if self._worker is None:
            return
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        logger.info("Transfer processor stopped")

    async def wait_idle(self) -> None:
        """Wait until every enqueued transfer has reached a terminal state."""
        await self._queue.join()

    async def recover(self) -> int:
        """Resume work left in the store by a previous run.

        QUEUED records are enqueued oldest first. Records caught mid-pipeline
        are settled if the destination ledger already consumed their message
        hash, and failed otherwise.

        Returns:
            Number of transfers enqueued
        """
        enqueued = 0
        for record in reversed(await self.store.list()):
            if record.status == TransferStatus.QUEUED:
                self.enqueue(record.id)
                enqueued += 1
            elif record.status.is_in_flight:
                await self._resolve_interrupted(record, INTERRUPTED_ERROR)
        if enqueued:
            logger.info(f"Recovered {enqueued} queued transfers")
        return enqueued

    def _ensure_worker(self) -> None:
        # Runs on the event loop thread with no await in between, so the
        # check-and-create cannot interleave with another caller.
        if not self.is_running:
            self._worker = asyncio.create_task(self._run(), name="transfer-processor")

    async def _run(self) -> None:
        while True:
            transfer_id = await self._queue.get()
            self._current = transfer_id
            try:
                await self.handle_transfer(transfer_id)
            except asyncio.CancelledError:
                await asyncio.shield(self._abandon(transfer_id))
                raise
            except Exception:
                logger.exception(f"Transfer processing failed: {transfer_id}")
            finally:
                self._current = None
                self._queue.task_done()
            # A cancel absorbed by an inner await must still stop the worker
            if asyncio.current_task().cancelling():
                raise asyncio.CancelledError

    async def handle_transfer(self, transfer_id: str) -> Optional[TransferRecord]:
        """Run one transfer's pipeline to a terminal state."""
        transfer = await self.store.get(transfer_id)
        if transfer is None:
            logger.error(f"Transfer not found: {transfer_id}")
            return None
        if transfer.status != TransferStatus.QUEUED:
            logger.warning(f"Transfer {transfer_id} is {transfer.status.value}, skipping")
            return transfer

        logger.info(f"Processing transfer {transfer_id}: {transfer.amount_usd} USD")

        await self.store.update(transfer_id, status=TransferStatus.PROOF_VERIFYING)
        try:
            await self.verifier.verify(transfer.proofs)
        except Exception as e:
            return await self._fail(transfer_id, e, stage="verification")

        await self.store.update(transfer_id, status=TransferStatus.PROOF_VERIFIED)
        transfer = await self.store.update(transfer_id, status=TransferStatus.SUBMITTING)

        try:
            receipt = await self._submit(transfer)
        except AlreadyProcessedError as e:
            return await self._already_processed(transfer_id, e)
        except Exception as e:
            return await self._fail(transfer_id, e, stage="submission")

        settled = await self.store.update(
            transfer_id,
            status=TransferStatus.SETTLED,
            tx_hash=receipt.tx_hash,
            settled_at=utcnow(),
        )
        logger.info(f"Transfer settled: {transfer_id} (tx {receipt.tx_hash})")
        return settled

    async def _submit(self, transfer: TransferRecord):
        try:
            async with asyncio.timeout(self.submission_timeout):
                return await self.chain_client.submit_transfer(transfer)
        except TimeoutError:
            raise TransientChainError(
                f"Chain submission timed out after {self.submission_timeout}s"
            )

    def _requeue_front(self, transfer_id: str) -> None:
        pending = []
        while not self._queue.empty():
            pending.append(self._queue.get_nowait())
            self._queue.task_done()
        for item in [transfer_id, *pending]:
            self._queue.put_nowait(item)

    async def _abandon(self, transfer_id: str) -> None:
        """Fail the interrupted transfer; one still QUEUED goes back first in line."""
        try:
            transfer = await self.store.get(transfer_id)
            if transfer is None or transfer.status.is_terminal:
                return
            if transfer.status == TransferStatus.QUEUED:
                self._requeue_front(transfer_id)
                return
            await self.store.update(
                transfer_id, status=TransferStatus.FAILED, error=STOPPED_ERROR
            )
            logger.warning(f"Transfer {transfer_id} failed: {STOPPED_ERROR}")
        except Exception:
            logger.exception(f"Could not record stop of transfer {transfer_id}")

    async def _resolve_interrupted(self, transfer: TransferRecord, error: str) -> None:
        if transfer.status == TransferStatus.SUBMITTING:
            try:
                processed = await self.chain_client.is_processed(transfer.message_hash)
            except Exception as e:
                logger.error(f"Cannot check message {transfer.message_hash}: {e}")
                processed = False
            if processed:
                await self._already_processed(
                    transfer.id, AlreadyProcessedError(transfer.message_hash)
                )
                return
        await self.store.update(transfer.id, status=TransferStatus.FAILED, error=error)
        logger.warning(f"Transfer {transfer.id} failed: {error}")

    async def _fail(self, transfer_id: str, error: Exception, stage: str) -> TransferRecord:
        message = str(error) or type(error).__name__
        logger.error(f"Transfer {transfer_id} failed during {stage}: {message}")
        return await self.store.update(transfer_id, status=TransferStatus.FAILED, error=message)

    async def _already_processed(
        self, transfer_id: str, error: AlreadyProcessedError
    ) -> TransferRecord:
        logger.warning(
            f"Transfer {transfer_id}: message {error.message_hash} already settled on the "
            f"destination ledger (recording as {self.already_processed_policy.value})"
        )
        if self.already_processed_policy == AlreadyProcessedPolicy.FAILED:
            return await self.store.update(
                transfer_id, status=TransferStatus.FAILED, error=str(error)
            )

        transfer = await self.store.get(transfer_id)
        return await self.store.update(
            transfer_id,
            status=TransferStatus.SETTLED,
            settled_at=utcnow(),
            metadata={**transfer.metadata, "alreadyProcessed": True},
        )
