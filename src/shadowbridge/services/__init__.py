"""Relay services: intake, processing and the source chain listener."""

from dataclasses import dataclass
from typing import Optional

from shadowbridge.chain.base import ChainClient
from shadowbridge.chain.factory import get_chain_client
from shadowbridge.config import Settings
from shadowbridge.ledger.store import TransferStore, create_store
from shadowbridge.services.source_listener import SourceChainListener
from shadowbridge.services.transfer_processor import TransferProcessor
from shadowbridge.services.transfer_service import (
    CreateTransferInput,
    TransferService,
    TransferServiceOptions,
)
from shadowbridge.verification.base import ProofVerifier
from shadowbridge.verification.factory import get_proof_verifier


@dataclass
class RelayServices:
    """Wired-up relay components shared by the API and the entry point."""

    settings: Settings
    store: TransferStore
    verifier: ProofVerifier
    chain_client: ChainClient
    processor: TransferProcessor
    transfer_service: TransferService
    listener: Optional[SourceChainListener] = None

    async def startup(self) -> None:
        await self.store.initialize()
        await self.processor.recover()
        self.processor.start()
        if self.listener is not None:
            self.listener.start()

    async def shutdown(self) -> None:
        if self.listener is not None:
            await self.listener.stop()
        await self.processor.stop()
        await self.chain_client.close()
        await self.store.close()


def build_services(
    settings: Settings,
    store: Optional[TransferStore] = None,
    verifier: Optional[ProofVerifier] = None,
    chain_client: Optional[ChainClient] = None,
) -> RelayServices:
    """Wire the relay from settings; any component may be supplied instead."""
    store = store or create_store(settings)
    verifier = verifier or get_proof_verifier(settings)
    chain_client = chain_client or get_chain_client(settings)

    processor = TransferProcessor(
        store,
        verifier,
        chain_client,
        submission_timeout=settings.submission_timeout_seconds,
        already_processed_policy=settings.already_processed_policy,
    )
    transfer_service = TransferService(
        store,
        processor,
        TransferServiceOptions(
            min_amount=settings.min_amount,
            max_amount=settings.max_amount,
            fee_bps=settings.fee_bps,
            decimals=settings.token_decimals,
        ),
    )

    listener = None
    if settings.has_source_listener:
        listener = SourceChainListener(
            transfer_service,
            settings.source_contract_address,
            indexer_url=settings.source_indexer_url,
            interval=settings.source_poll_interval,
            destination_chain=settings.default_destination_chain,
        )

    return RelayServices(
        settings=settings,
        store=store,
        verifier=verifier,
        chain_client=chain_client,
        processor=processor,
        transfer_service=transfer_service,
        listener=listener,
    )


__all__ = [
    "CreateTransferInput",
    "RelayServices",
    "SourceChainListener",
    "TransferProcessor",
    "TransferService",
    "TransferServiceOptions",
    "build_services",
]
