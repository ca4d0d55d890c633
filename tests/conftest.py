"""Pytest configuration and fixtures."""

import asyncio
import os
from decimal import Decimal
from typing import Optional

import pytest
import pytest_asyncio

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["STORE_BACKEND"] = "memory"
os.environ["DRY_RUN"] = "true"
os.environ["DEBUG"] = "false"

from shadowbridge.chain.base import ChainClient, SubmissionReceipt
from shadowbridge.config import Settings
from shadowbridge.errors import VerificationError
from shadowbridge.ledger.models import ProofBundle, TransferRecord
from shadowbridge.ledger.store import InMemoryTransferStore
from shadowbridge.services import (
    CreateTransferInput,
    TransferProcessor,
    TransferService,
    TransferServiceOptions,
)

SENDER = "0x1111111111111111111111111111111111111111"
RECIPIENT = "0x2222222222222222222222222222222222222222"
RELAYER = "0x00000000000000000000000000000000000000aa"

VALID_PROOFS = {
    "kycProof": "0x" + "ab" * 16,
    "amountProof": "0x" + "cd" * 16,
    "sanctionsProof": "0x" + "ef" * 16,
}


def make_input(**overrides) -> CreateTransferInput:
    """Build a valid transfer request, overriding any field."""
    values = dict(
        sender=SENDER,
        recipient=RECIPIENT,
        destination_chain="ethereum-sepolia",
        amount_usd="100",
        proofs=ProofBundle.from_dict(VALID_PROOFS),
    )
    values.update(overrides)
    return CreateTransferInput(**values)


class FakeVerifier:
    """Verifier that accepts everything unless told to reject."""

    kind = "fake"

    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.calls = []

    async def verify(self, proofs: ProofBundle) -> None:
        self.calls.append(proofs)
        if self.error is not None:
            raise self.error


class RejectingVerifier(FakeVerifier):
    def __init__(self):
        super().__init__(VerificationError("kycProof failed verification"))


class FakeChainClient(ChainClient):
    """Chain client that records submissions and returns synthetic receipts."""

    name = "fake"

    def __init__(self, error: Optional[Exception] = None, delay: float = 0.0):
        self.error = error
        self.delay = delay
        self.submitted: list[TransferRecord] = []
        self.active = 0
        self.max_active = 0

    def is_ready(self) -> bool:
        return True

    async def submit_transfer(self, transfer: TransferRecord) -> SubmissionReceipt:
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.error is not None:
                raise self.error
            self.submitted.append(transfer)
            return SubmissionReceipt(
                tx_hash="0x" + f"{len(self.submitted):064x}",
                block_number=len(self.submitted),
            )
        finally:
            self.active -= 1

    async def get_stats(self) -> tuple[int, int]:
        return len(self.submitted), sum(t.amount_base_units for t in self.submitted)

    async def is_processed(self, message_hash: str) -> bool:
        return any(t.message_hash == message_hash for t in self.submitted)


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from any .env file."""
    return Settings(_env_file=None, environment="test", dry_run=True)


@pytest.fixture
def options() -> TransferServiceOptions:
    return TransferServiceOptions(
        min_amount=Decimal("1"),
        max_amount=Decimal("10000"),
        fee_bps=150,
        decimals=18,
    )


@pytest.fixture
def store() -> InMemoryTransferStore:
    return InMemoryTransferStore()


@pytest.fixture
def verifier() -> FakeVerifier:
    return FakeVerifier()


@pytest.fixture
def chain_client() -> FakeChainClient:
    return FakeChainClient()


@pytest_asyncio.fixture
async def processor(store, verifier, chain_client):
    """Transfer processor; its worker is stopped after the test."""
    processor = TransferProcessor(store, verifier, chain_client, submission_timeout=5.0)
    yield processor
    await processor.stop()


@pytest.fixture
def service(store, processor, options) -> TransferService:
    return TransferService(store, processor, options)
