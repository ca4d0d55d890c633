"""Transfer intake: validates requests, builds records and hands them to the processor."""

import hashlib
import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from shadowbridge.errors import MissingProofError, ValidationError
from shadowbridge.ledger.models import (
    ProofBundle,
    TransferRecord,
    TransferSource,
    TransferStats,
    TransferStatus,
    canonical_decimal,
    exact_context,
    utcnow,
)
from shadowbridge.ledger.store import TransferStore
from shadowbridge.services.transfer_processor import TransferProcessor

logger = logging.getLogger(__name__)

BPS_DIVISOR = 10_000


@dataclass
class CreateTransferInput:
    """A transfer request as received from the API or the source chain."""

    sender: Optional[str]
    recipient: Optional[str]
    destination_chain: str
    amount_usd: Any
    proofs: ProofBundle
    source_tx_hash: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)
    source: TransferSource = TransferSource.API


@dataclass
class TransferServiceOptions:
    min_amount: Decimal
    max_amount: Decimal
    fee_bps: int
    decimals: int


def parse_amount(value: Any) -> Decimal:
    """Parse a USD amount, rejecting anything that is not a finite number."""
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal, str)):
        raise ValidationError("Amount must be a valid number")
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError("Amount must be a valid number")
    if not amount.is_finite():
        raise ValidationError("Amount must be a valid number")
    return amount


def calculate_fee(amount_usd: Decimal, fee_bps: int) -> Decimal:
    """Relay fee in USD; exact, since the divisor is a power of ten."""
    with exact_context(amount_usd, extra_digits=len(str(fee_bps))):
        return canonical_decimal(amount_usd * fee_bps / BPS_DIVISOR)


def to_base_units(amount_usd: Decimal, decimals: int) -> int:
    """Scale a USD amount to the settlement token's smallest unit."""
    amount_usd = canonical_decimal(amount_usd)
    if amount_usd.as_tuple().exponent < -decimals:
        raise ValidationError(f"Amount has more than {decimals} decimal places")
    with exact_context(amount_usd, extra_digits=decimals):
        return int(amount_usd.scaleb(decimals))


def compute_message_hash(
    sender: str,
    recipient: str,
    amount_usd: Decimal,
    destination_chain: str,
    source_tx_hash: Optional[str] = None,
) -> str:
    """Content hash binding one logical transfer; the replay-protection key.

    Without a stable source reference a random nonce is used, so retried
    API calls are not deduplicated.
    """
    nonce = source_tx_hash if source_tx_hash else str(uuid.uuid4())
    payload = ":".join(
        [
            sender.lower(),
            recipient.lower(),
            format(amount_usd, "f"),
            destination_chain,
            nonce,
        ]
    )
    return "0x" + hashlib.sha256(payload.encode("utf-8")).hexdigest()


class TransferService:
    """Validates and records transfer requests."""

    def __init__(
        self,
        store: TransferStore,
        processor: TransferProcessor,
        options: TransferServiceOptions,
    ):
        self.store = store
        self.processor = processor
        self.options = options

    async def create_transfer(self, request: CreateTransferInput) -> TransferRecord:
        """Validate, persist as QUEUED and enqueue for processing.

        Raises:
            ValidationError: bad sender/recipient or amount
            MissingProofError: one of the three proofs is absent
        """
        amount_usd = self.validate(request)
        record = self.build_record(request, amount_usd)
        await self.store.create(record)
        self.processor.enqueue(record.id)
        logger.info(f"Transfer queued: {record.id} ({record.source.value}, {amount_usd} USD)")
        return record

    async def list_transfers(self) -> list[TransferRecord]:
        return await self.store.list()

    async def get_transfer(self, transfer_id: str) -> Optional[TransferRecord]:
        return await self.store.get(transfer_id)

    async def stats(self) -> TransferStats:
        return await self.store.stats()

    def validate(self, request: CreateTransferInput) -> Decimal:
        """Check a request in order and return its parsed amount."""
        if not request.sender or not request.recipient:
            raise ValidationError("Sender and recipient are required")

        # Range is checked on the raw value so huge inputs are never expanded
        amount_usd = parse_amount(request.amount_usd)
        if amount_usd < self.options.min_amount or amount_usd > self.options.max_amount:
            raise ValidationError(
                f"Amount must be between {self.options.min_amount} and {self.options.max_amount}"
            )
        amount_usd = canonical_decimal(amount_usd)

        for attr, wire, _ in ProofBundle.FIELDS:
            if not getattr(request.proofs, attr):
                raise MissingProofError(wire)

        return amount_usd

    def build_record(self, request: CreateTransferInput, amount_usd: Decimal) -> TransferRecord:
        amount_base_units = to_base_units(amount_usd, self.options.decimals)
        now = utcnow()
        return TransferRecord(
            id=str(uuid.uuid4()),
            sender=request.sender,
            recipient=request.recipient,
            destination_chain=request.destination_chain,
            amount_usd=amount_usd,
            amount_base_units=amount_base_units,
            fee_usd=calculate_fee(amount_usd, self.options.fee_bps),
            proofs=request.proofs,
            message_hash=compute_message_hash(
                request.sender,
                request.recipient,
                amount_usd,
                request.destination_chain,
                request.source_tx_hash,
            ),
            created_at=now,
            updated_at=now,
            status=TransferStatus.QUEUED,
            source=request.source,
            source_tx_hash=request.source_tx_hash,
            metadata=dict(request.metadata or {}),
        )
