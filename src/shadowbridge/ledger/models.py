"""Transfer records and their SQLAlchemy mapping."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, localcontext
from enum import Enum
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, Index, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from shadowbridge.errors import InvalidTransitionError


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class TransferStatus(str, Enum):
    """Status of a cross-chain transfer."""

    QUEUED = "QUEUED"                    # Accepted, waiting for the worker
    PROOF_VERIFYING = "PROOF_VERIFYING"  # Proof bundle being checked
    PROOF_VERIFIED = "PROOF_VERIFIED"    # Proofs accepted
    SUBMITTING = "SUBMITTING"            # Sent to destination chain, awaiting receipt
    SETTLED = "SETTLED"                  # Confirmed on destination chain
    FAILED = "FAILED"                    # Failed at any stage

    @property
    def is_terminal(self) -> bool:
        return self in (TransferStatus.SETTLED, TransferStatus.FAILED)

    @property
    def is_in_flight(self) -> bool:
        return self in IN_FLIGHT_STATUSES


IN_FLIGHT_STATUSES = frozenset(
    {
        TransferStatus.PROOF_VERIFYING,
        TransferStatus.PROOF_VERIFIED,
        TransferStatus.SUBMITTING,
    }
)

_NEXT_STATUS = {
    TransferStatus.QUEUED: TransferStatus.PROOF_VERIFYING,
    TransferStatus.PROOF_VERIFYING: TransferStatus.PROOF_VERIFIED,
    TransferStatus.PROOF_VERIFIED: TransferStatus.SUBMITTING,
    TransferStatus.SUBMITTING: TransferStatus.SETTLED,
}


def check_transition(current: TransferStatus, new: TransferStatus) -> None:
    """Raise InvalidTransitionError unless ``current -> new`` moves forward one stage."""
    if current.is_terminal:
        raise InvalidTransitionError(f"Transfer is {current.value} and can no longer change")
    if new == TransferStatus.FAILED or _NEXT_STATUS.get(current) == new:
        return
    raise InvalidTransitionError(f"Cannot move transfer from {current.value} to {new.value}")


class TransferSource(str, Enum):
    """Where a transfer originated."""

    API = "api"
    CHAIN_EVENT = "chain-event"


@dataclass
class ProofBundle:
    """The three compliance attestations accompanying a transfer."""

    kyc_proof: Optional[str] = None
    amount_proof: Optional[str] = None
    sanctions_proof: Optional[str] = None

    # (attribute, wire name, prover circuit)
    FIELDS = (
        ("kyc_proof", "kycProof", "kyc"),
        ("amount_proof", "amountProof", "amount"),
        ("sanctions_proof", "sanctionsProof", "sanctions"),
    )

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "ProofBundle":
        """Build from a camelCase payload, tolerating a missing one."""
        data = data or {}
        return cls(**{attr: data.get(wire) for attr, wire, _ in cls.FIELDS})

    def to_dict(self) -> dict[str, Optional[str]]:
        return {wire: getattr(self, attr) for attr, wire, _ in self.FIELDS}


@dataclass
class TransferRecord:
    """A single relayed transfer and its progress through the pipeline."""

    id: str
    sender: str
    recipient: str
    destination_chain: str
    amount_usd: Decimal
    amount_base_units: int
    fee_usd: Decimal
    proofs: ProofBundle
    message_hash: str
    created_at: datetime
    updated_at: datetime
    status: TransferStatus = TransferStatus.QUEUED
    source: TransferSource = TransferSource.API
    source_tx_hash: Optional[str] = None
    settled_at: Optional[datetime] = None
    tx_hash: Optional[str] = None
    error: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the HTTP API.

        Amounts go out as decimal strings so base units above 2**53 survive
        JSON clients.
        """
        return {
            "id": self.id,
            "sender": self.sender,
            "recipient": self.recipient,
            "destinationChain": self.destination_chain,
            "amountUsd": str(self.amount_usd),
            "amountBaseUnits": str(self.amount_base_units),
            "feeUsd": str(self.fee_usd),
            "proofs": self.proofs.to_dict(),
            "sourceTxHash": self.source_tx_hash,
            "messageHash": self.message_hash,
            "status": self.status.value,
            "source": self.source.value,
            "txHash": self.tx_hash,
            "error": self.error,
            "metadata": self.metadata,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
            "settledAt": self.settled_at.isoformat() if self.settled_at else None,
        }


@dataclass
class TransferStats:
    """Aggregate counts over all transfers."""

    total_transfers: int = 0
    queued: int = 0
    in_flight: int = 0
    settled: int = 0
    failed: int = 0
    total_volume_usd: Decimal = Decimal("0")

    @classmethod
    def from_records(cls, records) -> "TransferStats":
        stats = cls()
        for record in records:
            stats.total_transfers += 1
            if record.status == TransferStatus.QUEUED:
                stats.queued += 1
            elif record.status == TransferStatus.FAILED:
                stats.failed += 1
            elif record.status == TransferStatus.SETTLED:
                stats.settled += 1
                # The ledger credited this message under an earlier record
                if not record.metadata.get("alreadyProcessed"):
                    stats.total_volume_usd += record.amount_usd
            elif record.status.is_in_flight:
                stats.in_flight += 1
        return stats

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalTransfers": self.total_transfers,
            "queued": self.queued,
            "inFlight": self.in_flight,
            "settled": self.settled,
            "failed": self.failed,
            "totalVolumeUsd": str(self.total_volume_usd),
        }


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def exact_context(value: Decimal, extra_digits: int = 0):
    """Decimal context wide enough that arithmetic on ``value`` never rounds."""
    _, digits, exponent = value.as_tuple()
    return localcontext(prec=len(digits) + max(exponent, 0) + extra_digits + 1)


def canonical_decimal(value) -> Decimal:
    """Strip trailing zeros without switching to exponent notation or rounding."""
    value = Decimal(value)
    with exact_context(value):
        normalized = value.normalize()
        if normalized == normalized.to_integral_value():
            return normalized.quantize(Decimal(1))
        return normalized


class TransferRow(Base):
    """Persistent form of a TransferRecord."""

    __tablename__ = "transfers"
    __table_args__ = (Index("ix_transfers_created", "created_at"),)

    seq: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(36), unique=True, nullable=False, index=True)
    sender: Mapped[str] = mapped_column(String(255), nullable=False)
    recipient: Mapped[str] = mapped_column(String(255), nullable=False)
    destination_chain: Mapped[str] = mapped_column(String(64), nullable=False)
    # Decimal amounts kept as text; SQLite has no exact decimal type and
    # base units exceed 64 bits at 18 decimals
    amount_usd: Mapped[str] = mapped_column(String(80), nullable=False)
    amount_base_units: Mapped[str] = mapped_column(String(80), nullable=False)
    fee_usd: Mapped[str] = mapped_column(String(80), nullable=False)
    kyc_proof: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    amount_proof: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sanctions_proof: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    message_hash: Mapped[str] = mapped_column(String(66), nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        String(20), default=TransferStatus.QUEUED.value, nullable=False
    )
    source: Mapped[str] = mapped_column(String(20), default=TransferSource.API.value)
    source_tx_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    tx_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # "metadata" is reserved on declarative classes
    extra: Mapped[dict] = mapped_column("metadata", JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    settled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    @classmethod
    def from_record(cls, record: TransferRecord) -> "TransferRow":
        row = cls(id=record.id)
        row.apply(record)
        return row

    def apply(self, record: TransferRecord) -> None:
        """Copy every mutable field of ``record`` onto this row."""
        self.sender = record.sender
        self.recipient = record.recipient
        self.destination_chain = record.destination_chain
        self.amount_usd = str(record.amount_usd)
        self.amount_base_units = str(record.amount_base_units)
        self.fee_usd = str(record.fee_usd)
        self.kyc_proof = record.proofs.kyc_proof
        self.amount_proof = record.proofs.amount_proof
        self.sanctions_proof = record.proofs.sanctions_proof
        self.message_hash = record.message_hash
        self.status = record.status.value
        self.source = record.source.value
        self.source_tx_hash = record.source_tx_hash
        self.tx_hash = record.tx_hash
        self.error = record.error
        self.extra = dict(record.metadata)
        self.created_at = record.created_at
        self.updated_at = record.updated_at
        self.settled_at = record.settled_at

    def to_record(self) -> TransferRecord:
        return TransferRecord(
            id=self.id,
            sender=self.sender,
            recipient=self.recipient,
            destination_chain=self.destination_chain,
            amount_usd=canonical_decimal(self.amount_usd),
            amount_base_units=int(self.amount_base_units),
            fee_usd=canonical_decimal(self.fee_usd),
            proofs=ProofBundle(
                kyc_proof=self.kyc_proof,
                amount_proof=self.amount_proof,
                sanctions_proof=self.sanctions_proof,
            ),
            message_hash=self.message_hash,
            status=TransferStatus(self.status),
            source=TransferSource(self.source),
            source_tx_hash=self.source_tx_hash,
            tx_hash=self.tx_hash,
            error=self.error,
            metadata=dict(self.extra or {}),
            created_at=_as_utc(self.created_at),
            updated_at=_as_utc(self.updated_at),
            settled_at=_as_utc(self.settled_at) if self.settled_at else None,
        )


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
