"""Transfer store: the durable keyed record of every transfer.

Callers depend only on ``TransferStore``; the in-memory and SQL backends
are interchangeable.
"""

import asyncio
import dataclasses
import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shadowbridge.config import Settings, StoreBackend
from shadowbridge.errors import InvalidTransitionError
from shadowbridge.ledger.database import create_engine, create_session_factory, init_db
from shadowbridge.ledger.models import (
    TransferRecord,
    TransferRow,
    TransferStats,
    check_transition,
    utcnow,
)

logger = logging.getLogger(__name__)

# Fields fixed at creation
_IMMUTABLE_FIELDS = frozenset({"id", "created_at"})


def apply_changes(record: TransferRecord, changes: dict) -> TransferRecord:
    """Return a copy of ``record`` with ``changes`` applied and updated_at refreshed.

    Raises:
        InvalidTransitionError: record is terminal or the status would not move forward
        ValueError: unknown or immutable field
    """
    bad = set(changes) & _IMMUTABLE_FIELDS
    if bad:
        raise ValueError(f"Cannot change {', '.join(sorted(bad))}")
    unknown = set(changes) - {f.name for f in dataclasses.fields(TransferRecord)}
    if unknown:
        raise ValueError(f"Unknown transfer fields: {', '.join(sorted(unknown))}")

    if record.status.is_terminal:
        raise InvalidTransitionError(
            f"Transfer {record.id} is {record.status.value} and can no longer change"
        )
    new_status = changes.get("status")
    if new_status is not None and new_status != record.status:
        check_transition(record.status, new_status)

    return dataclasses.replace(record, **{**changes, "updated_at": utcnow()})


class TransferStore(ABC):
    """Keyed record of transfers plus derived aggregate stats."""

    async def initialize(self) -> None:
        """Prepare backing storage."""

    async def close(self) -> None:
        """Release backing storage."""

    @abstractmethod
    async def create(self, record: TransferRecord) -> TransferRecord:
        """Persist a new record."""

    @abstractmethod
    async def update(self, transfer_id: str, **changes) -> Optional[TransferRecord]:
        """Apply changes to a record.

        Returns:
            The updated record, or None if no record has that id
        """

    @abstractmethod
    async def get(self, transfer_id: str) -> Optional[TransferRecord]:
        """Get a record by id."""

    @abstractmethod
    async def list(self) -> list[TransferRecord]:
        """All records, newest first."""

    async def stats(self) -> TransferStats:
        """Recompute aggregate counts by scanning every record."""
        return TransferStats.from_records(await self.list())


class InMemoryTransferStore(TransferStore):
    """Dict-backed store for development and tests."""

    def __init__(self):
        self._transfers: dict[str, TransferRecord] = {}
        self._lock = asyncio.Lock()

    async def create(self, record: TransferRecord) -> TransferRecord:
        async with self._lock:
            if record.id in self._transfers:
                raise ValueError(f"Transfer {record.id} already exists")
            self._transfers[record.id] = record
        return record

    async def update(self, transfer_id: str, **changes) -> Optional[TransferRecord]:
        async with self._lock:
            existing = self._transfers.get(transfer_id)
            if existing is None:
                return None
            updated = apply_changes(existing, changes)
            self._transfers[transfer_id] = updated
            return updated

    async def get(self, transfer_id: str) -> Optional[TransferRecord]:
        return self._transfers.get(transfer_id)

    async def list(self) -> list[TransferRecord]:
        # Reverse insertion order first so same-timestamp records stay newest-first
        return sorted(
            reversed(list(self._transfers.values())),
            key=lambda r: r.created_at,
            reverse=True,
        )


class SqlTransferStore(TransferStore):
    """SQLAlchemy-backed store."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory
        self.engine = session_factory.kw["bind"]

    @asynccontextmanager
    async def _session(self) -> AsyncGenerator[AsyncSession, None]:
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def _get_row(self, session: AsyncSession, transfer_id: str) -> Optional[TransferRow]:
        stmt = select(TransferRow).where(TransferRow.id == transfer_id).with_for_update()
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def initialize(self) -> None:
        await init_db(self.engine)

    async def close(self) -> None:
        await self.engine.dispose()

    async def create(self, record: TransferRecord) -> TransferRecord:
        async with self._session() as session:
            session.add(TransferRow.from_record(record))
        return record

    async def update(self, transfer_id: str, **changes) -> Optional[TransferRecord]:
        async with self._session() as session:
            row = await self._get_row(session, transfer_id)
            if row is None:
                return None
            updated = apply_changes(row.to_record(), changes)
            row.apply(updated)
        return updated

    async def get(self, transfer_id: str) -> Optional[TransferRecord]:
        async with self._session() as session:
            stmt = select(TransferRow).where(TransferRow.id == transfer_id)
            result = await session.execute(stmt)
            row = result.scalar_one_or_none()
            return row.to_record() if row else None

    async def list(self) -> list[TransferRecord]:
        async with self._session() as session:
            stmt = select(TransferRow).order_by(
                TransferRow.created_at.desc(), TransferRow.seq.desc()
            )
            result = await session.execute(stmt)
            return [row.to_record() for row in result.scalars().all()]


def create_store(settings: Settings) -> TransferStore:
    """Build the store selected by ``STORE_BACKEND``."""
    if settings.store_backend == StoreBackend.SQL:
        logger.info("Using SQL transfer store")
        engine = create_engine(
            settings.database_url, echo=settings.debug and not settings.is_production
        )
        return SqlTransferStore(create_session_factory(engine))

    logger.info("Using in-memory transfer store")
    return InMemoryTransferStore()
