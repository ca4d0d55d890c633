"""Transfer records and the stores that keep them."""

from shadowbridge.ledger.models import (
    ProofBundle,
    TransferRecord,
    TransferSource,
    TransferStats,
    TransferStatus,
)
from shadowbridge.ledger.store import (
    InMemoryTransferStore,
    SqlTransferStore,
    TransferStore,
    create_store,
)

__all__ = [
    # Models
    "ProofBundle",
    "TransferRecord",
    "TransferStats",
    # Enums
    "TransferSource",
    "TransferStatus",
    # Stores
    "TransferStore",
    "InMemoryTransferStore",
    "SqlTransferStore",
    "create_store",
]
