"""Base interfaces for destination chain submission.

Submission flow:
1. Check the client holds an endpoint, a receiver contract and a signing key
2. Call the receiver's settlement entry point with
   (recipient, amount in base units, message hash, amount-range proof)
3. Wait for on-chain confirmation
4. Return a receipt carrying the destination transaction hash
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from shadowbridge.ledger.models import TransferRecord


@dataclass
class SubmissionReceipt:
    """Confirmed settlement on the destination chain."""

    tx_hash: str
    block_number: Optional[int] = None


class ChainClient(ABC):
    """Abstract base class for destination chain clients."""

    name = "abstract"

    @abstractmethod
    def is_ready(self) -> bool:
        """Whether submissions can be made (for health checks)."""
        pass

    @abstractmethod
    async def submit_transfer(self, transfer: TransferRecord) -> SubmissionReceipt:
        """Settle a verified transfer and wait for confirmation.

        Args:
            transfer: A record whose proofs already passed verification

        Returns:
            Receipt of the confirmed settlement

        Raises:
            NotConfiguredError: client lacks endpoint, contract or key
            AlreadyProcessedError: message hash already settled
            SettlementError: settlement rejected by the receiver
            TransientChainError: network or RPC failure
        """
        pass

    @abstractmethod
    async def get_stats(self) -> tuple[int, int]:
        """Return the receiver's (total_transactions, total_volume)."""
        pass

    @abstractmethod
    async def is_processed(self, message_hash: str) -> bool:
        """Whether the receiver already consumed ``message_hash``."""
        pass

    async def close(self) -> None:
        """Release network resources."""
