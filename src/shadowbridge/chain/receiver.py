"""Destination-chain settlement logic (the BridgeReceiver contract).

Only the relayer may settle, and each message hash settles at most once.
The processed-hash set is the system's last line of defence against a
duplicated or replayed message, so a settlement either applies completely
(credit, hash, counters, event) or not at all.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Union

from shadowbridge.errors import (
    AlreadyProcessedError,
    AuthorizationError,
    InvalidAmountError,
    InvalidRecipientError,
)

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x" + "0" * 40


def normalize_identity(account: str) -> str:
    return (account or "").strip().lower()


def is_zero_identity(account: str) -> bool:
    """True for the empty identity and for any all-zero hex address."""
    value = normalize_identity(account)
    if value.startswith("0x"):
        value = value[2:]
    return value.strip("0") == ""


def normalize_message_hash(message_hash: Union[str, bytes]) -> str:
    if isinstance(message_hash, bytes):
        return "0x" + message_hash.hex()
    value = message_hash.lower()
    return value if value.startswith("0x") else f"0x{value}"


@dataclass(frozen=True)
class SettlementEvent:
    """Emitted once per successful settlement."""

    recipient: str
    amount: int
    message_hash: str
    block_number: int


class ReceiverLedger:
    """In-process model of the receiver contract.

    Calls are serialized by a lock, standing in for chain consensus which
    applies one transaction at a time against the contract state.
    """

    def __init__(self, relayer: str, owner: str = "", asset: str = "wUSDC"):
        """Initialize ledger.

        Args:
            relayer: The only identity allowed to call execute()
            owner: Identity allowed to rotate the relayer
            asset: Symbol of the settlement asset credited to recipients
        """
        self._relayer = normalize_identity(relayer)
        self._owner = normalize_identity(owner)
        self.asset = asset
        self._processed: set[str] = set()
        self._balances: dict[str, int] = {}
        self._events: list[SettlementEvent] = []
        self._total_transactions = 0
        self._total_volume = 0
        self._block_number = 0
        self._lock = threading.Lock()

    @property
    def relayer(self) -> str:
        return self._relayer

    @property
    def total_transactions(self) -> int:
        return self._total_transactions

    @property
    def total_volume(self) -> int:
        return self._total_volume

    @property
    def block_number(self) -> int:
        return self._block_number

    @property
    def events(self) -> list[SettlementEvent]:
        return list(self._events)

    def execute(
        self,
        caller: str,
        recipient: str,
        amount: int,
        message_hash: Union[str, bytes],
        proof: Union[str, bytes] = b"",
    ) -> SettlementEvent:
        """Settle one cross-chain message.

        Args:
            caller: Identity submitting the transaction
            recipient: Account credited with ``amount``
            amount: Base units of the settlement asset
            message_hash: 32-byte idempotency key of the message
            proof: Amount-range proof forwarded by the relayer (not verified here)

        Returns:
            The emitted SettlementEvent

        Raises:
            AuthorizationError: caller is not the relayer
            AlreadyProcessedError: message_hash was settled before
            InvalidAmountError: amount is not positive
            InvalidRecipientError: recipient is the zero identity
        """
        key = normalize_message_hash(message_hash)

        with self._lock:
            if normalize_identity(caller) != self._relayer:
                raise AuthorizationError("Not relayer")
            if key in self._processed:
                raise AlreadyProcessedError(key)
            if amount <= 0:
                raise InvalidAmountError("Invalid amount")
            if is_zero_identity(recipient):
                raise InvalidRecipientError("Invalid recipient")

            account = normalize_identity(recipient)
            self._block_number += 1
            event = SettlementEvent(
                recipient=account,
                amount=amount,
                message_hash=key,
                block_number=self._block_number,
            )

            # Commit: nothing above this line mutates state
            self._balances[account] = self._balances.get(account, 0) + amount
            self._processed.add(key)
            self._total_transactions += 1
            self._total_volume += amount
            self._events.append(event)

        logger.info(
            f"Settled {amount} {self.asset} base units to {account} "
            f"(message {key}, block {event.block_number})"
        )
        return event

    def is_processed(self, message_hash: Union[str, bytes]) -> bool:
        return normalize_message_hash(message_hash) in self._processed

    def get_stats(self) -> tuple[int, int]:
        """Return (total_transactions, total_volume)."""
        with self._lock:
            return self._total_transactions, self._total_volume

    def balance_of(self, account: str) -> int:
        return self._balances.get(normalize_identity(account), 0)

    def set_relayer(self, caller: str, new_relayer: str) -> None:
        """Rotate the relayer identity. Owner only."""
        if not self._owner or normalize_identity(caller) != self._owner:
            raise AuthorizationError("Not owner")
        if is_zero_identity(new_relayer):
            raise InvalidRecipientError("Invalid relayer")
        with self._lock:
            self._relayer = normalize_identity(new_relayer)
        logger.info(f"Relayer rotated to {self._relayer}")
