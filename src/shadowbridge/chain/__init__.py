"""Destination chain: receiver settlement logic and the clients that submit to it."""

from shadowbridge.chain.base import ChainClient, SubmissionReceipt
from shadowbridge.chain.factory import get_chain_client
from shadowbridge.chain.receiver import ReceiverLedger, SettlementEvent

__all__ = [
    "ChainClient",
    "SubmissionReceipt",
    "ReceiverLedger",
    "SettlementEvent",
    "get_chain_client",
]
