"""Factory for the destination chain client.

In DRY_RUN mode transfers settle against an in-process ReceiverLedger and
no transaction ever leaves the process.
"""

import logging

from shadowbridge.chain.base import ChainClient
from shadowbridge.chain.evm import Web3ChainClient
from shadowbridge.chain.receiver import ReceiverLedger
from shadowbridge.chain.simulated import LedgerChainClient
from shadowbridge.config import Settings

logger = logging.getLogger(__name__)


def get_chain_client(settings: Settings) -> ChainClient:
    """Build the chain client for the current settings."""
    if settings.dry_run:
        logger.warning("DRY_RUN enabled - settling against an in-process ledger")
        ledger = ReceiverLedger(relayer=settings.dry_run_relayer)
        return LedgerChainClient(ledger)

    return Web3ChainClient(
        rpc_url=settings.ethereum_rpc_url,
        bridge_address=settings.ethereum_bridge_address,
        private_key=settings.ethereum_private_key,
        confirmation_timeout=settings.confirmation_timeout_seconds,
    )
