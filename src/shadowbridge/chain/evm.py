"""EVM chain client for the BridgeReceiver contract.

Uses web3.py for contract encoding, nonce and receipt handling, and
eth-account for signing with the relayer key.
"""

import asyncio
import logging
from typing import Optional

from eth_account import Account
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception

from shadowbridge.chain.base import ChainClient, SubmissionReceipt
from shadowbridge.errors import (
    AlreadyProcessedError,
    AuthorizationError,
    InvalidAmountError,
    InvalidRecipientError,
    NotConfiguredError,
    SettlementError,
    TransientChainError,
)
from shadowbridge.ledger.models import TransferRecord

logger = logging.getLogger(__name__)

BRIDGE_RECEIVER_ABI = [
    {
        "name": "processCrossChainTransfer",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "recipient", "type": "address"},
            {"name": "amount", "type": "uint256"},
            {"name": "messageHash", "type": "bytes32"},
            {"name": "proof", "type": "bytes"},
        ],
        "outputs": [],
    },
    {
        "name": "getStats",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [
            {"name": "totalTransactions", "type": "uint256"},
            {"name": "totalVolume", "type": "uint256"},
        ],
    },
    {
        "name": "processedMessages",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "", "type": "bytes32"}],
        "outputs": [{"name": "", "type": "bool"}],
    },
]


def hex_to_bytes(value: str) -> bytes:
    return bytes.fromhex(value[2:] if value.startswith("0x") else value)


def map_revert(reason: str, message_hash: str) -> SettlementError:
    """Translate a BridgeReceiver revert reason into the ledger error taxonomy."""
    lowered = reason.lower()
    if "already processed" in lowered:
        return AlreadyProcessedError(message_hash)
    if "not relayer" in lowered:
        return AuthorizationError(reason)
    if "amount" in lowered:
        return InvalidAmountError(reason)
    if "recipient" in lowered:
        return InvalidRecipientError(reason)
    return SettlementError(reason)


class Web3ChainClient(ChainClient):
    """Submits settlements to an EVM BridgeReceiver with the relayer key."""

    name = "evm"

    def __init__(
        self,
        rpc_url: str,
        bridge_address: str,
        private_key: str,
        confirmation_timeout: float = 120.0,
        poll_latency: float = 2.0,
    ):
        """Initialize client.

        Args:
            rpc_url: Destination chain JSON-RPC endpoint
            bridge_address: BridgeReceiver contract address
            private_key: Relayer signing key
            confirmation_timeout: Seconds to wait for a receipt
            poll_latency: Seconds between receipt polls
        """
        self.rpc_url = rpc_url
        self.bridge_address = bridge_address
        self.confirmation_timeout = confirmation_timeout
        self.poll_latency = poll_latency

        self._w3: Optional[AsyncWeb3] = None
        self._account = None
        self._contract = None

        if rpc_url and bridge_address and private_key:
            self._w3 = AsyncWeb3(AsyncHTTPProvider(rpc_url))
            self._account = Account.from_key(private_key)
            self._contract = self._w3.eth.contract(
                address=AsyncWeb3.to_checksum_address(bridge_address),
                abi=BRIDGE_RECEIVER_ABI,
            )
            logger.info(
                f"Bridge client ready: receiver {bridge_address} on {rpc_url} "
                f"as relayer {self._account.address}"
            )
        else:
            logger.warning(
                "Bridge client not fully configured. Set ETHEREUM_RPC_URL, "
                "ETHEREUM_BRIDGE_ADDRESS, and ETHEREUM_PRIVATE_KEY to enable submissions."
            )

    def is_ready(self) -> bool:
        return self._contract is not None

    @property
    def relayer_address(self) -> Optional[str]:
        return self._account.address if self._account else None

    def _require_ready(self) -> None:
        if not self.is_ready():
            raise NotConfiguredError("Bridge client not configured")

    async def submit_transfer(self, transfer: TransferRecord) -> SubmissionReceipt:
        self._require_ready()

        # Only the amount-range proof goes on-chain; KYC and sanctions are checked off-chain
        proof_bytes = hex_to_bytes(transfer.proofs.amount_proof or "0x")
        message_hash = hex_to_bytes(transfer.message_hash)

        logger.info(
            f"Submitting transfer {transfer.id} to BridgeReceiver: "
            f"{transfer.amount_usd} USD to {transfer.recipient} (message {transfer.message_hash})"
        )

        try:
            if await self._contract.functions.processedMessages(message_hash).call():
                raise AlreadyProcessedError(transfer.message_hash)

            address = self._account.address
            tx = await self._contract.functions.processCrossChainTransfer(
                AsyncWeb3.to_checksum_address(transfer.recipient),
                transfer.amount_base_units,
                message_hash,
                proof_bytes,
            ).build_transaction(
                {
                    "from": address,
                    "nonce": await self._w3.eth.get_transaction_count(address, "pending"),
                    "chainId": await self._w3.eth.chain_id,
                }
            )

            signed = self._account.sign_transaction(tx)
            tx_hash = await self._w3.eth.send_raw_transaction(signed.raw_transaction)
            tx_hash_hex = "0x" + bytes(tx_hash).hex()
            logger.info(f"BridgeReceiver submission broadcast: {tx_hash_hex}")

            receipt = await self._w3.eth.wait_for_transaction_receipt(
                tx_hash,
                timeout=self.confirmation_timeout,
                poll_latency=self.poll_latency,
            )

        except ContractLogicError as e:
            reason = getattr(e, "message", None) or str(e)
            logger.error(f"BridgeReceiver rejected transfer {transfer.id}: {reason}")
            raise map_revert(reason, transfer.message_hash) from e
        except TimeExhausted as e:
            raise TransientChainError(
                f"No receipt within {self.confirmation_timeout}s for transfer {transfer.id}"
            ) from e
        except (Web3Exception, OSError, asyncio.TimeoutError) as e:
            logger.error(f"RPC failure submitting transfer {transfer.id}: {e}")
            raise TransientChainError(f"RPC failure: {e}") from e

        if receipt["status"] != 1:
            raise SettlementError(f"Transaction {tx_hash_hex} reverted")

        logger.info(
            f"BridgeReceiver submission confirmed: {tx_hash_hex} "
            f"(block {receipt['blockNumber']})"
        )
        return SubmissionReceipt(tx_hash=tx_hash_hex, block_number=receipt["blockNumber"])

    async def get_stats(self) -> tuple[int, int]:
        """Return (totalTransactions, totalVolume) from the receiver contract."""
        self._require_ready()
        total_transactions, total_volume = await self._contract.functions.getStats().call()
        return total_transactions, total_volume

    async def is_processed(self, message_hash: str) -> bool:
        self._require_ready()
        return await self._contract.functions.processedMessages(
            hex_to_bytes(message_hash)
        ).call()

    async def close(self) -> None:
        if self._w3 is not None:
            await self._w3.provider.disconnect()
