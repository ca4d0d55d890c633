"""Aggregate statistics endpoints."""

from fastapi import APIRouter, Depends

from shadowbridge.api.routes.deps import get_app_settings, get_services
from shadowbridge.config import Settings
from shadowbridge.services import RelayServices

router = APIRouter()


@router.get("/stats")
async def transfer_stats(
    services: RelayServices = Depends(get_services),
    settings: Settings = Depends(get_app_settings),
):
    """Transfer counts by status, settled volume and the fee rate."""
    stats = await services.transfer_service.stats()
    return {**stats.to_dict(), "feeBps": settings.fee_bps}


@router.get("/ledger/stats")
async def ledger_stats(services: RelayServices = Depends(get_services)):
    """Settlement counters reported by the destination ledger."""
    total_transactions, total_volume = await services.chain_client.get_stats()
    return {"totalTransactions": total_transactions, "totalVolume": str(total_volume)}


@router.get("/ledger/messages/{message_hash}")
async def ledger_message(message_hash: str, services: RelayServices = Depends(get_services)):
    """Whether the destination ledger already consumed a message hash."""
    processed = await services.chain_client.is_processed(message_hash)
    return {"messageHash": message_hash, "processed": processed}
