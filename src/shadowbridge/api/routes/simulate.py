"""Source chain event simulation (non-production only).

Queues a transfer exactly as the source chain listener would, without an
indexer.
"""

from fastapi import APIRouter, Depends, status

from shadowbridge.api.routes.deps import get_app_settings, get_services
from shadowbridge.api.routes.transfers import TransferAccepted, TransferRequest, queue_transfer
from shadowbridge.config import Settings
from shadowbridge.ledger.models import TransferSource
from shadowbridge.services import RelayServices

router = APIRouter()


@router.post("/source-event", status_code=status.HTTP_202_ACCEPTED, response_model=TransferAccepted)
async def simulate_source_event(
    payload: TransferRequest,
    services: RelayServices = Depends(get_services),
    settings: Settings = Depends(get_app_settings),
):
    """Queue a chain-event transfer."""
    return await queue_transfer(payload, services, settings, TransferSource.CHAIN_EVENT)
