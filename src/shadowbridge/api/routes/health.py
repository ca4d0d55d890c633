"""Health check endpoints."""

import time

from fastapi import APIRouter, Depends, Request

from shadowbridge import __version__
from shadowbridge.api.routes.deps import get_services
from shadowbridge.ledger.models import utcnow
from shadowbridge.services import RelayServices

router = APIRouter()


async def _health(request: Request, services: RelayServices) -> dict:
    stats = await services.transfer_service.stats()
    return {
        "status": "healthy",
        "timestamp": utcnow().isoformat(),
        "uptimeSeconds": round(time.monotonic() - request.app.state.started_at),
        "totalTransfers": stats.total_transfers,
        "pendingJobs": services.processor.pending_jobs(),
    }


@router.get("/health")
async def health_check(request: Request, services: RelayServices = Depends(get_services)):
    """Basic health check endpoint."""
    return await _health(request, services)


@router.get("/health/detailed")
async def detailed_health(request: Request, services: RelayServices = Depends(get_services)):
    """Health plus component readiness and redacted configuration."""
    return {
        **await _health(request, services),
        "service": "shadowbridge-relayer",
        "version": __version__,
        "chainClient": {
            "name": services.chain_client.name,
            "ready": services.chain_client.is_ready(),
        },
        "verifier": services.verifier.kind,
        "processorRunning": services.processor.is_running,
        "sourceListener": services.listener is not None and services.listener.is_running,
        "config": services.settings.get_safe_dict(),
    }
