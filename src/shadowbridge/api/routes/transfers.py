"""Transfer intake and lookup endpoints."""

from typing import Any, Optional

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from shadowbridge.api.routes.deps import get_app_settings, get_services
from shadowbridge.config import Settings
from shadowbridge.ledger.models import ProofBundle, TransferSource
from shadowbridge.services import CreateTransferInput, RelayServices

router = APIRouter()


class ProofsPayload(BaseModel):
    """The three compliance proofs, hex encoded."""

    model_config = ConfigDict(populate_by_name=True)

    kyc_proof: Optional[str] = Field(None, alias="kycProof")
    amount_proof: Optional[str] = Field(None, alias="amountProof")
    sanctions_proof: Optional[str] = Field(None, alias="sanctionsProof")


class TransferRequest(BaseModel):
    """Body of POST /transfers.

    Fields are loosely typed here; intake applies the ordered validation
    rules and reports the first failure.
    """

    model_config = ConfigDict(populate_by_name=True)

    sender: Optional[str] = None
    recipient: Optional[str] = None
    destination_chain: Optional[str] = Field(None, alias="destinationChain")
    amount_usd: Any = Field(None, alias="amountUsd")
    proofs: Optional[ProofsPayload] = None
    source_tx_hash: Optional[str] = Field(None, alias="sourceTxHash")
    metadata: Optional[dict[str, Any]] = None

    def to_input(self, settings: Settings, source: TransferSource) -> CreateTransferInput:
        proofs = self.proofs or ProofsPayload()
        return CreateTransferInput(
            sender=self.sender,
            recipient=self.recipient,
            destination_chain=self.destination_chain or settings.default_destination_chain,
            amount_usd=self.amount_usd,
            proofs=ProofBundle(
                kyc_proof=proofs.kyc_proof,
                amount_proof=proofs.amount_proof,
                sanctions_proof=proofs.sanctions_proof,
            ),
            source_tx_hash=self.source_tx_hash,
            metadata=self.metadata or {},
            source=source,
        )


class TransferAccepted(BaseModel):
    """Response for a queued transfer."""

    transferId: str
    status: str
    messageHash: str


async def queue_transfer(
    payload: TransferRequest,
    services: RelayServices,
    settings: Settings,
    source: TransferSource,
) -> TransferAccepted:
    transfer = await services.transfer_service.create_transfer(
        payload.to_input(settings, source)
    )
    return TransferAccepted(
        transferId=transfer.id,
        status=transfer.status.value,
        messageHash=transfer.message_hash,
    )


@router.post("", status_code=status.HTTP_202_ACCEPTED, response_model=TransferAccepted)
async def create_transfer(
    payload: TransferRequest,
    services: RelayServices = Depends(get_services),
    settings: Settings = Depends(get_app_settings),
):
    """Validate and queue a transfer. Validation failures return 400."""
    return await queue_transfer(payload, services, settings, TransferSource.API)


@router.get("")
async def list_transfers(services: RelayServices = Depends(get_services)):
    """All transfers, newest first."""
    transfers = await services.transfer_service.list_transfers()
    return {"transfers": [t.to_dict() for t in transfers]}


@router.get("/{transfer_id}")
async def get_transfer(transfer_id: str, services: RelayServices = Depends(get_services)):
    """Get one transfer by id."""
    transfer = await services.transfer_service.get_transfer(transfer_id)
    if transfer is None:
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"error": "Not found"})
    return {"transfer": transfer.to_dict()}
