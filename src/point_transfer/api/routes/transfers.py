"""Transfer REST API routes.

Routes:
    POST   /transfer                 — Offer points to a receiver (pending)
    POST   /transfer/{id}/complete   — Settle a pending transfer
    GET    /transfers/{user_id}      — A sender's transfer history

Caller identity arrives in the X-User-ID header from the upstream gateway.
No response carries the claim token.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Header

from point_transfer.api.deps import get_caller_id, get_transfer_service
from point_transfer.logging_config import get_logger
from point_transfer.schemas.transfer import InitiateTransferRequest, TransferResponse
from point_transfer.services.transfer_service import TransferService

router = APIRouter(tags=["Transfers"])
logger = get_logger(__name__)


@router.post(
    "/transfer",
    response_model=TransferResponse,
    status_code=201,
    summary="Initiate a points transfer",
)
async def initiate_transfer(
    request: InitiateTransferRequest,
    sender_id: str = Depends(get_caller_id),
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key"),
    service: TransferService = Depends(get_transfer_service),
) -> TransferResponse:
    """Create a pending transfer and email the receiver a claim link.

    The sender's points are not deducted until the transfer is completed.
    """
    transfer = await service.initiate_transfer(
        sender_id=sender_id,
        receiver_email=str(request.receiver_email),
        receiver_name=request.receiver_name,
        points=request.points,
        idempotency_key=idempotency_key,
    )
    return TransferResponse.model_validate(transfer)


@router.post(
    "/transfer/{transfer_id}/complete",
    response_model=TransferResponse,
    summary="Complete a pending transfer",
)
async def complete_transfer(
    transfer_id: str,
    service: TransferService = Depends(get_transfer_service),
) -> TransferResponse:
    """Re-check the sender's balance, debit it, and mark the transfer completed."""
    transfer = await service.complete_transfer(transfer_id)
    return TransferResponse.model_validate(transfer)


@router.get(
    "/transfers/{user_id}",
    response_model=list[TransferResponse],
    summary="List a sender's transfers",
)
async def list_transfers(
    user_id: str,
    service: TransferService = Depends(get_transfer_service),
) -> list[TransferResponse]:
    """Return the sender's transfers, newest first."""
    return await service.list_for_sender(user_id)
