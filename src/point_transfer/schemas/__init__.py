"""Pydantic API schemas."""

from point_transfer.schemas.transfer import (
    HealthResponse,
    InitiateTransferRequest,
    TransferResponse,
)

__all__ = [
    "HealthResponse",
    "InitiateTransferRequest",
    "TransferResponse",
]
