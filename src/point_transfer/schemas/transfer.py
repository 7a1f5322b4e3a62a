"""Pydantic schemas for the transfer API.

Request/response shapes are kept apart from the ORM model. None of the
response schemas has a token field: the claim token is a bearer credential
and only ever leaves the service inside the receiver's email.
"""

from __future__ import annotations

from datetime import datetime

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator

# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------


class InitiateTransferRequest(BaseModel):
    """Request body for offering points to a receiver."""

    receiver_email: str = Field(
        ...,
        min_length=3,
        max_length=320,
        description="Email address of the receiver",
        examples=["friend@example.com"],
    )
    receiver_name: str = Field(
        ...,
        min_length=2,
        max_length=100,
        description="Display name used in the claim email",
        examples=["Alex"],
    )
    points: StrictInt = Field(
        ...,
        description="Points to transfer; must be a positive integer",
        examples=[50],
    )

    @field_validator("receiver_email")
    @classmethod
    def _check_email_syntax(cls, v: str) -> str:
        """Reject malformed addresses but keep the caller's spelling, case included."""
        try:
            validate_email(v, check_deliverability=False)
        except EmailNotValidError as exc:
            raise ValueError(str(exc)) from exc
        return v


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------


class TransferResponse(BaseModel):
    """A transfer as returned to its sender; used for history rows too."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    sender_id: str
    sender_email: str
    receiver_email: str
    receiver_name: str
    points: int
    status: str
    expires_at: datetime
    created_at: datetime
    updated_at: datetime


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str = "0.1.0"
    database: str = "unknown"
    redis: str = "unknown"
