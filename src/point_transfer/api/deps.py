"""FastAPI dependency providers.

Used with Depends() in route handlers. Everything comes from the
AppContainer stored on app.state by the lifespan.
"""

from __future__ import annotations

from fastapi import Header, HTTPException, Request

from point_transfer.container import AppContainer
from point_transfer.services.transfer_service import TransferService


def get_container(request: Request) -> AppContainer:
    """Provide the application container."""
    return request.app.state.container


def get_transfer_service(request: Request) -> TransferService:
    """Provide the transfer service."""
    return get_container(request).transfer_service


def get_caller_id(x_user_id: str | None = Header(default=None)) -> str:
    """Provide the authenticated caller ID set by the upstream gateway."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="User authentication required")
    return x_user_id
