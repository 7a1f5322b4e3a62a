"""Database infrastructure — engine, ORM models, and the transfer repository."""

from point_transfer.infrastructure.database.engine import (
    close_db,
    create_engine_from_settings,
    create_session_factory,
    init_db,
    ping_db,
)
from point_transfer.infrastructure.database.orm_models import Base, Transfer
from point_transfer.infrastructure.database.repositories import TransferRepository

__all__ = [
    "Base",
    "Transfer",
    "TransferRepository",
    "close_db",
    "create_engine_from_settings",
    "create_session_factory",
    "init_db",
    "ping_db",
]
