"""Transfer store backed by SQLAlchemy.

The repository receives a session factory and runs every operation in its
own transaction, so each protocol step is durable when the call returns.
Database failures surface as TransferStoreError; "nothing matched" is a
normal return value (None / False), never an exception.

Status changes go through compare-and-swap UPDATEs guarded by the current
status and the completion lease, which is what keeps concurrent completions
of one transfer mutually exclusive across service instances.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import SQLAlchemyError

from point_transfer.domain.enums import TransferStatus
from point_transfer.domain.exceptions import TransferStoreError
from point_transfer.infrastructure.database.orm_models import Transfer
from point_transfer.logging_config import get_logger

if TYPE_CHECKING:
    from datetime import datetime, timedelta

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = get_logger(__name__)


class TransferRepository:
    """Data access for transfer records."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create(self, transfer: Transfer) -> Transfer:
        """Insert a new transfer and commit."""
        try:
            async with self._session_factory() as session, session.begin():
                session.add(transfer)
        except SQLAlchemyError as exc:
            raise TransferStoreError("create", str(exc)) from exc
        return transfer

    async def save(self, transfer: Transfer) -> Transfer:
        """Write every column of an existing transfer (full-record update)."""
        try:
            async with self._session_factory() as session, session.begin():
                merged = await session.merge(transfer)
        except SQLAlchemyError as exc:
            raise TransferStoreError("save", str(exc)) from exc
        return merged

    async def delete(self, transfer_id: str) -> bool:
        """Remove a transfer. Administrative rollback only, not part of the protocol."""
        try:
            async with self._session_factory() as session, session.begin():
                result = await session.execute(
                    delete(Transfer).where(Transfer.id == transfer_id)
                )
        except SQLAlchemyError as exc:
            raise TransferStoreError("delete", str(exc)) from exc
        deleted = result.rowcount == 1
        if deleted:
            logger.warning("transfer.deleted", transfer_id=transfer_id)
        return deleted

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_by_id(self, transfer_id: str) -> Transfer | None:
        """Fetch a transfer by its ID."""
        return await self._fetch_one("get_by_id", Transfer.id == transfer_id)

    async def get_by_token(self, token: str) -> Transfer | None:
        """Fetch a transfer by its claim token."""
        return await self._fetch_one("get_by_token", Transfer.token == token)

    async def list_by_sender(self, sender_id: str) -> list[Transfer]:
        """Fetch all transfers of a sender, newest first."""
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Transfer)
                    .where(Transfer.sender_id == sender_id)
                    .order_by(Transfer.created_at.desc(), Transfer.id.desc())
                )
                return list(result.scalars().all())
        except SQLAlchemyError as exc:
            raise TransferStoreError("list_by_sender", str(exc)) from exc

    # ------------------------------------------------------------------
    # Compare-and-swap
    # ------------------------------------------------------------------

    async def acquire_completion_lock(
        self,
        transfer_id: str,
        lock_id: str,
        now: datetime,
        lease: timedelta,
    ) -> bool:
        """Take the completion lease on a pending transfer.

        Succeeds only if the transfer is pending and no unexpired lease is held.
        """
        stmt = (
            update(Transfer)
            .where(
                Transfer.id == transfer_id,
                Transfer.status == TransferStatus.PENDING.value,
                or_(
                    Transfer.completion_lock_id.is_(None),
                    Transfer.completion_locked_at < now - lease,
                ),
            )
            .values(completion_lock_id=lock_id, completion_locked_at=now)
            .execution_options(synchronize_session=False)
        )
        return await self._execute_swap("acquire_completion_lock", stmt)

    async def release_completion_lock(self, transfer_id: str, lock_id: str) -> bool:
        """Drop the lease if this caller still holds it."""
        stmt = (
            update(Transfer)
            .where(Transfer.id == transfer_id, Transfer.completion_lock_id == lock_id)
            .values(completion_lock_id=None, completion_locked_at=None)
            .execution_options(synchronize_session=False)
        )
        return await self._execute_swap("release_completion_lock", stmt)

    async def transition_status(
        self,
        transfer_id: str,
        lock_id: str,
        from_status: TransferStatus,
        to_status: TransferStatus,
        now: datetime,
    ) -> Transfer | None:
        """Move a leased transfer from one status to another and release the lease.

        Returns the updated transfer, or None if the status or lease no longer match.
        """
        stmt = (
            update(Transfer)
            .where(
                Transfer.id == transfer_id,
                Transfer.status == from_status.value,
                Transfer.completion_lock_id == lock_id,
            )
            .values(
                status=to_status.value,
                updated_at=now,
                completion_lock_id=None,
                completion_locked_at=None,
            )
            .execution_options(synchronize_session=False)
        )
        try:
            async with self._session_factory() as session, session.begin():
                result = await session.execute(stmt)
                if result.rowcount != 1:
                    return None
                fetched = await session.execute(
                    select(Transfer).where(Transfer.id == transfer_id)
                )
                return fetched.scalar_one()
        except SQLAlchemyError as exc:
            raise TransferStoreError("transition_status", str(exc)) from exc

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _fetch_one(self, operation: str, criterion) -> Transfer | None:  # noqa: ANN001
        try:
            async with self._session_factory() as session:
                result = await session.execute(select(Transfer).where(criterion))
                return result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise TransferStoreError(operation, str(exc)) from exc

    async def _execute_swap(self, operation: str, stmt) -> bool:  # noqa: ANN001
        try:
            async with self._session_factory() as session, session.begin():
                result = await session.execute(stmt)
        except SQLAlchemyError as exc:
            raise TransferStoreError(operation, str(exc)) from exc
        return result.rowcount == 1
