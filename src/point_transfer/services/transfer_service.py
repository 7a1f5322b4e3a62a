"""Transfer Service — the two-phase point transfer protocol.

Coordinates:
    - Domain state machine (terminal-state guard)
    - TransferRepository (durable records, compare-and-swap status changes)
    - BalanceClient (sender identity and live balance, debit write)
    - NotificationDispatcher (detached claim email)

initiate_transfer offers points without touching the sender's balance.
complete_transfer re-reads the balance and commits the debit exactly once:
it first takes the record's completion lease, so only one caller at a time
can get past the pending check for a given transfer, on any instance.
"""

from __future__ import annotations

import secrets
import uuid
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from statemachine.exceptions import TransitionNotAllowed

from point_transfer.domain.enums import TransferStatus
from point_transfer.domain.exceptions import (
    BalanceServiceError,
    BalanceUpdateError,
    CompletionInProgressError,
    DuplicateOperationError,
    InsufficientBalanceError,
    InvalidAmountError,
    InvalidStateTransitionError,
    PartyNotFoundError,
    PersistenceError,
    PostCommitPersistenceError,
    SelfTransferDeniedError,
    SenderNotFoundError,
    TransferExpiredError,
    TransferNotFoundError,
    TransferStoreError,
)
from point_transfer.domain.state_machine import validate_transition
from point_transfer.infrastructure.database.orm_models import Transfer
from point_transfer.logging_config import get_logger
from point_transfer.schemas.transfer import TransferResponse

if TYPE_CHECKING:
    from collections.abc import Callable

    from point_transfer.config import Settings
    from point_transfer.domain.protocols import BalanceClient, Party
    from point_transfer.infrastructure.database.repositories import TransferRepository
    from point_transfer.infrastructure.redis_client import IdempotencyStore
    from point_transfer.orchestration.dispatcher import NotificationDispatcher

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def generate_claim_token() -> str:
    """Return an unguessable URL-safe claim token."""
    return secrets.token_urlsafe(32)


class TransferService:
    """Owns the transfer lifecycle: initiate, complete, list."""

    def __init__(
        self,
        repository: TransferRepository,
        balance_client: BalanceClient,
        dispatcher: NotificationDispatcher,
        settings: Settings,
        idempotency: IdempotencyStore | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._repo = repository
        self._balance = balance_client
        self._dispatcher = dispatcher
        self._idempotency = idempotency
        self._clock = clock
        self._expiry = timedelta(hours=settings.transfer_expiry_hours)
        self._lease = timedelta(seconds=settings.completion_lease_seconds)

    # ------------------------------------------------------------------
    # Initiate
    # ------------------------------------------------------------------

    async def initiate_transfer(
        self,
        sender_id: str,
        receiver_email: str,
        receiver_name: str,
        points: int,
        idempotency_key: str | None = None,
    ) -> Transfer:
        """Offer points to a receiver. The sender's balance is not debited here.

        Returns the persisted pending transfer, token included.
        """
        scoped_key = None
        if idempotency_key and self._idempotency is not None:
            scoped_key = f"{sender_id}:{idempotency_key}"
            if not await self._idempotency.claim(scoped_key):
                raise DuplicateOperationError(idempotency_key)

        try:
            transfer = await self._create_pending(
                sender_id, receiver_email, receiver_name, points
            )
        except Exception:
            if scoped_key is not None:
                await self._idempotency.release(scoped_key)
            raise

        if scoped_key is not None:
            await self._idempotency.remember(scoped_key, transfer.id)

        self._dispatcher.dispatch(transfer)
        return transfer

    async def _create_pending(
        self,
        sender_id: str,
        receiver_email: str,
        receiver_name: str,
        points: int,
    ) -> Transfer:
        sender = await self._resolve_sender(sender_id)
        self._validate_offer(sender, receiver_email, points)

        now = self._clock()
        transfer = Transfer(
            id=str(uuid.uuid4()),
            sender_id=sender_id,
            sender_email=sender.email,
            receiver_email=receiver_email,
            receiver_name=receiver_name,
            points=points,
            status=TransferStatus.PENDING.value,
            token=generate_claim_token(),
            expires_at=now + self._expiry,
            created_at=now,
            updated_at=now,
        )

        try:
            await self._repo.create(transfer)
        except TransferStoreError as exc:
            logger.error("transfer.create_failed", sender_id=sender_id, error=exc.message)
            raise PersistenceError("Failed to create transfer") from exc

        logger.info(
            "transfer.initiated",
            transfer_id=transfer.id,
            sender_id=sender_id,
            receiver_email=receiver_email,
            points=points,
            expires_at=transfer.expires_at.isoformat(),
        )
        return transfer

    @staticmethod
    def _validate_offer(sender: Party, receiver_email: str, points: int) -> None:
        """Business rules for an offer, checked in order."""
        if isinstance(points, bool) or not isinstance(points, int) or points <= 0:
            raise InvalidAmountError(points)
        if receiver_email == sender.email:
            raise SelfTransferDeniedError(receiver_email)
        if sender.balance < points:
            raise InsufficientBalanceError(required=points, available=sender.balance)

    # ------------------------------------------------------------------
    # Complete
    # ------------------------------------------------------------------

    async def complete_transfer(self, transfer_id: str) -> Transfer:
        """Settle a pending transfer: re-check the balance, debit, mark completed."""
        lock_id = str(uuid.uuid4())
        now = self._clock()

        try:
            acquired = await self._repo.acquire_completion_lock(
                transfer_id, lock_id, now, self._lease
            )
        except TransferStoreError as exc:
            raise PersistenceError(f"Failed to lock transfer {transfer_id}") from exc

        if not acquired:
            transfer = await self._get_or_raise(transfer_id)
            if transfer.status != TransferStatus.PENDING:
                self._fire_transition(transfer, "complete")
            raise CompletionInProgressError(transfer_id)

        try:
            return await self._complete_locked(transfer_id, lock_id, now)
        except PostCommitPersistenceError:
            # The lease stays held so retries cannot debit again while it lasts.
            raise
        except Exception:
            await self._release_lock(transfer_id, lock_id)
            raise

    async def _complete_locked(
        self,
        transfer_id: str,
        lock_id: str,
        now: datetime,
    ) -> Transfer:
        transfer = await self._get_or_raise(transfer_id)

        if now >= transfer.expires_at:
            self._fire_transition(transfer, "expire")
            await self._settle(transfer, lock_id, TransferStatus.EXPIRED)
            logger.info("transfer.expired", transfer_id=transfer.id)
            raise TransferExpiredError(transfer.id, transfer.expires_at.isoformat())

        # Time has passed since initiation; other transfers may have spent the balance.
        sender = await self._resolve_sender(transfer.sender_id)

        if sender.balance < transfer.points:
            self._fire_transition(transfer, "fail")
            await self._settle(transfer, lock_id, TransferStatus.FAILED)
            logger.info(
                "transfer.failed_insufficient_balance",
                transfer_id=transfer.id,
                required=transfer.points,
                available=sender.balance,
            )
            raise InsufficientBalanceError(required=transfer.points, available=sender.balance)

        self._fire_transition(transfer, "complete")
        new_balance = sender.balance - transfer.points

        try:
            await self._balance.set_balance(transfer.sender_id, new_balance)
        except BalanceServiceError as exc:
            logger.warning(
                "transfer.debit_failed",
                transfer_id=transfer.id,
                sender_id=transfer.sender_id,
                error=exc.message,
            )
            raise BalanceUpdateError(transfer.id, exc.message) from exc

        try:
            completed = await self._repo.transition_status(
                transfer.id,
                lock_id,
                TransferStatus.PENDING,
                TransferStatus.COMPLETED,
                self._clock(),
            )
            cause: Exception | None = None
        except TransferStoreError as exc:
            completed = None
            cause = exc

        if completed is None:
            logger.critical(
                "transfer.post_commit_persistence_failed",
                transfer_id=transfer.id,
                sender_id=transfer.sender_id,
                points=transfer.points,
                previous_balance=sender.balance,
                new_balance=new_balance,
                error=str(cause) if cause else "status or lease changed",
                reconcile_before=(now + self._lease).isoformat(),
                note="lease goes stale at reconcile_before; a retry after that debits again",
            )
            raise PostCommitPersistenceError(
                transfer.id, transfer.sender_id, transfer.points
            ) from cause

        logger.info(
            "transfer.completed",
            transfer_id=completed.id,
            sender_id=completed.sender_id,
            points=completed.points,
            new_balance=new_balance,
        )
        return completed

    # ------------------------------------------------------------------
    # List
    # ------------------------------------------------------------------

    async def list_for_sender(self, sender_id: str) -> list[TransferResponse]:
        """Return a sender's transfers, newest first, without claim tokens."""
        try:
            transfers = await self._repo.list_by_sender(sender_id)
        except TransferStoreError as exc:
            raise PersistenceError(f"Failed to list transfers for {sender_id}") from exc
        return [TransferResponse.model_validate(t) for t in transfers]

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _resolve_sender(self, sender_id: str) -> Party:
        try:
            return await self._balance.get_party(sender_id)
        except PartyNotFoundError as exc:
            raise SenderNotFoundError(sender_id) from exc

    async def _get_or_raise(self, transfer_id: str) -> Transfer:
        try:
            transfer = await self._repo.get_by_id(transfer_id)
        except TransferStoreError as exc:
            raise PersistenceError(f"Failed to load transfer {transfer_id}") from exc
        if transfer is None:
            raise TransferNotFoundError(transfer_id)
        return transfer

    async def _settle(
        self,
        transfer: Transfer,
        lock_id: str,
        new_status: TransferStatus,
    ) -> Transfer:
        """Persist a terminal status reached without a debit."""
        try:
            updated = await self._repo.transition_status(
                transfer.id,
                lock_id,
                TransferStatus.PENDING,
                new_status,
                self._clock(),
            )
        except TransferStoreError as exc:
            raise PersistenceError(
                f"Failed to mark transfer {transfer.id} {new_status.value}"
            ) from exc
        if updated is None:
            raise CompletionInProgressError(transfer.id)
        return updated

    async def _release_lock(self, transfer_id: str, lock_id: str) -> None:
        try:
            await self._repo.release_completion_lock(transfer_id, lock_id)
        except TransferStoreError as exc:
            # The lease expires on its own after completion_lease_seconds.
            logger.warning("transfer.lock_release_failed", transfer_id=transfer_id, error=exc.message)

    @staticmethod
    def _fire_transition(transfer: Transfer, event_name: str) -> None:
        """Validate a state machine transition.

        Raises InvalidStateTransitionError if the transition is illegal.
        """
        try:
            validate_transition(transfer.status, event_name)
        except TransitionNotAllowed as err:
            raise InvalidStateTransitionError(transfer.status, event_name) from err
