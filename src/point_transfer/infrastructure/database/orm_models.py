"""SQLAlchemy 2.0 ORM models for the point transfer service.

One table:
    transfers — offered point transfers and their lifecycle status.

Design decisions:
    - UUID text primary keys (portable across PostgreSQL and SQLite).
    - Integer points; CHECK constraints on points > 0, distinct sender and
      receiver emails, and the status value set.
    - Unique index on the claim token.
    - completion_lock_id / completion_locked_at hold the per-record
      completion lease that serializes concurrent completions.
    - Timestamps always round-trip as timezone-aware UTC.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import CheckConstraint, DateTime, Index, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from point_transfer.domain.enums import TransferStatus


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class UtcDateTime(TypeDecorator):
    """DateTime that stores UTC and always returns aware datetimes.

    SQLite drops tzinfo on the way back; PostgreSQL returns the session zone.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):  # noqa: ANN001, ANN201
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError("naive datetime is not allowed for UtcDateTime")
        return value.astimezone(UTC)

    def process_result_value(self, value, dialect):  # noqa: ANN001, ANN201
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


def _utcnow() -> datetime:
    return datetime.now(UTC)


_STATUS_VALUES = ", ".join(f"'{s.value}'" for s in TransferStatus)


class Transfer(Base):
    """A points transfer offered by a sender to a receiver email."""

    __tablename__ = "transfers"

    # --- Primary Key ---
    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )

    # --- Parties ---
    sender_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="Identifier of the sender in the balance service",
    )
    sender_email: Mapped[str] = mapped_column(
        String(320),
        nullable=False,
        comment="Sender email snapshot taken at initiation",
    )
    receiver_email: Mapped[str] = mapped_column(String(320), nullable=False)
    receiver_name: Mapped[str] = mapped_column(String(100), nullable=False)

    # --- Amount ---
    points: Mapped[int] = mapped_column(Integer, nullable=False)

    # --- Status (guarded by TransferStateMachine) ---
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=TransferStatus.PENDING.value,
    )

    # --- Claim ---
    token: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="Bearer credential for claiming the transfer; never returned by the API",
    )
    expires_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)

    # --- Completion lease ---
    completion_lock_id: Mapped[str | None] = mapped_column(
        String(36),
        nullable=True,
        default=None,
    )
    completion_locked_at: Mapped[datetime | None] = mapped_column(
        UtcDateTime,
        nullable=True,
        default=None,
    )

    # --- Timestamps ---
    created_at: Mapped[datetime] = mapped_column(
        UtcDateTime,
        nullable=False,
        default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        UtcDateTime,
        nullable=False,
        default=_utcnow,
    )

    # --- Table Constraints & Indexes ---
    __table_args__ = (
        CheckConstraint(
            f"status IN ({_STATUS_VALUES})",
            name="ck_transfer_valid_status",
        ),
        CheckConstraint("points > 0", name="ck_transfer_positive_points"),
        CheckConstraint(
            "sender_email <> receiver_email",
            name="ck_transfer_not_self",
        ),
        Index("uq_transfer_token", "token", unique=True),
        Index("idx_transfer_sender_created", "sender_id", "created_at"),
        Index("idx_transfer_receiver_email", "receiver_email"),
        Index("idx_transfer_status", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<Transfer id={self.id} status={self.status} "
            f"points={self.points} sender={self.sender_id}>"
        )
