"""Domain enumerations for the point transfer service.

Framework-agnostic (no SQLAlchemy, no FastAPI imports).
"""

import enum


class TransferStatus(enum.StrEnum):
    """Lifecycle states of a transfer.

    PENDING is the only initial and the only non-terminal state.
    See domain/state_machine.py for the transition table.
    """

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    EXPIRED = "expired"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not TransferStatus.PENDING


TERMINAL_STATUSES = frozenset(s for s in TransferStatus if s.is_terminal)
