"""Domain layer — pure business rules with zero framework dependencies."""

from point_transfer.domain.enums import TERMINAL_STATUSES, TransferStatus
from point_transfer.domain.exceptions import (
    InvalidStateTransitionError,
    PointTransferError,
    TransferNotFoundError,
)
from point_transfer.domain.protocols import (
    BalanceClient,
    NotificationResult,
    Notifier,
    Party,
)
from point_transfer.domain.state_machine import (
    TransferStateMachine,
    validate_transition,
)

__all__ = [
    "TERMINAL_STATUSES",
    "TransferStatus",
    "InvalidStateTransitionError",
    "PointTransferError",
    "TransferNotFoundError",
    "BalanceClient",
    "NotificationResult",
    "Notifier",
    "Party",
    "TransferStateMachine",
    "validate_transition",
]
