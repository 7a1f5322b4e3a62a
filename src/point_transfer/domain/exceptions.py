"""Domain exceptions for the point transfer service.

These exceptions are framework-agnostic. They are raised by the service
layer and translated to HTTP responses by the API middleware. Each carries a
stable ``code`` and a ``retryable`` flag telling callers whether repeating
the same call can succeed.
"""

from __future__ import annotations


class PointTransferError(Exception):
    """Base exception for all domain errors."""

    retryable: bool = False

    def __init__(self, message: str, code: str = "POINT_TRANSFER_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(self.message)


# --- Validation Errors ---


class TransferValidationError(PointTransferError):
    """Base for caller-input faults. Never retried."""


class InvalidAmountError(TransferValidationError):
    """Raised when the requested points are not a positive integer."""

    def __init__(self, points: object) -> None:
        super().__init__(
            message=f"Points must be a positive integer, got {points!r}",
            code="INVALID_AMOUNT",
        )
        self.points = points


class SelfTransferDeniedError(TransferValidationError):
    """Raised when the receiver email equals the sender's own email."""

    def __init__(self, email: str) -> None:
        super().__init__(
            message=f"Cannot transfer points to yourself ({email})",
            code="SELF_TRANSFER_DENIED",
        )
        self.email = email


class InsufficientBalanceError(PointTransferError):
    """Raised when the sender's balance does not cover the transfer.

    An expected business outcome, not a system fault.
    """

    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            message=f"Insufficient points: required {required}, available {available}",
            code="INSUFFICIENT_BALANCE",
        )
        self.required = required
        self.available = available


# --- Not Found Errors ---


class NotFoundError(PointTransferError):
    """Base for lookups that resolved to nothing."""


class SenderNotFoundError(NotFoundError):
    """Raised when the sender identity cannot be resolved."""

    def __init__(self, sender_id: str) -> None:
        super().__init__(
            message=f"Sender not found: {sender_id}",
            code="SENDER_NOT_FOUND",
        )
        self.sender_id = sender_id


class TransferNotFoundError(NotFoundError):
    """Raised when a transfer ID does not exist."""

    def __init__(self, transfer_id: str) -> None:
        super().__init__(
            message=f"Transfer not found: {transfer_id}",
            code="TRANSFER_NOT_FOUND",
        )
        self.transfer_id = transfer_id


# --- State Conflict Errors ---


class StateConflictError(PointTransferError):
    """Base for errors raised by the terminal-state guard."""


class InvalidStateTransitionError(StateConflictError):
    """Raised when a transfer is not in a state that allows the operation.

    Example: completing a transfer that is already completed.
    """

    def __init__(self, current_state: str, attempted: str) -> None:
        super().__init__(
            message=f"Invalid state transition: {current_state} -> {attempted}",
            code="INVALID_STATE",
        )
        self.current_state = current_state
        self.attempted = attempted


class CompletionInProgressError(InvalidStateTransitionError):
    """Raised when another caller currently holds the completion lease."""

    retryable = True

    def __init__(self, transfer_id: str) -> None:
        super().__init__(current_state="pending", attempted="complete")
        self.message = f"Completion already in progress for transfer: {transfer_id}"
        self.args = (self.message,)
        self.code = "COMPLETION_IN_PROGRESS"
        self.transfer_id = transfer_id


class TransferExpiredError(StateConflictError):
    """Raised when a pending transfer is completed after its expiry."""

    def __init__(self, transfer_id: str, expires_at: str) -> None:
        super().__init__(
            message=f"Transfer {transfer_id} expired at {expires_at}",
            code="TRANSFER_EXPIRED",
        )
        self.transfer_id = transfer_id
        self.expires_at = expires_at


class DuplicateOperationError(StateConflictError):
    """Raised when a duplicate idempotency key is detected."""

    def __init__(self, idempotency_key: str) -> None:
        super().__init__(
            message=f"Duplicate operation detected for key: {idempotency_key}",
            code="DUPLICATE_OPERATION",
        )
        self.idempotency_key = idempotency_key


# --- Upstream Dependency Errors ---


class UpstreamError(PointTransferError):
    """Base for failures of a collaborator. The record is left safe to retry."""

    retryable = True


class BalanceServiceError(UpstreamError):
    """Base for errors raised by the balance client."""


class PartyNotFoundError(BalanceServiceError):
    """The balance service does not know the party."""

    retryable = False

    def __init__(self, party_id: str) -> None:
        super().__init__(
            message=f"Party not found in balance service: {party_id}",
            code="PARTY_NOT_FOUND",
        )
        self.party_id = party_id


class BalanceServiceUnavailableError(BalanceServiceError):
    """The balance service could not be reached or answered with a server error."""

    def __init__(self, message: str) -> None:
        super().__init__(message=message, code="BALANCE_SERVICE_UNAVAILABLE")


class BalanceUpdateRejectedError(BalanceServiceError):
    """The balance service refused the new balance."""

    retryable = False

    def __init__(self, party_id: str, reason: str = "") -> None:
        message = f"Balance update rejected for {party_id}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message=message, code="BALANCE_UPDATE_REJECTED")
        self.party_id = party_id


class BalanceUpdateError(UpstreamError):
    """Raised by the orchestrator when the debit write fails. The record stays pending."""

    def __init__(self, transfer_id: str, reason: str) -> None:
        super().__init__(
            message=f"Failed to debit sender for transfer {transfer_id}: {reason}",
            code="BALANCE_UPDATE_FAILURE",
        )
        self.transfer_id = transfer_id


# --- Persistence Errors ---


class TransferStoreError(PointTransferError):
    """Raised by the repository when the underlying database call fails."""

    def __init__(self, operation: str, reason: str) -> None:
        super().__init__(
            message=f"Transfer store {operation} failed: {reason}",
            code="TRANSFER_STORE_ERROR",
        )
        self.operation = operation


class PersistenceError(UpstreamError):
    """Raised by the orchestrator when a store write fails before any debit."""

    def __init__(self, message: str) -> None:
        super().__init__(message=message, code="PERSISTENCE_FAILURE")


class PostCommitPersistenceError(PointTransferError):
    """The sender was debited but the transfer could not be marked completed.

    Not recoverable by retry. Requires manual reconciliation.
    """

    def __init__(self, transfer_id: str, sender_id: str, points: int) -> None:
        super().__init__(
            message=(
                f"Transfer {transfer_id} debited {points} points from {sender_id} "
                "but could not be marked completed"
            ),
            code="POST_COMMIT_PERSISTENCE_FAILURE",
        )
        self.transfer_id = transfer_id
        self.sender_id = sender_id
        self.points = points
