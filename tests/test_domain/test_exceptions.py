"""Tests for domain exception codes and retry classification."""

from __future__ import annotations

import pytest

from point_transfer.domain.exceptions import (
    BalanceServiceUnavailableError,
    BalanceUpdateError,
    BalanceUpdateRejectedError,
    CompletionInProgressError,
    InsufficientBalanceError,
    InvalidAmountError,
    InvalidStateTransitionError,
    PartyNotFoundError,
    PersistenceError,
    PostCommitPersistenceError,
    SelfTransferDeniedError,
    StateConflictError,
    TransferExpiredError,
)


class TestRetryable:
    @pytest.mark.parametrize(
        "exc",
        [
            BalanceServiceUnavailableError("down"),
            BalanceUpdateError("t-1", "timeout"),
            PersistenceError("db down"),
            CompletionInProgressError("t-1"),
        ],
    )
    def test_transient_errors_are_retryable(self, exc: Exception) -> None:
        assert exc.retryable is True

    @pytest.mark.parametrize(
        "exc",
        [
            InvalidAmountError(0),
            SelfTransferDeniedError("a@example.com"),
            InsufficientBalanceError(required=60, available=40),
            InvalidStateTransitionError("completed", "complete"),
            TransferExpiredError("t-1", "2026-01-01T00:00:00+00:00"),
            PartyNotFoundError("user-9"),
            BalanceUpdateRejectedError("user-1", "status 400"),
            PostCommitPersistenceError("t-1", "user-1", 50),
        ],
    )
    def test_permanent_errors_are_not_retryable(self, exc: Exception) -> None:
        assert exc.retryable is False


class TestErrorDetails:
    def test_insufficient_balance_carries_amounts(self) -> None:
        exc = InsufficientBalanceError(required=60, available=40)
        assert exc.code == "INSUFFICIENT_BALANCE"
        assert exc.required == 60
        assert exc.available == 40
        assert "60" in str(exc)

    def test_completion_in_progress_is_a_state_conflict(self) -> None:
        exc = CompletionInProgressError("t-1")
        assert isinstance(exc, InvalidStateTransitionError)
        assert isinstance(exc, StateConflictError)
        assert exc.code == "COMPLETION_IN_PROGRESS"
        assert "t-1" in exc.message

    def test_rejected_update_message_without_reason(self) -> None:
        assert BalanceUpdateRejectedError("user-1").message == (
            "Balance update rejected for user-1"
        )
