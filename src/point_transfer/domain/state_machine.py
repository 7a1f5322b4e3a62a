"""Transfer State Machine Guard.

Uses python-statemachine to enforce legal status transitions at the domain
level. The service fires an event on a machine built from the record's
current status before writing the new status, so a terminal record can never
be re-transitioned no matter which code path asks.

Transition table:
    pending -> completed   (complete)
    pending -> failed      (fail)
    pending -> expired     (expire)
    pending -> cancelled   (cancel)

Every non-pending state is final.
"""

from __future__ import annotations

from statemachine import State, StateMachine


class TransferStateMachine(StateMachine):
    """State machine that guards the transfer lifecycle.

    Usage:
        sm = TransferStateMachine(current_status="pending")
        sm.complete()       # transitions to completed
        sm.status           # "completed"
    """

    # --- States ---
    pending = State("pending", value="pending", initial=True)
    completed = State("completed", value="completed", final=True)
    failed = State("failed", value="failed", final=True)
    expired = State("expired", value="expired", final=True)
    cancelled = State("cancelled", value="cancelled", final=True)

    # --- Events / Transitions ---
    complete = pending.to(completed)
    fail = pending.to(failed)
    expire = pending.to(expired)
    cancel = pending.to(cancelled)

    def __init__(self, current_status: str = "pending") -> None:
        """Initialize the state machine at a given status.

        Args:
            current_status: The current TransferStatus value (e.g., "pending").
        """
        valid_values = {s.value for s in self.states}
        if current_status not in valid_values:
            valid = ", ".join(sorted(valid_values))
            raise ValueError(
                f"Unknown status '{current_status}'. Valid states: {valid}"
            )
        super().__init__(start_value=current_status)

    @property
    def status(self) -> str:
        """Return the current state value as a string (matches TransferStatus)."""
        return str(self.current_state.value)

    def get_allowed_events(self) -> list[str]:
        """Return a list of event names that can fire from the current state."""
        return [event.id for event in self.allowed_events]


def validate_transition(current_status: str, event_name: str) -> str:
    """Validate a status transition and return the new status.

    Args:
        current_status: Current TransferStatus value.
        event_name: The event to fire (e.g., "complete").

    Returns:
        The new status string after the transition.

    Raises:
        TransitionNotAllowed: If the transition is illegal.
        ValueError: If the status or event name is invalid.
    """
    sm = TransferStateMachine(current_status=current_status)

    event_method = getattr(sm, event_name, None)
    if event_method is None or not callable(event_method):
        raise ValueError(
            f"Unknown event '{event_name}'. "
            f"Allowed events from {current_status}: {sm.get_allowed_events()}"
        )

    event_method()
    return sm.status
