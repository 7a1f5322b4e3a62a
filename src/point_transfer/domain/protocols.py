"""Collaborator protocols for the transfer orchestrator.

The orchestrator depends on these shapes, not on httpx or smtplib. They are
Protocols (structural subtyping), so the HTTP balance client, the email
notifier and the in-memory fakes used by the tests all satisfy them without
inheriting from a base class.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from point_transfer.infrastructure.database.orm_models import Transfer


@dataclass(frozen=True)
class Party:
    """A party as known to the external balance service.

    Attributes:
        id: Identifier used by the balance service.
        email: The party's email address.
        name: Display name.
        balance: Current point balance.
    """

    id: str
    email: str
    name: str
    balance: int


@dataclass(frozen=True)
class NotificationResult:
    """Outcome of a single notification attempt."""

    delivered: bool
    recipient: str
    error: str | None = None


@runtime_checkable
class BalanceClient(Protocol):
    """Reads and writes balances held by the identity/balance service.

    Implementations raise PartyNotFoundError, BalanceServiceUnavailableError
    or BalanceUpdateRejectedError from domain/exceptions.py.
    """

    async def get_party(self, party_id: str) -> Party:
        """Return the party with its current balance."""
        ...

    async def set_balance(self, party_id: str, new_balance: int) -> None:
        """Overwrite the party's balance with an absolute value."""
        ...


@runtime_checkable
class Notifier(Protocol):
    """Delivers the claim link for a pending transfer to its receiver."""

    async def notify(self, transfer: Transfer) -> NotificationResult:
        """Attempt one delivery. Delivery failures are returned, not raised."""
        ...
