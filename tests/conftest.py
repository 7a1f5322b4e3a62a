"""Shared test fixtures for the Point Transfer test suite.

Provides:
    - An in-memory SQLite store (aiosqlite) with the real schema
    - An in-memory fake balance service with failure injection
    - A recording notifier and a controllable clock
    - A fully wired TransferService
"""

from __future__ import annotations

import dataclasses
from datetime import UTC, datetime, timedelta

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from point_transfer.config import Settings
from point_transfer.domain.exceptions import PartyNotFoundError
from point_transfer.domain.protocols import NotificationResult, Party
from point_transfer.infrastructure.database.engine import create_session_factory
from point_transfer.infrastructure.database.orm_models import Base
from point_transfer.infrastructure.database.repositories import TransferRepository
from point_transfer.orchestration.dispatcher import NotificationDispatcher
from point_transfer.services.transfer_service import TransferService

START = datetime(2026, 1, 15, 12, 0, tzinfo=UTC)


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


class FakeBalanceClient:
    """In-memory balance service.

    Set ``get_error`` / ``set_error`` to an exception instance to make the
    next calls fail with it.
    """

    def __init__(self) -> None:
        self.parties: dict[str, Party] = {}
        self.set_calls: list[tuple[str, int]] = []
        self.get_error: Exception | None = None
        self.set_error: Exception | None = None

    def add_party(self, party_id: str, email: str, balance: int, name: str = "") -> Party:
        party = Party(id=party_id, email=email, name=name or party_id, balance=balance)
        self.parties[party_id] = party
        return party

    def balance_of(self, party_id: str) -> int:
        return self.parties[party_id].balance

    async def get_party(self, party_id: str) -> Party:
        if self.get_error is not None:
            raise self.get_error
        if party_id not in self.parties:
            raise PartyNotFoundError(party_id)
        return self.parties[party_id]

    async def set_balance(self, party_id: str, new_balance: int) -> None:
        self.set_calls.append((party_id, new_balance))
        if self.set_error is not None:
            raise self.set_error
        if party_id not in self.parties:
            raise PartyNotFoundError(party_id)
        self.parties[party_id] = dataclasses.replace(
            self.parties[party_id], balance=new_balance
        )


class RecordingNotifier:
    """Notifier that records every transfer it is asked to announce."""

    def __init__(self, delivered: bool = True, error: Exception | None = None) -> None:
        self.sent: list = []
        self._delivered = delivered
        self._error = error

    async def notify(self, transfer) -> NotificationResult:  # noqa: ANN001
        self.sent.append(transfer)
        if self._error is not None:
            raise self._error
        return NotificationResult(
            delivered=self._delivered,
            recipient=transfer.receiver_email,
            error=None if self._delivered else "rejected",
        )


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        app_env="development",
        database_url="sqlite+aiosqlite:///:memory:",
        notifications_dry_run=True,
        frontend_url="https://points.example.com",
        transfer_expiry_hours=24,
        completion_lease_seconds=300,
    )


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def repository(engine) -> TransferRepository:  # noqa: ANN001
    return TransferRepository(create_session_factory(engine))


@pytest.fixture
def balance_client() -> FakeBalanceClient:
    client = FakeBalanceClient()
    client.add_party("user-1", "alice@example.com", 100, name="Alice")
    client.add_party("user-2", "bob@example.com", 40, name="Bob")
    return client


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def dispatcher(notifier: RecordingNotifier) -> NotificationDispatcher:
    return NotificationDispatcher(notifier)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def service(
    repository: TransferRepository,
    balance_client: FakeBalanceClient,
    dispatcher: NotificationDispatcher,
    settings: Settings,
    clock: FakeClock,
) -> TransferService:
    return TransferService(
        repository=repository,
        balance_client=balance_client,
        dispatcher=dispatcher,
        settings=settings,
        clock=clock,
    )
