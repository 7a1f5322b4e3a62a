#!/usr/bin/env python3
"""Point Transfer — End-to-End Simulation.

Runs the transfer protocol in-process against SQLite (in-memory), a
simulated balance service and the dry-run email notifier:

    Scenario 1: Happy Path
        - Alice (100 pts) offers 30 pts to Carol -> pending, no debit
        - Carol claims -> COMPLETED, Alice now has 70

    Scenario 2: Over-committed Balance
        - Alice (100 pts) offers 60 pts twice -> both pending
        - First claim -> COMPLETED (Alice 40)
        - Second claim -> FAILED, insufficient points

    Scenario 3: Expired Offer
        - Alice offers 20 pts, nobody claims for 24 hours
        - Late claim -> EXPIRED, no debit

Usage:
    python simulation.py
    python simulation.py --scenario 2
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
from datetime import UTC, datetime, timedelta

from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from point_transfer.config import Settings
from point_transfer.domain.exceptions import (
    InsufficientBalanceError,
    PartyNotFoundError,
    TransferExpiredError,
)
from point_transfer.domain.protocols import Party
from point_transfer.infrastructure.database.engine import create_session_factory, init_db
from point_transfer.infrastructure.database.repositories import TransferRepository
from point_transfer.logging_config import get_logger, setup_logging
from point_transfer.orchestration.dispatcher import NotificationDispatcher
from point_transfer.services.notification_service import EmailNotifier
from point_transfer.services.transfer_service import TransferService

setup_logging(log_level="INFO", json_logs=False)
logger = get_logger("simulation")


# ---------------------------------------------------------------------------
# Simulated collaborators
# ---------------------------------------------------------------------------
class SimulatedBalanceService:
    """In-process stand-in for the identity/balance service."""

    def __init__(self) -> None:
        self._parties: dict[str, Party] = {}

    def register(self, party_id: str, email: str, name: str, balance: int) -> None:
        self._parties[party_id] = Party(id=party_id, email=email, name=name, balance=balance)

    def balance_of(self, party_id: str) -> int:
        return self._parties[party_id].balance

    async def get_party(self, party_id: str) -> Party:
        if party_id not in self._parties:
            raise PartyNotFoundError(party_id)
        return self._parties[party_id]

    async def set_balance(self, party_id: str, new_balance: int) -> None:
        self._parties[party_id] = dataclasses.replace(
            self._parties[party_id], balance=new_balance
        )


class SimulationClock:
    def __init__(self) -> None:
        self.now = datetime.now(UTC)

    def __call__(self) -> datetime:
        return self.now


@dataclasses.dataclass
class World:
    service: TransferService
    balances: SimulatedBalanceService
    dispatcher: NotificationDispatcher
    clock: SimulationClock


async def build_world(engine) -> World:  # noqa: ANN001
    """Wire a fresh service against an empty database and two parties."""
    settings = Settings(
        _env_file=None,
        database_url="sqlite+aiosqlite:///:memory:",
        notifications_dry_run=True,
    )
    await init_db(engine, create_tables=True)

    balances = SimulatedBalanceService()
    balances.register("alice", "alice@example.com", "Alice", 100)

    clock = SimulationClock()
    dispatcher = NotificationDispatcher(EmailNotifier(settings))
    service = TransferService(
        repository=TransferRepository(create_session_factory(engine)),
        balance_client=balances,
        dispatcher=dispatcher,
        settings=settings,
        clock=clock,
    )
    return World(service=service, balances=balances, dispatcher=dispatcher, clock=clock)


# ---------------------------------------------------------------------------
# Display helpers
# ---------------------------------------------------------------------------
def banner(text: str) -> None:
    print("\n" + "=" * 70)
    print(f"  {text}")
    print("=" * 70)


def section(text: str) -> None:
    print(f"\n--- {text} ---")


async def print_history(world: World, sender_id: str) -> None:
    section(f"History for {sender_id}")
    for row in await world.service.list_for_sender(sender_id):
        print(f"  {row.created_at:%H:%M:%S}  {row.points:>4} pts -> {row.receiver_email:<22} {row.status}")
    print(f"  Balance: {world.balances.balance_of(sender_id)} pts")


# ===========================================================================
# SCENARIO 1: Happy Path
# ===========================================================================
async def scenario_1_happy_path(world: World) -> None:
    banner("SCENARIO 1: Happy Path")

    section("Alice offers 30 points to Carol")
    transfer = await world.service.initiate_transfer(
        "alice", "carol@example.com", "Carol", 30
    )
    await world.dispatcher.drain(timeout=5)
    print(f"  Transfer {transfer.id} is {transfer.status}; Alice still has "
          f"{world.balances.balance_of('alice')} pts")

    section("Carol claims")
    completed = await world.service.complete_transfer(transfer.id)
    print(f"  Transfer is {completed.status}")

    await print_history(world, "alice")


# ===========================================================================
# SCENARIO 2: Over-committed Balance
# ===========================================================================
async def scenario_2_overcommitted(world: World) -> None:
    banner("SCENARIO 2: Over-committed Balance")

    first = await world.service.initiate_transfer("alice", "carol@example.com", "Carol", 60)
    second = await world.service.initiate_transfer("alice", "dave@example.com", "Dave", 60)
    await world.dispatcher.drain(timeout=5)
    print("  Two offers of 60 pts accepted against a balance of 100")

    section("Carol claims first")
    await world.service.complete_transfer(first.id)
    print(f"  Alice now has {world.balances.balance_of('alice')} pts")

    section("Dave claims second")
    try:
        await world.service.complete_transfer(second.id)
    except InsufficientBalanceError as exc:
        print(f"  Rejected: {exc.message}")

    await print_history(world, "alice")


# ===========================================================================
# SCENARIO 3: Expired Offer
# ===========================================================================
async def scenario_3_expired(world: World) -> None:
    banner("SCENARIO 3: Expired Offer")

    transfer = await world.service.initiate_transfer("alice", "erin@example.com", "Erin", 20)
    await world.dispatcher.drain(timeout=5)

    section("24 hours pass")
    world.clock.now += timedelta(hours=24)

    try:
        await world.service.complete_transfer(transfer.id)
    except TransferExpiredError as exc:
        print(f"  Rejected: {exc.message}")

    await print_history(world, "alice")


# ===========================================================================
# Main
# ===========================================================================
SCENARIOS = {
    1: scenario_1_happy_path,
    2: scenario_2_overcommitted,
    3: scenario_3_expired,
}


async def run(numbers: list[int]) -> None:
    for num in numbers:
        engine = create_async_engine(
            "sqlite+aiosqlite:///:memory:",
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
        try:
            world = await build_world(engine)
            await SCENARIOS[num](world)
            await world.dispatcher.drain(timeout=5)
        finally:
            await engine.dispose()

    print("\n" + "=" * 70)
    print("  ALL SCENARIOS COMPLETED")
    print("=" * 70 + "\n")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Point Transfer Simulation")
    parser.add_argument(
        "--scenario",
        type=int,
        choices=sorted(SCENARIOS),
        help="Run a specific scenario (1, 2, or 3). Default: run all.",
    )
    args = parser.parse_args()

    asyncio.run(run([args.scenario] if args.scenario else sorted(SCENARIOS)))
