"""Tests for TransferRepository against an in-memory SQLite database."""

from __future__ import annotations

import uuid
from datetime import timedelta

import pytest

from conftest import START
from point_transfer.domain.enums import TransferStatus
from point_transfer.domain.exceptions import TransferStoreError
from point_transfer.infrastructure.database.orm_models import Transfer

LEASE = timedelta(minutes=5)


def make_transfer(**overrides) -> Transfer:  # noqa: ANN003
    fields = {
        "id": str(uuid.uuid4()),
        "sender_id": "user-1",
        "sender_email": "alice@example.com",
        "receiver_email": "carol@example.com",
        "receiver_name": "Carol",
        "points": 30,
        "status": TransferStatus.PENDING.value,
        "token": uuid.uuid4().hex,
        "expires_at": START + timedelta(hours=24),
        "created_at": START,
        "updated_at": START,
    }
    fields.update(overrides)
    return Transfer(**fields)


class TestCreateAndRead:
    @pytest.mark.asyncio
    async def test_create_then_get_by_id(self, repository) -> None:
        transfer = await repository.create(make_transfer())

        fetched = await repository.get_by_id(transfer.id)

        assert fetched is not None
        assert fetched.points == 30
        assert fetched.status == "pending"
        assert fetched.completion_lock_id is None

    @pytest.mark.asyncio
    async def test_timestamps_come_back_timezone_aware(self, repository) -> None:
        transfer = await repository.create(make_transfer())

        fetched = await repository.get_by_id(transfer.id)

        assert fetched.created_at == START
        assert fetched.expires_at.tzinfo is not None
        assert fetched.expires_at.utcoffset() == timedelta(0)

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, repository) -> None:
        assert await repository.get_by_id("missing") is None

    @pytest.mark.asyncio
    async def test_get_by_token(self, repository) -> None:
        transfer = await repository.create(make_transfer(token="claim-me"))

        fetched = await repository.get_by_token("claim-me")

        assert fetched is not None
        assert fetched.id == transfer.id
        assert await repository.get_by_token("other") is None

    @pytest.mark.asyncio
    async def test_duplicate_token_is_rejected(self, repository) -> None:
        await repository.create(make_transfer(token="same"))

        with pytest.raises(TransferStoreError):
            await repository.create(make_transfer(token="same"))

    @pytest.mark.asyncio
    async def test_non_positive_points_violate_constraint(self, repository) -> None:
        with pytest.raises(TransferStoreError):
            await repository.create(make_transfer(points=0))

    @pytest.mark.asyncio
    async def test_self_transfer_violates_constraint(self, repository) -> None:
        with pytest.raises(TransferStoreError):
            await repository.create(make_transfer(receiver_email="alice@example.com"))

    @pytest.mark.asyncio
    async def test_naive_datetime_is_rejected(self, repository) -> None:
        naive = START.replace(tzinfo=None)
        with pytest.raises(TransferStoreError):
            await repository.create(make_transfer(created_at=naive))


class TestListBySender:
    @pytest.mark.asyncio
    async def test_newest_first_and_scoped_to_sender(self, repository) -> None:
        oldest = await repository.create(make_transfer(created_at=START))
        newest = await repository.create(
            make_transfer(created_at=START + timedelta(hours=2))
        )
        middle = await repository.create(
            make_transfer(created_at=START + timedelta(hours=1))
        )
        await repository.create(
            make_transfer(sender_id="user-2", sender_email="bob@example.com")
        )

        listed = await repository.list_by_sender("user-1")

        assert [t.id for t in listed] == [newest.id, middle.id, oldest.id]

    @pytest.mark.asyncio
    async def test_unknown_sender_gets_empty_list(self, repository) -> None:
        assert await repository.list_by_sender("nobody") == []


class TestSaveAndDelete:
    @pytest.mark.asyncio
    async def test_save_overwrites_fields(self, repository) -> None:
        transfer = await repository.create(make_transfer())
        transfer.receiver_name = "Caroline"

        await repository.save(transfer)

        fetched = await repository.get_by_id(transfer.id)
        assert fetched.receiver_name == "Caroline"

    @pytest.mark.asyncio
    async def test_delete(self, repository) -> None:
        transfer = await repository.create(make_transfer())

        assert await repository.delete(transfer.id) is True
        assert await repository.get_by_id(transfer.id) is None
        assert await repository.delete(transfer.id) is False


class TestCompletionLease:
    @pytest.mark.asyncio
    async def test_only_one_holder_at_a_time(self, repository) -> None:
        transfer = await repository.create(make_transfer())

        first = await repository.acquire_completion_lock(transfer.id, "lock-a", START, LEASE)
        second = await repository.acquire_completion_lock(transfer.id, "lock-b", START, LEASE)

        assert first is True
        assert second is False
        fetched = await repository.get_by_id(transfer.id)
        assert fetched.completion_lock_id == "lock-a"

    @pytest.mark.asyncio
    async def test_stale_lease_can_be_taken_over(self, repository) -> None:
        transfer = await repository.create(make_transfer())
        await repository.acquire_completion_lock(transfer.id, "lock-a", START, LEASE)

        later = START + LEASE + timedelta(seconds=1)
        taken = await repository.acquire_completion_lock(transfer.id, "lock-b", later, LEASE)

        assert taken is True
        fetched = await repository.get_by_id(transfer.id)
        assert fetched.completion_lock_id == "lock-b"

    @pytest.mark.asyncio
    async def test_release_requires_holder(self, repository) -> None:
        transfer = await repository.create(make_transfer())
        await repository.acquire_completion_lock(transfer.id, "lock-a", START, LEASE)

        assert await repository.release_completion_lock(transfer.id, "lock-b") is False
        assert await repository.release_completion_lock(transfer.id, "lock-a") is True
        assert await repository.acquire_completion_lock(transfer.id, "lock-b", START, LEASE)

    @pytest.mark.asyncio
    async def test_cannot_lock_terminal_transfer(self, repository) -> None:
        transfer = await repository.create(
            make_transfer(status=TransferStatus.COMPLETED.value)
        )

        assert await repository.acquire_completion_lock(transfer.id, "lock-a", START, LEASE) is False

    @pytest.mark.asyncio
    async def test_cannot_lock_missing_transfer(self, repository) -> None:
        assert await repository.acquire_completion_lock("missing", "lock-a", START, LEASE) is False


class TestTransitionStatus:
    @pytest.mark.asyncio
    async def test_holder_moves_status_and_releases_lease(self, repository) -> None:
        transfer = await repository.create(make_transfer())
        await repository.acquire_completion_lock(transfer.id, "lock-a", START, LEASE)
        later = START + timedelta(minutes=1)

        updated = await repository.transition_status(
            transfer.id, "lock-a", TransferStatus.PENDING, TransferStatus.COMPLETED, later
        )

        assert updated is not None
        assert updated.status == "completed"
        assert updated.updated_at == later
        assert updated.completion_lock_id is None
        assert updated.completion_locked_at is None

    @pytest.mark.asyncio
    async def test_non_holder_cannot_transition(self, repository) -> None:
        transfer = await repository.create(make_transfer())
        await repository.acquire_completion_lock(transfer.id, "lock-a", START, LEASE)

        updated = await repository.transition_status(
            transfer.id, "lock-b", TransferStatus.PENDING, TransferStatus.COMPLETED, START
        )

        assert updated is None
        fetched = await repository.get_by_id(transfer.id)
        assert fetched.status == "pending"

    @pytest.mark.asyncio
    async def test_wrong_from_status_is_a_miss(self, repository) -> None:
        transfer = await repository.create(make_transfer())
        await repository.acquire_completion_lock(transfer.id, "lock-a", START, LEASE)
        await repository.transition_status(
            transfer.id, "lock-a", TransferStatus.PENDING, TransferStatus.FAILED, START
        )

        again = await repository.transition_status(
            transfer.id, "lock-a", TransferStatus.PENDING, TransferStatus.COMPLETED, START
        )

        assert again is None
        fetched = await repository.get_by_id(transfer.id)
        assert fetched.status == "failed"


class TestStoreFailures:
    @pytest.mark.asyncio
    async def test_database_errors_become_store_errors(self, repository, engine) -> None:
        async with engine.begin() as conn:
            await conn.exec_driver_sql("DROP TABLE transfers")

        with pytest.raises(TransferStoreError) as exc_info:
            await repository.get_by_id("any")

        assert exc_info.value.operation == "get_by_id"
