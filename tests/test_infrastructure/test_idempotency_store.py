"""Tests for the Redis-backed IdempotencyStore (Redis mocked)."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from point_transfer.infrastructure.redis_client import IdempotencyStore


class TestClaim:
    @pytest.mark.asyncio
    async def test_first_claim_wins(self) -> None:
        redis = AsyncMock()
        redis.set.return_value = True
        store = IdempotencyStore(redis, ttl_seconds=60)

        assert await store.claim("user-1:abc") is True
        redis.set.assert_awaited_once_with(
            "idempotency:user-1:abc", "in-flight", ex=60, nx=True
        )

    @pytest.mark.asyncio
    async def test_repeated_key_is_refused(self) -> None:
        redis = AsyncMock()
        redis.set.return_value = None
        store = IdempotencyStore(redis, ttl_seconds=60)

        assert await store.claim("user-1:abc") is False

    @pytest.mark.asyncio
    async def test_redis_outage_fails_open(self) -> None:
        redis = AsyncMock()
        redis.set.side_effect = RedisConnectionError("down")
        store = IdempotencyStore(redis, ttl_seconds=60)

        assert await store.claim("user-1:abc") is True


class TestRememberAndRelease:
    @pytest.mark.asyncio
    async def test_remember_stores_transfer_id(self) -> None:
        redis = AsyncMock()
        store = IdempotencyStore(redis, ttl_seconds=60)

        await store.remember("user-1:abc", "t-1")

        redis.set.assert_awaited_once_with("idempotency:user-1:abc", "t-1", ex=60)

    @pytest.mark.asyncio
    async def test_release_deletes_key(self) -> None:
        redis = AsyncMock()
        store = IdempotencyStore(redis, ttl_seconds=60)

        await store.release("user-1:abc")

        redis.delete.assert_awaited_once_with("idempotency:user-1:abc")

    @pytest.mark.asyncio
    async def test_release_swallows_redis_errors(self) -> None:
        redis = AsyncMock()
        redis.delete.side_effect = RedisConnectionError("down")
        store = IdempotencyStore(redis, ttl_seconds=60)

        await store.release("user-1:abc")
