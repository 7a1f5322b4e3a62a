"""Redis client and idempotency keys for transfer initiation.

Usage:
    redis = await init_redis(settings)
    store = IdempotencyStore(redis, ttl_seconds=settings.redis_idempotency_ttl_seconds)
    if not await store.claim("user-1:abc"):
        raise DuplicateOperationError("user-1:abc")
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from point_transfer.logging_config import get_logger

if TYPE_CHECKING:
    from point_transfer.config import Settings

logger = get_logger(__name__)

_KEY_PREFIX = "idempotency:"
_IN_FLIGHT = "in-flight"


async def init_redis(settings: Settings) -> aioredis.Redis:
    """Create the Redis client and verify connectivity. Called during app startup."""
    client = aioredis.from_url(settings.redis_url, decode_responses=True)
    await client.ping()
    logger.info("redis.connected", url=settings.redis_url)
    return client


async def close_redis(client: aioredis.Redis) -> None:
    """Close the Redis connection. Called during app shutdown."""
    await client.aclose()
    logger.info("redis.disconnected")


class IdempotencyStore:
    """Idempotency keys with a TTL, claimed atomically with SET NX.

    Redis errors fail open: the key is treated as new and the error is logged,
    so an idempotency outage never blocks transfers.
    """

    def __init__(self, redis: aioredis.Redis, ttl_seconds: int) -> None:
        self._redis = redis
        self._ttl_seconds = ttl_seconds

    async def claim(self, key: str) -> bool:
        """Mark a key as in flight. Returns False if the key was already used."""
        try:
            claimed = await self._redis.set(
                f"{_KEY_PREFIX}{key}",
                _IN_FLIGHT,
                ex=self._ttl_seconds,
                nx=True,
            )
        except RedisError as exc:
            logger.warning("idempotency.unavailable", key=key, error=str(exc))
            return True
        return bool(claimed)

    async def remember(self, key: str, transfer_id: str) -> None:
        """Record the transfer created under a claimed key."""
        try:
            await self._redis.set(f"{_KEY_PREFIX}{key}", transfer_id, ex=self._ttl_seconds)
        except RedisError as exc:
            logger.warning("idempotency.remember_failed", key=key, error=str(exc))

    async def release(self, key: str) -> None:
        """Forget a key so the same request can be retried."""
        try:
            await self._redis.delete(f"{_KEY_PREFIX}{key}")
        except RedisError as exc:
            logger.warning("idempotency.release_failed", key=key, error=str(exc))
