"""Composition root: builds every component once, from one Settings instance.

The FastAPI lifespan calls build_container() on startup and
close_container() on shutdown; route dependencies read the container from
app.state. Components receive their collaborators through constructors and
never look anything up globally.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from point_transfer.infrastructure.balance_client import HttpBalanceClient, build_http_client
from point_transfer.infrastructure.database.engine import (
    close_db,
    create_engine_from_settings,
    create_session_factory,
    init_db,
)
from point_transfer.infrastructure.database.repositories import TransferRepository
from point_transfer.infrastructure.redis_client import (
    IdempotencyStore,
    close_redis,
    init_redis,
)
from point_transfer.logging_config import get_logger
from point_transfer.orchestration.dispatcher import NotificationDispatcher
from point_transfer.services.notification_service import EmailNotifier
from point_transfer.services.transfer_service import TransferService

if TYPE_CHECKING:
    import httpx
    import redis.asyncio as aioredis
    from sqlalchemy.ext.asyncio import AsyncEngine

    from point_transfer.config import Settings

logger = get_logger(__name__)


@dataclass
class AppContainer:
    """Everything the API needs, wired together."""

    settings: Settings
    transfer_service: TransferService
    dispatcher: NotificationDispatcher
    engine: AsyncEngine | None = None
    http_client: httpx.AsyncClient | None = None
    redis: aioredis.Redis | None = None


async def build_container(settings: Settings) -> AppContainer:
    """Create engine, clients and services for a running application."""
    engine = create_engine_from_settings(settings)
    await init_db(engine, create_tables=settings.db_create_tables)
    repository = TransferRepository(create_session_factory(engine))

    http_client = build_http_client(settings)
    balance_client = HttpBalanceClient(http_client)

    redis = None
    idempotency = None
    try:
        redis = await init_redis(settings)
        idempotency = IdempotencyStore(redis, settings.redis_idempotency_ttl_seconds)
    except Exception as exc:  # noqa: BLE001 - idempotency is optional
        logger.warning("app.redis_unavailable", error=str(exc))

    dispatcher = NotificationDispatcher(EmailNotifier(settings))
    service = TransferService(
        repository=repository,
        balance_client=balance_client,
        dispatcher=dispatcher,
        settings=settings,
        idempotency=idempotency,
    )
    return AppContainer(
        settings=settings,
        transfer_service=service,
        dispatcher=dispatcher,
        engine=engine,
        http_client=http_client,
        redis=redis,
    )


async def close_container(container: AppContainer) -> None:
    """Drain background notifications and release connections."""
    await container.dispatcher.drain(
        timeout=container.settings.notification_drain_timeout_seconds
    )
    if container.http_client is not None:
        await container.http_client.aclose()
    if container.redis is not None:
        await close_redis(container.redis)
    if container.engine is not None:
        await close_db(container.engine)
