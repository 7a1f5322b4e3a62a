"""Async database engine and session factory construction.

Provides:
    - create_engine_from_settings: builds the SQLAlchemy async engine.
    - create_session_factory: an async_sessionmaker bound to that engine.
    - init_db / close_db: lifecycle hooks for FastAPI's lifespan.

The engine and factory are created once by the composition root (main.py)
and injected into the TransferRepository; nothing here is a global.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from point_transfer.infrastructure.database.orm_models import Base
from point_transfer.logging_config import get_logger

if TYPE_CHECKING:
    from point_transfer.config import Settings

logger = get_logger(__name__)


def create_engine_from_settings(settings: Settings) -> AsyncEngine:
    """Create the async engine. Pool options apply to server databases only."""
    options: dict = {"echo": settings.db_echo_sql, "pool_pre_ping": True}
    if not settings.database_url.startswith("sqlite"):
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_timeout=settings.db_pool_timeout,
        )
    engine = create_async_engine(settings.database_url, **options)
    logger.info(
        "database.engine_created",
        dialect=engine.dialect.name,
        pool_size=settings.db_pool_size,
    )
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create the session factory used by repositories."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_db(engine: AsyncEngine, create_tables: bool) -> None:
    """Create tables if requested. Called during FastAPI's lifespan startup."""
    if create_tables:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("database.tables_created")
    else:
        logger.info("database.skipping_create_all", reason="db_create_tables disabled")


async def ping_db(engine: AsyncEngine) -> None:
    """Run a trivial query. Raises if the database is unreachable."""
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


async def close_db(engine: AsyncEngine) -> None:
    """Dispose of the engine. Called during FastAPI's lifespan shutdown."""
    await engine.dispose()
    logger.info("database.engine_disposed")
