"""Health check endpoint.

Verifies connectivity to the database and Redis, returns structured status.
Used by Docker healthchecks and load balancers.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from point_transfer.api.deps import get_container
from point_transfer.container import AppContainer
from point_transfer.infrastructure.database.engine import ping_db
from point_transfer.logging_config import get_logger
from point_transfer.schemas.transfer import HealthResponse

router = APIRouter(tags=["Health"])
logger = get_logger(__name__)


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Returns the health status of the application and its dependencies.",
)
async def health_check(container: AppContainer = Depends(get_container)) -> HealthResponse:
    """Check connectivity to the database and Redis."""
    db_status = "unknown"
    redis_status = "disabled"

    if container.engine is not None:
        try:
            await ping_db(container.engine)
            db_status = "healthy"
        except Exception as exc:  # noqa: BLE001 - reported in the response
            db_status = f"unhealthy: {exc}"
            logger.error("health.db_check_failed", error=str(exc))

    if container.redis is not None:
        try:
            await container.redis.ping()
            redis_status = "healthy"
        except Exception as exc:  # noqa: BLE001 - reported in the response
            redis_status = f"unhealthy: {exc}"
            logger.error("health.redis_check_failed", error=str(exc))

    overall = "ok" if db_status == "healthy" and redis_status in {"healthy", "disabled"} else "degraded"

    return HealthResponse(
        status=overall,
        version="0.1.0",
        database=db_status,
        redis=redis_status,
    )
