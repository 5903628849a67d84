"""Health check endpoint.

Verifies connectivity to PostgreSQL and Redis, returns structured status.
Redis is optional: without it the service runs, minus submission idempotency.
"""

from __future__ import annotations

from fastapi import APIRouter

from freelance_marketplace.config import get_settings
from freelance_marketplace.infrastructure.database.engine import ping_db
from freelance_marketplace.infrastructure.redis_client import get_redis_or_none
from freelance_marketplace.logging_config import get_logger
from freelance_marketplace.schemas.users import HealthResponse

router = APIRouter(tags=["Health"])
logger = get_logger(__name__)


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Returns the health status of the application and its dependencies.",
)
async def health_check() -> HealthResponse:
    """Check connectivity to PostgreSQL and Redis."""
    try:
        await ping_db()
        db_status = "healthy"
    except Exception as exc:
        db_status = f"unhealthy: {exc}"
        logger.error("health.db_check_failed", error=str(exc))

    redis = get_redis_or_none()
    if redis is None:
        redis_status = "unavailable"
    else:
        try:
            await redis.ping()
            redis_status = "healthy"
        except Exception as exc:
            redis_status = f"unhealthy: {exc}"
            logger.error("health.redis_check_failed", error=str(exc))

    overall = "ok" if db_status == "healthy" and redis_status == "healthy" else "degraded"

    return HealthResponse(
        status=overall,
        version=get_settings().app_version,
        database=db_status,
        redis=redis_status,
    )
