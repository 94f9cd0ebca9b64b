"""Simple health and readiness endpoints."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, status
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from musivault.core.config import get_settings
from musivault.db.session import engine
from musivault.utils.redis_client import create_redis_client

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/health", tags=["health"])

SERVICE_NAME = "musivault-api"


@router.get("/live", summary="Liveness check")
async def live() -> dict[str, str]:
    """Indicates API process is running."""
    return {"status": "ok", "service": SERVICE_NAME}


def _check_redis(url: str) -> None:
    client = create_redis_client(url, decode_responses=True, socket_connect_timeout=2)
    try:
        client.ping()
    finally:
        client.close()


@router.get("/ready", summary="Readiness check")
async def ready() -> dict[str, Any]:
    """Check readiness of dependencies (database, Redis, Celery broker).

    The Discogs credentials are reported but never fail readiness: without them
    imports still run and every row fails with a lookup error.
    """
    settings = get_settings()
    checks: dict[str, Any] = {
        "status": "ok",
        "service": SERVICE_NAME,
        "checks": {},
    }
    all_healthy = True

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
        checks["checks"]["database"] = {
            "status": "healthy",
            "message": "Database connection successful",
        }
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}", exc_info=True)
        checks["checks"]["database"] = {
            "status": "unhealthy",
            "message": f"Database connection failed: {str(e)}",
        }
        all_healthy = False

    try:
        _check_redis(settings.redis_url)
        checks["checks"]["redis"] = {
            "status": "healthy",
            "message": "Redis connection successful",
        }
    except RedisError as e:
        logger.error(f"Redis health check failed: {e}", exc_info=True)
        checks["checks"]["redis"] = {
            "status": "unhealthy",
            "message": f"Redis connection failed: {str(e)}",
        }
        all_healthy = False

    broker_url = settings.celery_broker_url or settings.redis_url
    try:
        _check_redis(broker_url)
        checks["checks"]["celery_broker"] = {
            "status": "healthy",
            "message": "Celery broker connection successful",
        }
    except RedisError as e:
        # Don't fail readiness for Celery broker issues (worker might be separate)
        logger.warning(f"Celery broker health check failed: {e}")
        checks["checks"]["celery_broker"] = {
            "status": "unhealthy",
            "message": f"Celery broker connection failed: {str(e)}",
        }

    checks["checks"]["discogs"] = {
        "status": "configured" if settings.has_discogs_credentials else "missing_credentials",
    }

    if not all_healthy:
        checks["status"] = "unhealthy"
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=checks,
        )

    return checks
