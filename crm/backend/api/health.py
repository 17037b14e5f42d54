"""
Health Check Endpoints.

- /health: Liveness check (process running)
- /health/ready: Readiness check (database and Redis reachable)
"""

import asyncio
from typing import Any

from fastapi import APIRouter, HTTPException
from sqlalchemy import text

from crm.backend.core.config import get_app_config, get_redis_url
from crm.backend.core.database import get_session_factory
from crm.backend.core.logging import get_logger
from crm.backend.core.utils import utc_now

router = APIRouter()
logger = get_logger(__name__)


async def check_database() -> dict[str, Any]:
    """Run ``SELECT 1`` and report the latency."""
    try:
        start = utc_now()
        async with get_session_factory()() as session:
            await session.execute(text("SELECT 1"))
        latency_ms = int((utc_now() - start).total_seconds() * 1000)
        return {"status": "healthy", "latency_ms": latency_ms}
    except Exception as e:
        logger.warning("Database health check failed", extra={"error": str(e)})
        return {"status": "unhealthy", "error": str(e)}


async def check_redis() -> dict[str, Any]:
    """Ping the broker's Redis."""
    import redis.asyncio as redis

    try:
        start = utc_now()
        client = redis.from_url(get_redis_url())
        try:
            await client.ping()
        finally:
            await client.aclose()
        latency_ms = int((utc_now() - start).total_seconds() * 1000)
        return {"status": "healthy", "latency_ms": latency_ms}
    except Exception as e:
        logger.warning("Redis health check failed", extra={"error": str(e)})
        return {"status": "unhealthy", "error": str(e)}


@router.get("/health")
async def health_check() -> dict[str, str]:
    """
    Liveness check.

    No dependency checks; this endpoint should always respond quickly.
    """
    return {"status": "healthy"}


@router.get("/health/ready")
async def readiness_check() -> dict[str, Any]:
    """
    Readiness check.

    Checks the database and Redis in parallel. Returns 503 if either is
    unhealthy.
    """
    timeout = get_app_config().application.timeouts.database

    db_result: dict[str, Any] = {"status": "error", "error": "check did not run"}
    redis_result: dict[str, Any] = {"status": "error", "error": "check did not run"}

    try:
        async with asyncio.timeout(timeout):
            async with asyncio.TaskGroup() as tg:
                db_task = tg.create_task(check_database())
                redis_task = tg.create_task(check_redis())
            db_result = db_task.result()
            redis_result = redis_task.result()
    except* Exception as eg:
        for exc in eg.exceptions:
            logger.warning("Health check task failed", extra={"error": str(exc)})

    checks = {"database": db_result, "redis": redis_result}
    unhealthy = [name for name, check in checks.items() if check.get("status") != "healthy"]

    if unhealthy:
        logger.warning("Readiness check failed", extra={"unhealthy": unhealthy, "checks": checks})
        raise HTTPException(
            status_code=503,
            detail={"status": "unhealthy", "checks": checks, "timestamp": utc_now().isoformat()},
        )

    return {"status": "healthy", "checks": checks, "timestamp": utc_now().isoformat()}
