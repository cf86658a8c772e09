"""
Health Check Endpoints

- /health/live  - Basic liveness (app is running)
- /health/ready - Readiness check (database, and redis when it backs rate limiting)
"""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from datetime import datetime, timezone
from typing import Dict, Any
import time

from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings
from app.core.logging_config import logger


router = APIRouter(prefix="/health", tags=["Health Checks"])


async def check_database() -> Dict[str, Any]:
    """Check database connectivity"""
    start = time.time()
    try:
        from app.core.database import get_session_local

        session_factory = get_session_local()
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))

        latency = (time.time() - start) * 1000
        return {"status": "healthy", "latency_ms": round(latency, 2)}
    except (SQLAlchemyError, OSError) as e:
        latency = (time.time() - start) * 1000
        logger.error(f"[HealthCheck] Database check failed: {e}")
        return {"status": "unhealthy", "latency_ms": round(latency, 2), "error": str(e)}


def uses_redis() -> bool:
    return settings.RATE_LIMIT_STORAGE_URI.startswith(("redis://", "rediss://"))


async def check_redis() -> Dict[str, Any]:
    """Ping the redis instance backing the rate limiter"""
    start = time.time()
    try:
        import redis.asyncio as redis

        client = redis.from_url(settings.RATE_LIMIT_STORAGE_URI, decode_responses=True)
        try:
            await client.ping()
        finally:
            await client.aclose()

        latency = (time.time() - start) * 1000
        return {"status": "healthy", "latency_ms": round(latency, 2)}
    except (RedisError, OSError) as e:
        latency = (time.time() - start) * 1000
        logger.warning(f"[HealthCheck] Redis check failed: {e}")
        return {"status": "unhealthy", "latency_ms": round(latency, 2), "error": str(e)}


@router.get("/live")
async def liveness():
    """Liveness probe - the process is up"""
    return {"status": "alive", "service": settings.APP_NAME, "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get("/ready")
async def readiness():
    """
    Readiness probe. 503 when the database is unavailable; a redis failure
    is reported but only degrades the status.
    """
    checks = {"database": await check_database()}
    if uses_redis():
        checks["redis"] = await check_redis()

    if checks["database"]["status"] != "healthy":
        overall = "unhealthy"
    elif any(check["status"] != "healthy" for check in checks.values()):
        overall = "degraded"
    else:
        overall = "healthy"

    body = {
        "status": overall,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": checks,
    }
    code = status.HTTP_503_SERVICE_UNAVAILABLE if overall == "unhealthy" else status.HTTP_200_OK
    return JSONResponse(status_code=code, content=body)
