"""Health check endpoints.

- /health is plain liveness
- /healthz checks DB and Redis connectivity and reports component status
"""

from typing import Any

import redis.asyncio as redis
from fastapi import APIRouter
from fastapi.responses import JSONResponse, Response
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from backend.docchat.api.deps import AppServices, ServicesDep

router = APIRouter()


async def check_db(services: AppServices) -> tuple[bool, str]:
    """Check database connectivity.

    Returns:
        (is_ok, status_message)
    """
    try:
        async with services.session_factory() as session:
            await session.execute(text("SELECT 1"))
        return (True, "ok")
    except (SQLAlchemyError, OSError) as e:
        return (False, f"error: {type(e).__name__}")


async def check_redis(services: AppServices) -> tuple[bool, str]:
    """Check Redis connectivity.

    Returns:
        (is_ok, status_message)
    """
    redis_url = services.settings.redis_url
    if not redis_url:
        return (True, "not_configured")

    client = redis.from_url(redis_url, decode_responses=True)
    try:
        await client.ping()
        return (True, "ok")
    except (redis.RedisError, OSError) as e:
        return (False, f"error: {type(e).__name__}")
    finally:
        await client.aclose()


@router.get("/health")
async def health() -> dict[str, str]:
    """Simple health check for Docker/k8s.

    Returns:
        200 OK always (application is running)
    """
    return {"status": "ok"}


@router.get("/healthz", response_model=None)
async def healthz(services: ServicesDep) -> dict[str, Any] | Response:
    """Readiness check.

    Returns:
        200 with component status if DB and Redis are reachable
        503 if either fails
    """
    db_ok, db_status = await check_db(services)
    redis_ok, redis_status = await check_redis(services)

    core_ok = db_ok and redis_ok

    response_body = {
        "status": "ok" if core_ok else "degraded",
        "components": {
            "db": db_status,
            "redis": redis_status,
            "llm": type(services.llm).__name__,
        },
    }

    if not core_ok:
        return JSONResponse(content=response_body, status_code=503)

    return response_body
