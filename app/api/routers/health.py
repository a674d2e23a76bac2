"""
Health check endpoints for monitoring and orchestration (K8s, Docker, etc.)

Provides multiple health check endpoints:
- /health: Basic liveness check (always returns 200)
- /health/live: Alias of /health
- /health/ready: Readiness check (database reachable when running in SQL mode)
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_session

logger = logging.getLogger(__name__)

router = APIRouter()

SERVICE_NAME = "reservation-lifecycle"


@router.get("/health")
async def health_check():
    """
    Basic liveness check.

    Returns 200 OK if the application is running.
    """
    return {"status": "ok", "service": SERVICE_NAME}


@router.get("/health/live")
async def health_check_live():
    return {"status": "ok", "service": SERVICE_NAME}


@router.get("/health/ready")
async def health_check_ready(session: AsyncSession | None = Depends(get_session)):
    """
    Readiness check.

    Returns 503 if the database does not answer. In in-memory mode there is
    nothing external to check.
    """
    health_status = {"status": "ready", "checks": {}}

    if session is None:
        health_status["checks"]["database"] = "in_memory"
        return health_status

    try:
        result = await session.execute(text("SELECT 1"))
        result.scalar()
        health_status["checks"]["database"] = "healthy"
    except Exception as e:
        logger.error("Readiness check: Database unhealthy", exc_info=e)
        health_status["status"] = "not_ready"
        health_status["checks"]["database"] = "unhealthy"
        return JSONResponse(status_code=503, content=health_status)

    return health_status
