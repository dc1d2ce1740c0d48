"""
OurPortfolio Backend — Health Check Routes
===========================================

What:  Liveness/health and readiness endpoints for monitors and load balancers.
How:   /health checks the database and reports the tech-stack index state.
       /health/ready answers 503 until the index has been built, so traffic
       is held back until autocomplete can answer from a warm index.

Status levels (/health):
    - healthy:   database reachable and index ready (HTTP 200)
    - degraded:  index not ready yet (HTTP 200, flag for monitoring)
    - unhealthy: database unreachable (HTTP 200 body, monitors alert on status)
"""

import logging
import time

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text

from ourportfolio import __version__
from ourportfolio.database import engine
from ourportfolio.schemas.common import HealthResponse
from ourportfolio.services.index_sync import tech_stack_index

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check() -> HealthResponse:
    """
    Check the database and the index.

    Database: SELECT 1 on a pooled connection.
    Index:    readiness flag and keyword count (no lock contention beyond a len()).
    """
    db_status = "connected"
    overall = "healthy"

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    index_status = "ready" if tech_stack_index.ready else "warming"
    if index_status != "ready" and overall == "healthy":
        overall = "degraded"

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        index=index_status,
        indexed_keywords=len(tech_stack_index.index),
        uptime_seconds=round(time.time() - _start_time, 2),
    )


@router.get(
    "/health/ready",
    summary="Readiness check",
    responses={503: {"description": "Index not built yet"}},
)
async def readiness() -> JSONResponse:
    if not tech_stack_index.ready:
        return JSONResponse(status_code=503, content={"ready": False})
    return JSONResponse(status_code=200, content={"ready": True})
