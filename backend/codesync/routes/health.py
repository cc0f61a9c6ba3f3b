"""
CodeSync Backend — Health Check Route
======================================

What:  Health check endpoint for monitoring and load balancer probes.
How:   Runs `SELECT 1` against the database and reports which optional
       integrations are configured.

Status levels:
    - healthy:   database reachable, image host configured (HTTP 200)
    - degraded:  database reachable, image host unconfigured; avatar uploads
                 fail with 503 but everything else works (HTTP 200)
    - unhealthy: database unreachable (HTTP 503)
"""

import logging
import time

from fastapi import APIRouter, Response
from sqlalchemy import text

from codesync import __version__
from codesync.database import engine
from codesync.schemas.common import HealthResponse
from codesync.services.cache_service import cache_service
from codesync.services.image_service import image_service
from codesync.services.oauth_service import oauth_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    description="Reports database connectivity and the state of optional integrations.",
)
async def health_check(response: Response) -> HealthResponse:
    db_status = "connected"
    overall = "healthy"

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", e)

    image_host = "configured" if image_service.configured else "unconfigured"
    if image_host == "unconfigured" and overall == "healthy":
        overall = "degraded"

    if overall == "unhealthy":
        response.status_code = 503

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        image_host=image_host,
        cache=cache_service.status,
        oauth_providers=oauth_service.enabled_providers(),
        uptime_seconds=round(time.time() - _start_time, 2),
    )
