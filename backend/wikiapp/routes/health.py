"""
Wiki Backend: Health Check Routes
=================================

What:  Liveness and health endpoints for process supervisors and probes.
How:   /alive answers without touching any dependency; /health makes one
       Database Service round trip (all-pages) through the bus, which
       exercises the consumer, the store and the connection pool together.
Who:   Called by container health checks and load balancers.

Status levels:
    - healthy:   the Database Service answered (HTTP 200)
    - unhealthy: the Database Service failed or timed out (HTTP 503)
"""

import logging
import time

from fastapi import APIRouter, Depends, Response
from fastapi.responses import PlainTextResponse

from wikiapp import __version__
from wikiapp.exceptions import ReplyError
from wikiapp.routes.deps import get_wiki_service
from wikiapp.schemas.page import HealthResponse
from wikiapp.services.service_base import WikiDatabaseService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

# Track when the service started for uptime reporting
_start_time = time.time()


@router.get("/alive", response_class=PlainTextResponse, summary="Liveness probe")
async def alive() -> str:
    return "Alive"


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    description="Returns the health of the backend and of its Database Service.",
)
async def health_check(
    response: Response,
    service: WikiDatabaseService = Depends(get_wiki_service),
) -> HealthResponse:
    db_status = "connected"
    overall = "healthy"

    try:
        await service.fetch_all_pages()
    except ReplyError as e:
        db_status = "disconnected"
        overall = "unhealthy"
        response.status_code = 503
        logger.warning("Health check: Database Service unavailable: %s", e.message)

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
