"""
Menu Service Backend: Health Check Routes
==========================================

What:  Liveness and readiness endpoints.

    GET /api      {"status": "OK", "message": ...}  (always registered)
    GET /         same payload; only registered when no frontend bundle is
                  served, since the bundle owns "/" otherwise
    GET /health   readiness with a database probe, for container health checks

Status levels for /health:
    - healthy:   store reachable (HTTP 200)
    - unhealthy: store unreachable (HTTP 503)
"""

import logging
import time

from fastapi import APIRouter, Depends, Response

from menu_service import __version__
from menu_service.schemas.menu import HealthResponse, StatusResponse
from menu_service.services.menu_service import MenuService, get_menu_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])
root_router = APIRouter(tags=["Health"])

_start_time = time.time()

STATUS_MESSAGE = "Menu service backend is running"


@router.get("/api", response_model=StatusResponse, summary="Liveness check")
async def api_status() -> StatusResponse:
    return StatusResponse(status="OK", message=STATUS_MESSAGE)


@root_router.get("/", response_model=StatusResponse, summary="Liveness check")
async def root_status() -> StatusResponse:
    return StatusResponse(status="OK", message=STATUS_MESSAGE)


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    description="Probes the database with SELECT 1 and reports uptime.",
)
async def health_check(
    response: Response,
    service: MenuService = Depends(get_menu_service),
) -> HealthResponse:
    db_ok = await service.store.ping()
    if not db_ok:
        response.status_code = 503
        logger.warning("Health check: database unreachable")

    return HealthResponse(
        status="healthy" if db_ok else "unhealthy",
        version=__version__,
        database="connected" if db_ok else "disconnected",
        inline_images=service.inline_images,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
