"""Health check and metrics endpoints for container orchestration."""

from typing import Any

from fastapi import APIRouter, Request, Response, status
from fastapi.responses import JSONResponse

from oncall.config import settings
from oncall.core.metrics import render_latest
from oncall.database import check_database_connection

router = APIRouter(tags=["Health"])


def _escalation_state(request: Request) -> str:
    scheduler = getattr(request.app.state, "escalation_scheduler", None)
    if scheduler is None:
        return "disabled"
    return scheduler.state.value


@router.get("/health", response_model=None)
async def health_check(request: Request) -> Response:
    """Health check with database and escalation worker status.

    Returns 200 with ``status: healthy`` when the database is reachable,
    503 with ``status: degraded`` otherwise.
    """
    db_connected = await check_database_connection()
    content = {
        "status": "healthy" if db_connected else "degraded",
        "database": "connected" if db_connected else "disconnected",
        "escalation_engine": _escalation_state(request),
    }
    return JSONResponse(
        status_code=status.HTTP_200_OK if db_connected else status.HTTP_503_SERVICE_UNAVAILABLE,
        content=content,
    )


@router.get("/health/live")
async def liveness_probe() -> dict[str, Any]:
    """Kubernetes liveness probe.

    Returns success if the process is running. Does not check external
    dependencies.
    """
    return {"status": "alive"}


@router.get("/health/ready", response_model=None)
async def readiness_probe() -> Response:
    """Kubernetes readiness probe (database connectivity)."""
    db_connected = await check_database_connection()

    if db_connected:
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content={"status": "ready", "database": "connected"},
        )
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "not_ready", "database": "disconnected"},
    )


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    """Prometheus metrics exposition."""
    if not settings.metrics_enabled:
        return Response(status_code=status.HTTP_404_NOT_FOUND)
    body, content_type = render_latest()
    return Response(content=body, media_type=content_type)
