"""On-call escalation FastAPI application."""

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from redis.exceptions import RedisError

from oncall.config import settings
from oncall.database import close_database
from oncall.logging_config import get_logger, setup_logging
from oncall.middleware import CorrelationIdMiddleware
from oncall.routers import alerts, escalation, health
from oncall.services.ack_channel import get_redis
from oncall.services.scheduler import build_escalation_scheduler

setup_logging(
    log_format=settings.log_format,
    log_level=settings.log_level,
    service_name=settings.service_name,
)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Migrations are applied by `alembic upgrade head` before startup
    app.state.redis = get_redis()
    app.state.escalation_scheduler = None

    if settings.escalation_check_enabled and not settings.testing:
        scheduler = build_escalation_scheduler(redis=app.state.redis)
        scheduler.start()
        app.state.escalation_scheduler = scheduler

    logger.info(
        "On-call API started",
        escalation_enabled=app.state.escalation_scheduler is not None,
    )

    yield

    logger.info("Shutting down on-call API...")
    if app.state.escalation_scheduler is not None:
        await app.state.escalation_scheduler.stop()
    try:
        await app.state.redis.aclose()
    except RedisError as exc:
        logger.warning("Error closing Redis client", error=str(exc))
    await close_database()
    logger.info("On-call API shutdown complete")


app = FastAPI(
    title="On-call Escalation API",
    description="Tiered alert escalation for multi-tenant on-call teams",
    version="0.1.0",
    lifespan=lifespan,
)

# Middleware (order matters: first added = last executed)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(CorrelationIdMiddleware)

app.include_router(health.router)
app.include_router(escalation.router)
app.include_router(alerts.router)


@app.get("/")
async def root() -> dict[str, Any]:
    """Root endpoint."""
    return {
        "name": "On-call Escalation API",
        "version": "0.1.0",
        "docs": "/docs",
    }
