"""Standalone escalation worker.

Runs the escalation scheduler and the acknowledgment subscriber without the
HTTP API, for deployments that split the worker from the web tier.
"""

import asyncio
import signal

from redis.exceptions import RedisError

from oncall.config import settings
from oncall.database import close_database
from oncall.logging_config import get_logger, setup_logging
from oncall.services.ack_channel import get_redis
from oncall.services.scheduler import build_escalation_scheduler, scheduler_lifespan

logger = get_logger(__name__)


async def run_worker(stop_event: asyncio.Event | None = None) -> None:
    """Run until ``stop_event`` is set (SIGINT/SIGTERM by default)."""
    stop_event = stop_event or asyncio.Event()
    loop = asyncio.get_running_loop()
    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
            installed.append(sig)
        except NotImplementedError:
            # Signal handlers are unavailable on some platforms
            pass

    redis = get_redis()
    scheduler = build_escalation_scheduler(redis=redis)
    try:
        async with scheduler_lifespan(scheduler):
            logger.info(
                "Escalation worker running",
                interval_seconds=scheduler.interval_seconds,
            )
            await stop_event.wait()
            logger.info("Escalation worker stopping")
    finally:
        try:
            await redis.aclose()
        except RedisError as exc:
            logger.warning("Error closing Redis client", error=str(exc))
        await close_database()
        for sig in installed:
            loop.remove_signal_handler(sig)
        logger.info("Escalation worker stopped")


def main() -> None:
    setup_logging(
        log_format=settings.log_format,
        log_level=settings.log_level,
        service_name=f"{settings.service_name}-worker",
    )
    asyncio.run(run_worker())


if __name__ == "__main__":
    main()
