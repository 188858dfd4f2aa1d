"""Background escalation scheduler.

APScheduler drives the escalation engine on a fixed interval, and the
acknowledgment subscriber runs alongside it on its own task.

Lifecycle: STOPPED -> RUNNING -> STOPPING -> STOPPED. Stopping never
interrupts a write: the engine finishes the alert in flight, the tick
returns, and only then is the scheduler considered stopped.
"""

import asyncio
import enum
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from oncall.config import settings
from oncall.logging_config import get_logger
from oncall.services.ack_channel import AckSubscriber
from oncall.services.escalation_engine import EscalationEngine, TickSummary
from oncall.services.escalation_store import TenantDirectory
from oncall.services.notifier import build_notifier

logger = get_logger(__name__)

ESCALATION_JOB_ID = "escalation_check"


class SchedulerState(str, enum.Enum):
    """Lifecycle state of the escalation scheduler."""

    STOPPED = "stopped"
    RUNNING = "running"
    STOPPING = "stopping"


class EscalationScheduler:
    """Runs escalation ticks on an interval and owns the ack subscriber."""

    def __init__(
        self,
        engine: EscalationEngine,
        ack_subscriber: AckSubscriber | None = None,
        interval_seconds: int | None = None,
    ):
        self.engine = engine
        self.ack_subscriber = ack_subscriber
        self.interval_seconds = (
            interval_seconds
            if interval_seconds is not None
            else settings.escalation_check_interval_seconds
        )
        self._scheduler: AsyncIOScheduler | None = None
        self._tick_lock = asyncio.Lock()
        self._state = SchedulerState.STOPPED

    @property
    def state(self) -> SchedulerState:
        return self._state

    async def run_tick(self) -> TickSummary | None:
        """Run one tick unless the scheduler is not running.

        The lock serialises ticks and lets ``stop()`` wait for the one in
        flight.
        """
        if self._state is not SchedulerState.RUNNING:
            return None

        async with self._tick_lock:
            if self._state is not SchedulerState.RUNNING:
                return None
            return await self.engine.tick()

    def start(self) -> None:
        """Schedule ticks and start the ack subscriber.

        Must be called from within a running event loop.
        """
        if self._state is not SchedulerState.STOPPED:
            logger.warning("Escalation scheduler already running", state=self._state.value)
            return

        self.engine.clear_stop()
        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self.run_tick,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            id=ESCALATION_JOB_ID,
            name="Alert Escalation Check",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.start()

        if self.ack_subscriber is not None:
            self.ack_subscriber.start()

        self._state = SchedulerState.RUNNING
        logger.info(
            "Escalation scheduler started",
            interval_seconds=self.interval_seconds,
        )

    async def stop(self) -> None:
        """Stop scheduling and wait for the in-flight tick to finish."""
        if self._state is not SchedulerState.RUNNING:
            return

        self._state = SchedulerState.STOPPING
        self.engine.request_stop()

        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None

        # Wait for a tick that is already running
        async with self._tick_lock:
            pass

        if self.ack_subscriber is not None:
            await self.ack_subscriber.stop()

        self._state = SchedulerState.STOPPED
        logger.info("Escalation scheduler stopped")


def build_escalation_scheduler(
    redis: aioredis.Redis | None = None,
) -> EscalationScheduler:
    """Wire the scheduler with the production collaborators."""
    engine = EscalationEngine(
        tenants=TenantDirectory(),
        notifier=build_notifier(),
        redis=redis,
    )
    ack_subscriber = AckSubscriber(redis) if redis is not None else None
    return EscalationScheduler(engine, ack_subscriber=ack_subscriber)


@asynccontextmanager
async def scheduler_lifespan(
    scheduler: EscalationScheduler,
) -> AsyncGenerator[EscalationScheduler, None]:
    """Async context manager for scheduler lifecycle."""
    scheduler.start()
    try:
        yield scheduler
    finally:
        await scheduler.stop()
