"""Tests for the standalone escalation worker."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from oncall.worker import run_worker


class TestRunWorker:
    """Tests for run_worker."""

    @pytest.mark.asyncio
    async def test_starts_and_stops_scheduler(self):
        redis = MagicMock()
        redis.aclose = AsyncMock()
        scheduler = MagicMock()
        scheduler.interval_seconds = 30
        scheduler.stop = AsyncMock()
        stop_event = asyncio.Event()
        stop_event.set()

        with (
            patch("oncall.worker.get_redis", return_value=redis),
            patch("oncall.worker.build_escalation_scheduler", return_value=scheduler) as build,
            patch("oncall.worker.close_database", new_callable=AsyncMock) as close_db,
        ):
            await run_worker(stop_event)

        build.assert_called_once_with(redis=redis)
        scheduler.start.assert_called_once()
        scheduler.stop.assert_awaited_once()
        redis.aclose.assert_awaited_once()
        close_db.assert_awaited_once()
