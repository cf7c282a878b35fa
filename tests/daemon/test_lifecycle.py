"""Tests for daemon/lifecycle.py: ServerController start/stop."""

from __future__ import annotations

import threading
from unittest.mock import MagicMock

import pytest

from docindex.config.models import IndexingConfig, OnStartupConfig, ScheduledConfig
from docindex.core.errors import ErrorCode, IndexingTimeoutError
from docindex.daemon.lifecycle import ServerController
from docindex.daemon.scheduler import CronScheduler


def _indexing(cron: str = "0 0 1 1 *", when: str = "never") -> IndexingConfig:
    return IndexingConfig(
        timeout_sec=1.0,
        on_startup=OnStartupConfig(when=when, wait_interval_sec=0.01),
        scheduled=ScheduledConfig(cron=cron),
    )


class TestServerController:
    """Tests for ServerController."""

    def test_scheduler_shares_shutdown_event(self) -> None:
        controller = ServerController(coordinator=MagicMock(), indexing_config=_indexing())

        assert isinstance(controller.scheduler, CronScheduler)
        assert controller.scheduler.shutdown_event is controller.wait_for_shutdown()
        assert controller.schedule == "0 0 1 1 *"
        assert controller.next_scheduled() is not None

    def test_schedule_off_has_no_scheduler(self) -> None:
        controller = ServerController(coordinator=MagicMock(), indexing_config=_indexing("off"))

        assert controller.scheduler is None
        assert controller.schedule is None
        assert controller.next_scheduled() is None

    @pytest.mark.asyncio
    async def test_start_runs_startup_policy_then_stop_cleans_up(self) -> None:
        # Given
        reindexed = threading.Event()
        coordinator = MagicMock()
        coordinator.client.ping.return_value = True
        coordinator.client.is_healthy.return_value = True
        coordinator.reindex.side_effect = lambda trigger: reindexed.set()
        controller = ServerController(
            coordinator=coordinator, indexing_config=_indexing(when="always")
        )

        # When
        await controller.start()
        assert reindexed.wait(5.0)
        await controller.stop()

        # Then
        coordinator.reindex.assert_called_once_with(trigger="startup")
        coordinator.wait_for_reindexing_to_finish.assert_called_once_with(1.0)
        assert controller.wait_for_shutdown().is_set()
        assert controller.scheduler is not None
        assert controller.scheduler._thread is None
        assert controller.next_scheduled() is None

    @pytest.mark.asyncio
    async def test_stop_cancels_startup_wait(self) -> None:
        coordinator = MagicMock()
        coordinator.client.ping.return_value = False
        controller = ServerController(
            coordinator=coordinator, indexing_config=_indexing("off", when="always")
        )

        await controller.start()
        await controller.stop()

        assert controller._startup_thread is not None
        controller._startup_thread.join(2.0)
        assert not controller._startup_thread.is_alive()
        coordinator.reindex.assert_not_called()

    @pytest.mark.asyncio
    async def test_stop_raises_when_reindex_outlasts_timeout(self) -> None:
        coordinator = MagicMock()
        coordinator.wait_for_reindexing_to_finish.side_effect = (
            IndexingTimeoutError.shutdown_timeout(1.0)
        )
        controller = ServerController(coordinator=coordinator, indexing_config=_indexing("off"))

        await controller.start()
        with pytest.raises(IndexingTimeoutError) as exc_info:
            await controller.stop()

        assert exc_info.value.code == ErrorCode.SHUTDOWN_TIMEOUT
        assert controller.wait_for_shutdown().is_set()
