"""Cron-driven reindex trigger."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

import structlog
from croniter import croniter

from docindex.core.errors import DocIndexError, ReindexInProgressError

if TYPE_CHECKING:
    from docindex.indexing.coordinator import IndexCoordinator

logger = structlog.get_logger()


@dataclass
class CronScheduler:
    """Calls ``coordinator.reindex()`` on a cron schedule, on its own thread.

    Each fire time is computed from the current time, so a run that outlasts
    several slots does not queue catch-up runs. Sleeping is done on the shared
    shutdown event, which makes ``stop()`` immediate.
    """

    coordinator: IndexCoordinator
    cron: str
    shutdown_event: threading.Event = field(default_factory=threading.Event)

    _thread: threading.Thread | None = field(default=None, init=False)

    def next_fire_time(self, now: datetime | None = None) -> datetime:
        base = now or datetime.now().astimezone()
        return croniter(self.cron, base).get_next(datetime)

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(
            target=self._loop, name="docindex-scheduler", daemon=True
        )
        self._thread.start()
        logger.info("scheduler_started", cron=self.cron, next=self.next_fire_time().isoformat())

    def stop(self, timeout: float | None = None) -> None:
        self.shutdown_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _loop(self) -> None:
        while not self.shutdown_event.is_set():
            now = datetime.now().astimezone()
            delay = (self.next_fire_time(now) - now).total_seconds()
            if self.shutdown_event.wait(max(delay, 0.0)):
                break
            self.fire()
        logger.debug("scheduler_stopped")

    def fire(self) -> None:
        """Run one scheduled reindex. Never raises."""
        try:
            self.coordinator.reindex(trigger="scheduled")
        except ReindexInProgressError as e:
            logger.info("scheduled_reindex_skipped", reason=e.message)
        except DocIndexError as e:
            logger.error("scheduled_reindex_failed", error=str(e))
        except Exception as e:
            logger.error("scheduled_reindex_failed", error=str(e), exc_info=True)
