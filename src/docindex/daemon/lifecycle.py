"""Server lifecycle management."""

from __future__ import annotations

import asyncio
import signal
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog
import uvicorn

from docindex.config.models import IndexingConfig, ManagementConfig
from docindex.daemon.scheduler import CronScheduler
from docindex.daemon.startup import reindex_on_startup

if TYPE_CHECKING:
    from docindex.indexing.coordinator import IndexCoordinator

logger = structlog.get_logger()

# Grace period for open HTTP connections after the first shutdown signal
FORCE_EXIT_SEC = 10.0


@dataclass
class ServerController:
    """
    Owns the reindex triggers around one coordinator.

    Components:
    - startup thread: waits for a healthy engine, then applies the startup policy
    - CronScheduler: scheduled reindexing (absent when the schedule is "off")
    - shutdown event: shared by both, so stopping cancels their waits
    """

    coordinator: IndexCoordinator
    indexing_config: IndexingConfig = field(default_factory=IndexingConfig)
    management_config: ManagementConfig = field(default_factory=ManagementConfig)

    scheduler: CronScheduler | None = field(default=None, init=False)
    _shutdown_event: threading.Event = field(default_factory=threading.Event, init=False)
    _startup_thread: threading.Thread | None = field(default=None, init=False)

    def __post_init__(self) -> None:
        scheduled = self.indexing_config.scheduled
        if scheduled.enabled:
            self.scheduler = CronScheduler(
                coordinator=self.coordinator,
                cron=scheduled.cron,
                shutdown_event=self._shutdown_event,
            )

    @property
    def schedule(self) -> str | None:
        return self.scheduler.cron if self.scheduler is not None else None

    def next_scheduled(self) -> str | None:
        if self.scheduler is None or self._shutdown_event.is_set():
            return None
        return self.scheduler.next_fire_time().isoformat()

    async def start(self) -> None:
        """Start the startup trigger and the scheduler."""
        logger.info("server_starting", engine_url=self.coordinator.client.base_url)

        self._startup_thread = threading.Thread(
            target=reindex_on_startup,
            args=(self.coordinator, self.indexing_config.on_startup, self._shutdown_event),
            name="docindex-startup",
            daemon=True,
        )
        self._startup_thread.start()

        if self.scheduler is not None:
            self.scheduler.start()
        else:
            logger.info("scheduler_disabled")

        base_url = f"http://{self.management_config.host}:{self.management_config.port}"
        logger.info("server_started")
        for name in ("health", "status", "reindex"):
            logger.info("endpoint", name=name, url=f"{base_url}/{name}")

    async def stop(self) -> None:
        """Cancel pending waits, then wait for an in-flight reindex.

        Raises:
            IndexingTimeoutError: the in-flight reindex outlasted the
                indexing timeout.
        """
        logger.info("server_stopping")
        self._shutdown_event.set()

        await asyncio.to_thread(
            self.coordinator.wait_for_reindexing_to_finish, self.indexing_config.timeout_sec
        )
        if self.scheduler is not None:
            await asyncio.to_thread(self.scheduler.stop, 1.0)
        logger.info("server_stopped")

    def wait_for_shutdown(self) -> threading.Event:
        """Get the shutdown event for external coordination."""
        return self._shutdown_event


async def run_server(controller: ServerController) -> None:
    """Serve the management app until a shutdown signal, then stop the controller."""
    from docindex.daemon.app import create_app

    config = controller.management_config
    app = create_app(controller)

    uvicorn_config = uvicorn.Config(
        app,
        host=config.host,
        port=config.port,
        log_level="warning",  # Use structlog instead
    )
    server = uvicorn.Server(uvicorn_config)

    # Setup signal handlers with force exit on second signal
    loop = asyncio.get_running_loop()
    shutdown_count = 0
    force_exit_task: asyncio.Task[None] | None = None

    async def force_exit_after_timeout() -> None:
        await asyncio.sleep(FORCE_EXIT_SEC)
        logger.info("forcing_exit_after_timeout")
        server.force_exit = True

    def signal_handler() -> None:
        nonlocal shutdown_count, force_exit_task
        shutdown_count += 1
        logger.info("shutdown_signal_received", count=shutdown_count)
        server.should_exit = True
        if shutdown_count == 1:
            force_exit_task = loop.create_task(force_exit_after_timeout())
        else:
            server.force_exit = True
            if force_exit_task:
                force_exit_task.cancel()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    try:
        await controller.start()
        await server.serve()
    finally:
        await controller.stop()
