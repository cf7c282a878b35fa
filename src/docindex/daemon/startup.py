"""Startup reindex trigger."""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import TYPE_CHECKING

import structlog

from docindex.core.errors import DocIndexError, ReindexInProgressError

if TYPE_CHECKING:
    from docindex.config.models import OnStartupConfig
    from docindex.indexing.coordinator import IndexCoordinator

logger = structlog.get_logger()


def wait_forever_for(
    check: Callable[[], bool],
    *,
    interval: float,
    shutdown_event: threading.Event,
    waiting_event: str,
) -> bool:
    """Poll ``check`` every ``interval`` seconds until it passes.

    There is no deadline; only ``shutdown_event`` ends the wait early.

    Returns:
        True once ``check`` passed, False if shutdown was requested first.
    """
    while not check():
        logger.info(waiting_event, retry_in_sec=interval)
        if shutdown_event.wait(interval):
            return False
    return True


def reindex_on_startup(
    coordinator: IndexCoordinator,
    config: OnStartupConfig,
    shutdown_event: threading.Event,
) -> None:
    """Apply the startup policy: wait for a healthy engine, then maybe reindex.

    Never raises; meant to run on its own thread.
    """
    if config.when == "never":
        logger.debug("startup_reindex_disabled")
        return

    client = coordinator.client
    for check, event in (
        (client.ping, "waiting_for_engine"),
        (client.is_healthy, "waiting_for_engine_health"),
    ):
        if not wait_forever_for(
            check,
            interval=config.wait_interval_sec,
            shutdown_event=shutdown_event,
            waiting_event=event,
        ):
            logger.info("startup_reindex_cancelled")
            return

    if config.when == "indexes_empty":
        try:
            documents = coordinator.schema.count_documents()
        except DocIndexError as e:
            # Missing indexes or aliases count as empty
            logger.info("startup_document_count_failed", error=str(e))
        else:
            if documents > 0:
                logger.info("startup_reindex_skipped", documents=documents)
                return

    try:
        coordinator.reindex(trigger="startup")
    except ReindexInProgressError as e:
        logger.info("startup_reindex_skipped", reason=e.message)
    except Exception as e:
        logger.error("startup_reindex_failed", error=str(e))
