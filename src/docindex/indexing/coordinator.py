"""Reindex orchestration.

One reindex run:

1. make sure every logical index exists (recovering half-swapped aliases once
   if creation fails)
2. start a rollover, so writes go to fresh shadow indexes
3. push every source through the batch indexer
4. refresh, then commit the rollover, so readers switch atomically
5. notify listeners that cached search results are stale

Any failure leaves the rollover uncommitted, which rolls it back: readers keep
seeing the previous indexes throughout.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterator
from contextlib import closing, contextmanager
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog

from docindex.core.errors import (
    DocIndexError,
    IndexCreationError,
    IndexingError,
    IndexingTimeoutError,
    ReindexInProgressError,
    RolloverError,
)
from docindex.core.logging import run_context, source_context
from docindex.engine.models import LogicalIndex
from docindex.engine.schema import SchemaManager
from docindex.indexing.batch import BatchIndexer
from docindex.indexing.failures import FailureCollector, Stage
from docindex.indexing.rollover import Rollover, recover_inconsistent_aliases
from docindex.indexing.sinks import EngineDocumentSink
from docindex.indexing.sources import build_source_factories

if TYPE_CHECKING:
    import httpx

    from docindex.config.models import DocIndexConfig, ErrorReportingConfig, IndexingConfig
    from docindex.engine.client import SearchEngineClient
    from docindex.indexing.documents import DocumentSink
    from docindex.indexing.sources import SourceFactory

logger = structlog.get_logger()


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass
class RunSummary:
    """Outcome of one reindex run. ``success`` is None while the run is in flight."""

    run_id: str
    trigger: str
    started_at: datetime
    finished_at: datetime | None = None
    success: bool | None = None
    documents_indexed: int = 0
    error: str | None = None
    failures: list[dict[str, Any]] = field(default_factory=list)

    @property
    def duration_sec(self) -> float | None:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["started_at"] = self.started_at.isoformat()
        data["finished_at"] = self.finished_at.isoformat() if self.finished_at else None
        data["duration_sec"] = self.duration_sec
        return data


class IndexCoordinator:
    """Runs reindexing, at most one run at a time.

    Triggers (startup, schedule, management endpoint) all call ``reindex()``;
    a call made while a run is in flight fails fast with
    ``ReindexInProgressError`` and has no other effect.
    """

    def __init__(
        self,
        client: SearchEngineClient,
        indexes: list[LogicalIndex],
        sources: list[SourceFactory],
        sink: DocumentSink,
        indexing: IndexingConfig,
        *,
        error_reporting: ErrorReportingConfig | None = None,
    ) -> None:
        self.client = client
        self.indexes = indexes
        self.schema = SchemaManager(client, indexes)
        self.timeout_sec = indexing.timeout_sec
        self._sources = sources
        self._sink = sink
        self._indexer = BatchIndexer.from_config(indexing)
        self._error_reporting = error_reporting
        self._lock = threading.Lock()
        self._idle = threading.Event()
        self._idle.set()
        self._commit_listeners: list[Callable[[], None]] = []
        self.last_run: RunSummary | None = None

    @classmethod
    def from_config(
        cls,
        config: DocIndexConfig,
        client: SearchEngineClient,
        *,
        source_transport: httpx.BaseTransport | None = None,
    ) -> IndexCoordinator:
        """Wire a coordinator for the configured indexes and sources."""
        indexes = [LogicalIndex.from_config(definition) for definition in config.indexes]
        sources = build_source_factories(
            config.sources,
            timeout=config.engine.request_timeout_sec,
            transport=source_transport,
        )
        return cls(
            client,
            indexes,
            sources,
            EngineDocumentSink(client, indexes),
            config.indexing,
            error_reporting=config.error_reporting,
        )

    @property
    def in_progress(self) -> bool:
        return self._lock.locked()

    def on_committed(self, callback: Callable[[], None]) -> None:
        """Register a callback run after each successful commit (e.g. cache invalidation)."""
        self._commit_listeners.append(callback)

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        if not self._lock.acquire(blocking=False):
            raise ReindexInProgressError.create()
        self._idle.clear()
        try:
            yield
        finally:
            self._idle.set()
            self._lock.release()

    # -----------------------------------------------------------------
    # Runs
    # -----------------------------------------------------------------

    def reindex(self, trigger: str = "manual") -> RunSummary:
        """Rebuild every index from every source and publish atomically.

        Raises:
            ReindexInProgressError: another run is in flight.
            DocIndexError: the run failed; the previous indexes stay live.
        """
        with self._exclusive(), run_context(trigger) as run_id:
            summary = RunSummary(run_id=run_id, trigger=trigger, started_at=_now())
            self.last_run = summary
            failures = FailureCollector(self._error_reporting)
            logger.info("reindex_started")
            try:
                with failures:
                    try:
                        summary.documents_indexed = self._run(failures)
                    except Exception as e:
                        error = e if isinstance(e, DocIndexError) else IndexingError.failed(str(e))
                        summary.error = str(error)
                        failures.critical(Stage.INDEXING, str(error), e)
                        logger.error("reindex_failed", error=str(error))
                        if error is e:
                            raise
                        raise error from e
                summary.success = True
                logger.info(
                    "reindex_succeeded",
                    documents=summary.documents_indexed,
                    duration_sec=round((_now() - summary.started_at).total_seconds(), 3),
                )
            finally:
                summary.finished_at = _now()
                summary.success = bool(summary.success)
                summary.failures = [record.to_dict() for record in failures.records]
        return summary

    def recover(self) -> bool:
        """Run alias recovery on its own, outside of a reindex."""
        with self._exclusive():
            return recover_inconsistent_aliases(self.client, self.indexes)

    def wait_for_reindexing_to_finish(self, timeout: float | None = None) -> None:
        """Block until no run is in flight.

        Raises:
            IndexingTimeoutError: a run is still in flight after ``timeout``
                (defaults to the indexing timeout).
        """
        timeout = self.timeout_sec if timeout is None else timeout
        if self._idle.wait(timeout):
            return
        logger.error("reindex_still_running_at_shutdown", timeout_sec=timeout)
        raise IndexingTimeoutError.shutdown_timeout(timeout)

    def _run(self, failures: FailureCollector) -> int:
        self._create_indexes()
        with Rollover.start(self.client, self.indexes) as rollover:
            total = self._index_all(failures)
            self.schema.refresh()
            rollover.commit()
        self._notify_committed()
        return total

    def _create_indexes(self) -> None:
        try:
            self.schema.create_if_missing()
            return
        except DocIndexError as e:
            logger.warning("index_creation_failed_attempting_recovery", error=str(e))
            first_error = e

        try:
            recovered = recover_inconsistent_aliases(self.client, self.indexes)
        except RolloverError as e:
            error = IndexCreationError.failed(str(first_error))
            error.add_note(f"Recovering index aliases also failed: {e}")
            raise error from first_error
        if not recovered:
            raise IndexCreationError.failed(str(first_error)) from first_error
        try:
            self.schema.create_if_missing()
        except DocIndexError as e:
            raise IndexCreationError.failed(str(e)) from e

    def _index_all(self, failures: FailureCollector) -> int:
        total = 0
        for make_source in self._sources:
            with closing(make_source(failures)) as source, source_context(source.origin):
                logger.info("indexing_source")
                count = self._indexer.index(source.guides(), self._sink)
                logger.info("source_indexed", documents=count)
                total += count
        return total

    def _notify_committed(self) -> None:
        for callback in self._commit_listeners:
            try:
                callback()
            except Exception as e:
                logger.error("commit_listener_failed", callback=repr(callback), error=str(e))
