"""Bounded-parallel batch indexing.

Documents are pulled from a source in fixed-size batches and handed to a
fixed-size thread pool. Submission blocks while the pool is saturated, so a
large source never piles up in memory. The first failing batch stops the run.
"""

from __future__ import annotations

import contextvars
import threading
from collections.abc import Callable, Iterable
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from functools import partial
from itertools import islice
from typing import TYPE_CHECKING

import structlog

from docindex.core.errors import IndexingTimeoutError

if TYPE_CHECKING:
    from docindex.config.models import IndexingConfig
    from docindex.indexing.documents import Document, DocumentSink

logger = structlog.get_logger()


class BatchExecutor:
    """Thread pool with blocking submission and first-failure semantics.

    - ``submit`` blocks while ``parallelism`` tasks are in flight
    - once a task fails, ``submit`` re-raises that failure instead of scheduling
    - ``wait_for_success_or_raise`` re-raises the first failure, or raises
      ``IndexingTimeoutError`` when the work does not drain in time

    Not reusable: create one per run and close it (or use it as a context
    manager). Closing drops queued tasks but waits for running ones, so no
    task is still writing once the executor has been left.
    """

    def __init__(
        self,
        parallelism: int,
        *,
        submit_timeout: float | None = None,
        thread_name_prefix: str = "docindex-indexer",
    ) -> None:
        self._pool = ThreadPoolExecutor(
            max_workers=parallelism, thread_name_prefix=thread_name_prefix
        )
        self._slots = threading.BoundedSemaphore(parallelism)
        self._submit_timeout = submit_timeout
        self._futures: list[Future[None]] = []
        self._failure: BaseException | None = None
        self._failure_lock = threading.Lock()

    def submit(self, task: Callable[[], None]) -> None:
        self._raise_if_failed()
        if not self._slots.acquire(timeout=self._submit_timeout):
            raise IndexingTimeoutError.submit_timeout(self._submit_timeout or 0.0)
        if self._failure is not None:
            self._slots.release()
            self._raise_if_failed()

        # Workers log with the submitting thread's context (run_id, origin)
        context = contextvars.copy_context()
        try:
            future = self._pool.submit(context.run, self._run, task)
        except BaseException:
            self._slots.release()
            raise
        self._futures.append(future)

    def _run(self, task: Callable[[], None]) -> None:
        try:
            task()
        except BaseException as e:
            with self._failure_lock:
                if self._failure is None:
                    self._failure = e
            raise
        finally:
            self._slots.release()

    def _raise_if_failed(self) -> None:
        if self._failure is not None:
            raise self._failure

    @property
    def pending(self) -> int:
        return sum(1 for future in self._futures if not future.done())

    def wait_for_success_or_raise(self, timeout: float) -> None:
        """Wait for every submitted task, or for the first failure, or for ``timeout``."""
        _, not_done = wait(self._futures, timeout=timeout, return_when=FIRST_EXCEPTION)
        if self._failure is not None:
            self.close()
            raise self._failure
        if not_done:
            logger.error("indexing_drain_timeout", timeout_sec=timeout, pending=len(not_done))
            self.close()
            raise IndexingTimeoutError.drain_timeout(timeout, len(not_done))

    def close(self) -> None:
        """Cancel tasks that have not started and wait for the running ones.

        A running batch cannot be interrupted; each of its engine requests is
        bounded by the client timeout.
        """
        self._pool.shutdown(wait=True, cancel_futures=True)

    def __enter__(self) -> BatchExecutor:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class _Counter:
    """Running document count shared by the worker threads."""

    def __init__(self) -> None:
        self._value = 0
        self._lock = threading.Lock()

    def add(self, n: int) -> int:
        with self._lock:
            self._value += n
            return self._value

    @property
    def value(self) -> int:
        with self._lock:
            return self._value


class BatchIndexer:
    """Drains documents into a sink, ``batch_size`` at a time, ``parallelism`` at once."""

    def __init__(self, *, batch_size: int, parallelism: int, timeout_sec: float) -> None:
        self.batch_size = batch_size
        self.parallelism = parallelism
        self.timeout_sec = timeout_sec

    @classmethod
    def from_config(cls, config: IndexingConfig) -> BatchIndexer:
        return cls(
            batch_size=config.batch_size,
            parallelism=config.parallelism,
            timeout_sec=config.timeout_sec,
        )

    def index(self, documents: Iterable[Document], sink: DocumentSink) -> int:
        """Persist every document; returns how many were persisted.

        Raises the first batch failure, or ``IndexingTimeoutError``.
        """
        counter = _Counter()
        iterator = iter(documents)
        with BatchExecutor(self.parallelism, submit_timeout=self.timeout_sec) as executor:
            while batch := list(islice(iterator, self.batch_size)):
                executor.submit(partial(_index_batch, sink, batch, counter))
            executor.wait_for_success_or_raise(self.timeout_sec)
        logger.info("documents_indexed_total", count=counter.value)
        return counter.value


def _index_batch(sink: DocumentSink, batch: list[Document], counter: _Counter) -> None:
    for document in batch:
        logger.debug("about_to_index", document_id=document.id, index=document.index)
    sink.persist(batch)
    # Concurrent batches may log out of order; the count itself only grows
    logger.info("documents_indexed", count=counter.add(len(batch)))
