"""Per-run failure aggregation.

Sources record recoverable problems here instead of raising, so one broken
page or one unreachable site does not abort the whole reindex. The collector
only records and reports; whether the run failed is decided by whether an
exception reached the coordinator.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog

from docindex.config.models import ErrorReportingConfig

logger = structlog.get_logger()


class Stage(Enum):
    """Where in the pipeline a failure happened."""

    FETCHING = "fetching"
    PARSING = "parsing"
    INDEXING = "indexing"


class Severity(Enum):
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass(frozen=True)
class FailureRecord:
    """One recorded failure. Severity is fixed at creation."""

    stage: Stage
    severity: Severity
    message: str
    cause: BaseException | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage": self.stage.value,
            "severity": self.severity.value,
            "message": self.message,
            "cause": str(self.cause) if self.cause is not None else None,
        }


class FailureCollector:
    """Thread-safe, insertion-ordered collection of failures for one reindex run.

    Use as a context manager: records are reported when the block exits, and
    remain readable afterwards.

    A CRITICAL failure at FETCHING/PARSING means the reporting source gave up
    and contributes nothing; other sources carry on. A CRITICAL failure at
    INDEXING is recorded by the coordinator just before it re-raises.
    """

    def __init__(self, config: ErrorReportingConfig | None = None) -> None:
        self._config = config or ErrorReportingConfig()
        self._records: list[FailureRecord] = []
        self._lock = threading.Lock()
        self._closed = False

    def warning(self, stage: Stage, message: str, cause: BaseException | None = None) -> None:
        """Record a non-fatal issue; the run continues."""
        logger.warning("indexing_warning", stage=stage.value, message=message, cause=_cause(cause))
        self._add(FailureRecord(stage, Severity.WARNING, message, cause))

    def critical(self, stage: Stage, message: str, cause: BaseException | None = None) -> None:
        """Record a fatal issue for the caller's scope (one source, or the whole run)."""
        logger.error("indexing_critical", stage=stage.value, message=message, cause=_cause(cause))
        self._add(FailureRecord(stage, Severity.CRITICAL, message, cause))

    def _add(self, record: FailureRecord) -> None:
        with self._lock:
            self._records.append(record)

    @property
    def records(self) -> list[FailureRecord]:
        with self._lock:
            return list(self._records)

    @property
    def has_critical(self) -> bool:
        return any(r.severity is Severity.CRITICAL for r in self.records)

    def count(self, severity: Severity) -> int:
        return sum(1 for r in self.records if r.severity is severity)

    def report(self) -> None:
        """Report the accumulated failures through the configured channel."""
        records = self.records
        if not records:
            logger.info("indexing_failures", warnings=0, criticals=0)
            return

        warnings = [r for r in records if r.severity is Severity.WARNING]
        criticals = [r for r in records if r.severity is Severity.CRITICAL]
        logger.warning("indexing_failures", warnings=len(warnings), criticals=len(criticals))
        for record in criticals:
            logger.error("indexing_failure", **record.to_dict())
        if not self._config.warnings_as_summary:
            for record in warnings:
                logger.warning("indexing_failure", **record.to_dict())

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.report()

    def __enter__(self) -> FailureCollector:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def _cause(cause: BaseException | None) -> str | None:
    return str(cause) if cause is not None else None
