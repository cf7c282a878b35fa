"""docindex error types with typed error codes.

Error code ranges:
- 2xxx: Config
- 3xxx: Index (reindexing, rollover, index creation)
- 4xxx: Engine
- 5xxx: Source
- 9xxx: Internal
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Typed error codes for programmatic handling."""

    # Config (2xxx)
    CONFIG_PARSE_ERROR = 2001
    CONFIG_INVALID_VALUE = 2002
    CONFIG_FILE_NOT_FOUND = 2004

    # Index (3xxx)
    REINDEX_IN_PROGRESS = 3001
    ROLLOVER_START_FAILED = 3002
    ROLLOVER_COMMIT_FAILED = 3003
    ROLLOVER_ROLLBACK_FAILED = 3004
    ROLLOVER_ALREADY_CLOSED = 3005
    ALIAS_RECOVERY_FAILED = 3006
    INDEX_CREATION_FAILED = 3007
    INDEXING_FAILED = 3008
    BATCH_PERSIST_FAILED = 3009

    # Engine (4xxx)
    ENGINE_UNREACHABLE = 4001
    ENGINE_REQUEST_FAILED = 4002
    ENGINE_BAD_RESPONSE = 4003

    # Source (5xxx)
    SOURCE_FETCH_FAILED = 5001

    # Internal (9xxx)
    INTERNAL_TIMEOUT = 9002
    SHUTDOWN_TIMEOUT = 9003


@dataclass(frozen=True)
class DocIndexError(Exception):
    """Base error with structured context for logs and operational responses."""

    code: ErrorCode
    message: str
    retryable: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def error_name(self) -> str:
        """String identifier for logging (e.g., 'ROLLOVER_COMMIT_FAILED')."""
        return self.code.name

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON responses."""
        return {
            "code": self.code.value,
            "error": self.error_name,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.error_name}: {self.message}"


class ConfigError(DocIndexError):
    """Configuration-related errors."""

    @classmethod
    def parse_error(cls, path: str, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message=f"Failed to parse config at {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def invalid_value(cls, field: str, value: Any, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_INVALID_VALUE,
            message=f"Invalid value for '{field}': {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )

    @classmethod
    def file_not_found(cls, path: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_FILE_NOT_FOUND,
            message=f"Config file not found: {path}",
            details={"path": path},
        )


class ReindexInProgressError(DocIndexError):
    """Raised when a reindex is requested while another one is running.

    Callers should treat this as benign: the running reindex will publish
    fresh indexes on its own.
    """

    @classmethod
    def create(cls) -> "ReindexInProgressError":
        return cls(
            code=ErrorCode.REINDEX_IN_PROGRESS,
            message="Reindexing is already in progress and cannot be started at this moment",
            retryable=True,
        )


class RolloverError(DocIndexError):
    """Failure of the alias rollover protocol. Always fatal to the current attempt."""

    @classmethod
    def start_failed(cls, reason: str) -> "RolloverError":
        return cls(
            code=ErrorCode.ROLLOVER_START_FAILED,
            message=f"Failed to start rollover: {reason}",
            details={"reason": reason},
        )

    @classmethod
    def commit_failed(cls, reason: str) -> "RolloverError":
        return cls(
            code=ErrorCode.ROLLOVER_COMMIT_FAILED,
            message=f"Failed to commit rollover: {reason}",
            details={"reason": reason},
        )

    @classmethod
    def rollback_failed(cls, reason: str) -> "RolloverError":
        return cls(
            code=ErrorCode.ROLLOVER_ROLLBACK_FAILED,
            message=f"Failed to rollback rollover: {reason}",
            details={"reason": reason},
        )

    @classmethod
    def already_closed(cls, state: str) -> "RolloverError":
        return cls(
            code=ErrorCode.ROLLOVER_ALREADY_CLOSED,
            message=f"Rollover is already {state}",
            details={"state": state},
        )

    @classmethod
    def recovery_failed(cls, index_names: list[str], reason: str) -> "RolloverError":
        return cls(
            code=ErrorCode.ALIAS_RECOVERY_FAILED,
            message=f"Failed to recover index aliases for {index_names}: {reason}",
            details={"indexes": index_names, "reason": reason},
        )


class IndexCreationError(DocIndexError):
    """Missing indexes could not be created, even after alias recovery."""

    @classmethod
    def failed(cls, reason: str) -> "IndexCreationError":
        return cls(
            code=ErrorCode.INDEX_CREATION_FAILED,
            message=f"Failed to create indexes: {reason}",
            details={"reason": reason},
        )


class IndexingError(DocIndexError):
    """Run-fatal failure while pushing documents into the shadow indexes."""

    @classmethod
    def failed(cls, reason: str) -> "IndexingError":
        return cls(
            code=ErrorCode.INDEXING_FAILED,
            message=f"Failed to index data: {reason}",
            details={"reason": reason},
        )

    @classmethod
    def batch_failed(cls, batch_size: int, reason: str, **details: Any) -> "IndexingError":
        return cls(
            code=ErrorCode.BATCH_PERSIST_FAILED,
            message=f"Failed to persist batch of {batch_size} documents: {reason}",
            details={"batch_size": batch_size, "reason": reason, **details},
        )


class EngineError(DocIndexError):
    """Search engine communication errors."""

    @classmethod
    def unreachable(cls, url: str, reason: str) -> "EngineError":
        return cls(
            code=ErrorCode.ENGINE_UNREACHABLE,
            message=f"Search engine unreachable at {url}: {reason}",
            retryable=True,
            details={"url": url, "reason": reason},
        )

    @classmethod
    def request_failed(cls, method: str, path: str, status: int, body: str) -> "EngineError":
        return cls(
            code=ErrorCode.ENGINE_REQUEST_FAILED,
            message=f"{method} {path} failed with HTTP {status}: {body}",
            details={"method": method, "path": path, "status": status, "body": body},
        )

    @classmethod
    def bad_response(cls, method: str, path: str, reason: str) -> "EngineError":
        return cls(
            code=ErrorCode.ENGINE_BAD_RESPONSE,
            message=f"Unexpected response to {method} {path}: {reason}",
            details={"method": method, "path": path, "reason": reason},
        )


class SourceError(DocIndexError):
    """A document source could not be fetched."""

    @classmethod
    def fetch_failed(cls, origin: str, location: str, reason: str) -> "SourceError":
        return cls(
            code=ErrorCode.SOURCE_FETCH_FAILED,
            message=f"Unable to fetch documents for '{origin}' from {location}: {reason}",
            details={"origin": origin, "location": location, "reason": reason},
        )


class IndexingTimeoutError(DocIndexError):
    """A bounded wait expired: worker pool drain, or shutdown during a reindex."""

    @classmethod
    def drain_timeout(cls, timeout_sec: float, pending: int) -> "IndexingTimeoutError":
        return cls(
            code=ErrorCode.INTERNAL_TIMEOUT,
            message=f"Indexing did not complete within {timeout_sec}s ({pending} batches pending)",
            details={"phase": "drain", "timeout_sec": timeout_sec, "pending": pending},
        )

    @classmethod
    def submit_timeout(cls, timeout_sec: float) -> "IndexingTimeoutError":
        return cls(
            code=ErrorCode.INTERNAL_TIMEOUT,
            message=f"No indexing worker became available within {timeout_sec}s",
            details={"phase": "submit", "timeout_sec": timeout_sec},
        )

    @classmethod
    def shutdown_timeout(cls, timeout_sec: float) -> "IndexingTimeoutError":
        return cls(
            code=ErrorCode.SHUTDOWN_TIMEOUT,
            message=f"Shutdown requested, aborting indexing which took more than {timeout_sec}s",
            details={"phase": "shutdown", "timeout_sec": timeout_sec},
        )
