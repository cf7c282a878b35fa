"""Pydantic configuration models with env var support.

Configuration Hierarchy (highest to lowest precedence):
1. Direct kwargs to load_config()
2. Environment variables (DOCINDEX__SECTION__KEY)
3. Project YAML (./docindex.yaml, or the path given with --config)
4. Global YAML (~/.config/docindex/config.yaml)
5. Built-in defaults (this file)

Environment Variable Format:
    DOCINDEX__<SECTION>__<KEY>=<VALUE>

Examples:
    DOCINDEX__LOGGING__LEVEL=DEBUG
    DOCINDEX__ENGINE__URL=http://search:9200
    DOCINDEX__INDEXING__BATCH_SIZE=200
    DOCINDEX__INDEXING__SCHEDULED__CRON="0 3 * * *"
"""

from pathlib import Path
from typing import Any, Literal

from croniter import croniter
from pydantic import BaseModel, Field, field_validator

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
StartupWhen = Literal["always", "indexes_empty", "never"]
SourceKind = Literal["file", "http"]


class LogOutputConfig(BaseModel):
    """Single logging output configuration.

    Env vars: Not directly configurable via env (use YAML for multi-output).
    """

    format: Literal["json", "console"] = "console"
    destination: str = "stderr"  # stderr, stdout, or absolute file path
    level: LogLevel | None = None  # Inherits from parent if None

    @field_validator("destination")
    @classmethod
    def validate_destination(cls, v: str) -> str:
        if v in ("stderr", "stdout"):
            return v
        path = Path(v).expanduser()
        if not path.is_absolute():
            raise ValueError(f"File destination must be absolute path: {v}")
        return str(path)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Env vars:
        DOCINDEX__LOGGING__LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    level: LogLevel = Field(
        default="INFO",
        description="Root log level. DEBUG logs every document handed to the sink.",
    )
    outputs: list[LogOutputConfig] = Field(default_factory=lambda: [LogOutputConfig()])


class EngineConfig(BaseModel):
    """Search engine connection.

    Env vars:
        DOCINDEX__ENGINE__URL: Base URL of the engine's REST API
        DOCINDEX__ENGINE__REQUEST_TIMEOUT_SEC: Per-request timeout
    """

    url: str = Field(
        default="http://localhost:9200",
        description="Base URL of the search engine REST API.",
    )
    request_timeout_sec: float = Field(
        default=30.0,
        description="Timeout for a single engine request. "
        "Bulk requests for large batches need more than the default.",
    )

    @field_validator("request_timeout_sec")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"Timeout must be positive, got {v}")
        return v


class OnStartupConfig(BaseModel):
    """Reindexing on application startup.

    Env vars:
        DOCINDEX__INDEXING__ON_STARTUP__WHEN: always, indexes_empty or never
        DOCINDEX__INDEXING__ON_STARTUP__WAIT_INTERVAL_SEC: Poll interval while
            waiting for the engine to become reachable and healthy
    """

    when: StartupWhen = Field(
        default="indexes_empty",
        description="When to reindex on startup. 'indexes_empty' counts documents first.",
    )
    wait_interval_sec: float = Field(
        default=5.0,
        description="Interval between engine reachability/health probes on startup.",
    )

    @field_validator("wait_interval_sec")
    @classmethod
    def validate_interval(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"Wait interval must be positive, got {v}")
        return v


class ScheduledConfig(BaseModel):
    """Recurring reindex trigger.

    Env vars:
        DOCINDEX__INDEXING__SCHEDULED__CRON: Cron expression, or "off" to disable
    """

    cron: str = Field(
        default="0 0 * * *",
        description="Cron expression for scheduled reindexing (server local time). "
        "Use 'off' to disable the schedule.",
    )

    @field_validator("cron")
    @classmethod
    def validate_cron(cls, v: str) -> str:
        v = v.strip()
        if v == "off":
            return v
        if not croniter.is_valid(v):
            raise ValueError(f"Invalid cron expression: {v!r}")
        return v

    @property
    def enabled(self) -> bool:
        return self.cron != "off"


class IndexingConfig(BaseModel):
    """Reindexing configuration.

    Env vars:
        DOCINDEX__INDEXING__BATCH_SIZE: Documents per persistence batch
        DOCINDEX__INDEXING__PARALLELISM: Concurrent in-flight batches
        DOCINDEX__INDEXING__TIMEOUT_SEC: Max wait for indexing to drain, and
            for an in-flight reindex on shutdown
    """

    batch_size: int = Field(
        default=100,
        description="Documents per batch. One batch is one bulk request to the engine.",
    )
    parallelism: int = Field(
        default=4,
        description="Maximum number of batches persisted concurrently. "
        "RISK: High values can saturate the engine's bulk thread pool.",
    )
    timeout_sec: float = Field(
        default=3600.0,
        description="Maximum wall-clock wait for indexing to drain, "
        "and for an in-flight reindex when shutting down.",
    )
    on_startup: OnStartupConfig = Field(default_factory=OnStartupConfig)
    scheduled: ScheduledConfig = Field(default_factory=ScheduledConfig)

    @field_validator("batch_size", "parallelism")
    @classmethod
    def validate_positive_int(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"Must be positive, got {v}")
        return v

    @field_validator("timeout_sec")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"Timeout must be positive, got {v}")
        return v


def _default_guide_mappings() -> dict[str, Any]:
    return {
        "properties": {
            "origin": {"type": "keyword"},
            "url": {"type": "keyword"},
            "title": {"type": "text"},
            "summary": {"type": "text"},
            "content": {"type": "text"},
        },
    }


class IndexDefinitionConfig(BaseModel):
    """One logical index and its expected schema."""

    name: str = Field(description="Logical index name. Aliases are <name>-read / <name>-write.")
    mappings: dict[str, Any] = Field(default_factory=dict)
    settings: dict[str, Any] = Field(default_factory=dict)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v or v != v.lower() or any(c in v for c in ' ,*?"<>|/\\'):
            raise ValueError(f"Invalid index name: {v!r}")
        return v


class SourceConfig(BaseModel):
    """One external documentation source."""

    origin: str = Field(description="Origin tag stored on every document from this source.")
    kind: SourceKind = Field(
        default="file",
        description="'file' reads JSON lines from a local path; 'http' fetches a JSON array feed.",
    )
    location: str = Field(description="File path or URL.")
    index: str = Field(default="guide", description="Logical index the documents go to.")
    enabled: bool = True


class ManagementConfig(BaseModel):
    """Management interface serving /reindex, /health and /status.

    Env vars:
        DOCINDEX__MANAGEMENT__HOST: Bind address (default: 127.0.0.1)
        DOCINDEX__MANAGEMENT__PORT: Port number (default: 9000)
    """

    host: str = Field(
        default="127.0.0.1",
        description="Bind address. /reindex is unauthenticated; keep it off public interfaces.",
    )
    port: int = Field(default=9000, description="Management port.")

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        if not (0 <= v <= 65535):
            raise ValueError(f"Port must be 0-65535, got {v}")
        return v


class ErrorReportingConfig(BaseModel):
    """How failures collected during a reindex are reported when the run ends."""

    type: Literal["log"] = "log"
    warnings_as_summary: bool = Field(
        default=False,
        description="Report warnings as a single count instead of one event each.",
    )


class DocIndexConfig(BaseModel):
    """Root configuration for docindex.

    All settings can be configured via:
    1. Environment variables: DOCINDEX__SECTION__KEY
    2. YAML config files (project or global)
    3. Direct kwargs to load_config()
    """

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    indexing: IndexingConfig = Field(default_factory=IndexingConfig)
    indexes: list[IndexDefinitionConfig] = Field(
        default_factory=lambda: [
            IndexDefinitionConfig(name="guide", mappings=_default_guide_mappings())
        ]
    )
    sources: list[SourceConfig] = Field(default_factory=list)
    management: ManagementConfig = Field(default_factory=ManagementConfig)
    error_reporting: ErrorReportingConfig = Field(default_factory=ErrorReportingConfig)
