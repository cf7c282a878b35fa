"""Core module exports."""

from docindex.core.errors import (
    ConfigError,
    DocIndexError,
    ErrorCode,
)
from docindex.core.logging import (
    configure_logging,
    get_run_id,
    run_context,
    source_context,
)

__all__ = [
    # Errors
    "DocIndexError",
    "ConfigError",
    "ErrorCode",
    # Logging
    "configure_logging",
    "get_run_id",
    "run_context",
    "source_context",
]
