"""Config module exports."""

from docindex.config.loader import DocIndexSettings, load_config
from docindex.config.models import (
    DocIndexConfig,
    EngineConfig,
    IndexingConfig,
    LoggingConfig,
    ManagementConfig,
    SourceConfig,
)

__all__ = [
    "load_config",
    "DocIndexConfig",
    "DocIndexSettings",
    "EngineConfig",
    "IndexingConfig",
    "LoggingConfig",
    "ManagementConfig",
    "SourceConfig",
]
