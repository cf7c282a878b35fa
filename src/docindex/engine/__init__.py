"""Search engine access: HTTP client, index models and schema management."""

from docindex.engine.client import SearchEngineClient
from docindex.engine.models import IndexAliases, LogicalIndex, resolve_aliases
from docindex.engine.schema import SchemaManager

__all__ = [
    "IndexAliases",
    "LogicalIndex",
    "SchemaManager",
    "SearchEngineClient",
    "resolve_aliases",
]
