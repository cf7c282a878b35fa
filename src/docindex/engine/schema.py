"""Index schema management: expected schema export, create-if-missing, refresh, count."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from docindex.core.errors import IndexCreationError
from docindex.engine.models import LogicalIndex, resolve_aliases

if TYPE_CHECKING:
    from docindex.engine.client import SearchEngineClient

logger = structlog.get_logger()


class SchemaManager:
    """Schema operations across every configured logical index."""

    def __init__(self, client: SearchEngineClient, indexes: list[LogicalIndex]) -> None:
        self.client = client
        self.indexes = indexes

    def export_expected_schema(self) -> dict[str, dict[str, Any]]:
        """Expected ``{"mappings", "settings"}`` per logical index name."""
        return {
            index.name: {"mappings": index.mappings, "settings": index.settings}
            for index in self.indexes
        }

    def create_if_missing(self) -> None:
        """Create a first physical index for every logical index that has none.

        An index that exists but lost one of its aliases gets the alias back.
        Aliases resolving to several physical indexes are left alone and raise
        ``IndexCreationError``; alias recovery must run first.
        """
        schema = self.export_expected_schema()
        for aliases in resolve_aliases(self.client.get_aliases(), self.indexes):
            index = aliases.index
            if aliases.has_multiple_indexes:
                raise IndexCreationError.failed(
                    f"aliases of '{index.name}' resolve to several indexes: {aliases.all_indexes}"
                )

            if not aliases.all_indexes:
                logger.info("creating_index", index=index.name, physical=index.initial_index_name)
                body = {
                    **schema[index.name],
                    "aliases": {
                        index.read_alias: {"is_write_index": False},
                        index.write_alias: {"is_write_index": True},
                    },
                }
                self.client.create_index(index.initial_index_name, body)
                continue

            physical = aliases.all_indexes[0]
            actions: list[dict[str, Any]] = []
            if not aliases.read_indexes:
                actions.append(
                    {"add": {"index": physical, "alias": index.read_alias, "is_write_index": False}}
                )
            if not aliases.write_indexes:
                actions.append(
                    {"add": {"index": physical, "alias": index.write_alias, "is_write_index": True}}
                )
            if actions:
                logger.info("restoring_missing_aliases", index=index.name, physical=physical)
                self.client.update_aliases(actions)

    def refresh(self) -> None:
        """Make everything written so far visible to searches, on every write alias."""
        self.client.refresh([index.write_alias for index in self.indexes])

    def count_documents(self) -> int:
        """Total documents visible through the read aliases."""
        return self.client.count([index.read_alias for index in self.indexes])
