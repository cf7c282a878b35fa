"""Engine-side data models: logical indexes and their aliases."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from docindex.config.models import IndexDefinitionConfig

READ_ALIAS_SUFFIX = "-read"
WRITE_ALIAS_SUFFIX = "-write"
FIRST_GENERATION = "000001"


@dataclass(frozen=True)
class LogicalIndex:
    """A stable index identity exposed through a read alias and a write alias.

    Search traffic queries ``read_alias``; new documents go to ``write_alias``.
    In steady state both aliases resolve to the same single physical index.
    """

    name: str
    mappings: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)
    settings: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def read_alias(self) -> str:
        return f"{self.name}{READ_ALIAS_SUFFIX}"

    @property
    def write_alias(self) -> str:
        return f"{self.name}{WRITE_ALIAS_SUFFIX}"

    @property
    def initial_index_name(self) -> str:
        """Name of the first physical index; rollovers increment the numeric suffix."""
        return f"{self.name}-{FIRST_GENERATION}"

    @classmethod
    def from_config(cls, config: IndexDefinitionConfig) -> LogicalIndex:
        return cls(name=config.name, mappings=config.mappings, settings=config.settings)


@dataclass
class IndexAliases:
    """Which physical indexes currently answer to one logical index's aliases.

    Read-only snapshot built from ``GET /_aliases``; never mutated once built.
    A write alias entry only counts when it is flagged ``is_write_index``:
    a rollover leaves the write alias on the old index with the flag off.
    """

    index: LogicalIndex
    read_indexes: set[str] = field(default_factory=set)
    write_indexes: set[str] = field(default_factory=set)

    @property
    def all_indexes(self) -> list[str]:
        return sorted(self.read_indexes | self.write_indexes)

    @property
    def has_multiple_indexes(self) -> bool:
        return len(self.read_indexes | self.write_indexes) > 1

    def index_to_keep(self) -> str | None:
        """The index recovery keeps.

        Index names are generated with a monotonic suffix, so the lexically
        smallest name is the oldest. Keep the oldest write index, which should
        allow a rollover to start; failing that, keep the oldest index overall.
        """
        if self.write_indexes:
            return min(self.write_indexes)
        all_indexes = self.all_indexes
        return all_indexes[0] if all_indexes else None

    def extra_indexes(self) -> list[str]:
        keep = self.index_to_keep()
        return [name for name in self.all_indexes if name != keep]


def resolve_aliases(
    aliases_response: dict[str, Any], indexes: list[LogicalIndex]
) -> list[IndexAliases]:
    """Build one ``IndexAliases`` per logical index from a ``GET /_aliases`` body."""
    by_read_alias: dict[str, IndexAliases] = {}
    by_write_alias: dict[str, IndexAliases] = {}
    results: list[IndexAliases] = []
    for index in indexes:
        result = IndexAliases(index=index)
        results.append(result)
        by_read_alias[index.read_alias] = result
        by_write_alias[index.write_alias] = result

    for index_name, entry in aliases_response.items():
        aliases = (entry or {}).get("aliases") or {}
        for alias, metadata in aliases.items():
            is_write = bool((metadata or {}).get("is_write_index", False))
            if is_write:
                if (result := by_write_alias.get(alias)) is not None:
                    result.write_indexes.add(index_name)
            elif (result := by_read_alias.get(alias)) is not None:
                result.read_indexes.add(index_name)

    return results
