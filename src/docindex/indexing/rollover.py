"""Zero-downtime index rollover.

A rollover is a three-step process:

1. ``Rollover.start()`` creates a new physical index per logical index and
   points the write alias at it. The read alias keeps serving the old index.
2. The caller indexes everything into the write aliases.
3. ``commit()`` atomically points the read aliases at the new indexes and
   deletes the old ones; ``rollback()`` atomically points the write aliases
   back at the old indexes and deletes the new ones.

``Rollover`` is a context manager: leaving the block without committing rolls
back. Each phase sends exactly one ``POST /_aliases`` covering all indexes, so
readers never observe a half-swapped alias table.

``recover_inconsistent_aliases()`` cleans up after a process that died between
steps 1 and 3.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from types import TracebackType
from typing import TYPE_CHECKING, Any, TypeVar

import structlog

from docindex.core.errors import DocIndexError, RolloverError
from docindex.engine.models import IndexAliases, LogicalIndex, resolve_aliases

if TYPE_CHECKING:
    from docindex.engine.client import SearchEngineClient

logger = structlog.get_logger()

T = TypeVar("T")


class RolloverState(Enum):
    STARTED = "started"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled back"


@dataclass(frozen=True)
class IndexRolloverResult:
    """The old/new physical index pair produced by rolling over one logical index."""

    index: LogicalIndex
    old_index: str
    new_index: str


class Rollover:
    """An in-flight rollover across all logical indexes.

    Commit or roll back exactly once; closing an uncommitted rollover rolls back.
    """

    def __init__(self, client: SearchEngineClient, results: list[IndexRolloverResult]) -> None:
        self._client = client
        self._results = results
        self._state = RolloverState.STARTED

    @classmethod
    def start(cls, client: SearchEngineClient, indexes: list[LogicalIndex]) -> Rollover:
        """Create shadow indexes and redirect write aliases to them.

        If any index fails to roll over, the ones that already did are rolled
        back before ``RolloverError`` is raised.
        """
        logger.info("rollover_starting", indexes=[index.name for index in indexes])

        successful: list[IndexRolloverResult] = []
        try:
            for index in indexes:
                old_index, new_index = client.rollover(
                    index.write_alias, index.mappings, index.settings
                )
                logger.info("index_rolled_over", index=index.name, old=old_index, new=new_index)
                successful.append(IndexRolloverResult(index, old_index, new_index))
        except DocIndexError as e:
            error = RolloverError.start_failed(str(e))
            if successful:
                try:
                    _rollback_all(client, successful)
                except RolloverError as e2:
                    logger.error("rollover_start_cleanup_failed", error=str(e2))
                    error.add_note(f"Cleaning up partially started rollover also failed: {e2}")
            raise error from e

        logger.info("rollover_started")
        return cls(client, successful)

    @property
    def state(self) -> RolloverState:
        return self._state

    @property
    def results(self) -> list[IndexRolloverResult]:
        return list(self._results)

    def commit(self) -> None:
        """Serve reads from the new indexes and delete the old ones."""
        self._ensure_open()
        _commit_all(self._client, self._results)
        self._state = RolloverState.COMMITTED

    def rollback(self) -> None:
        """Send writes back to the old indexes and delete the new ones."""
        self._ensure_open()
        _rollback_all(self._client, self._results)
        self._state = RolloverState.ROLLED_BACK

    def _ensure_open(self) -> None:
        if self._state is not RolloverState.STARTED:
            raise RolloverError.already_closed(self._state.value)

    def close(self) -> None:
        if self._state is RolloverState.STARTED:
            self.rollback()

    def __enter__(self) -> Rollover:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc is None:
            self.close()
            return
        # Keep the original failure as the one that propagates
        try:
            self.close()
        except RolloverError as e:
            logger.error("rollback_failed", error=str(e))
            exc.add_note(f"Rolling back the index rollover also failed: {e}")


def recover_inconsistent_aliases(client: SearchEngineClient, indexes: list[LogicalIndex]) -> bool:
    """Delete redundant indexes left behind by a rollover that never finished.

    A logical index is inconsistent when more than one physical index answers
    to its aliases. For each one, the oldest write index is kept (or, without
    any write index, the oldest index), and every other index is deleted, all
    in one atomic request.

    Returns:
        True if a recovery was attempted, False if every index was consistent.
    """
    try:
        snapshot = resolve_aliases(client.get_aliases(), indexes)
    except DocIndexError as e:
        raise RolloverError.recovery_failed([index.name for index in indexes], str(e)) from e

    inconsistent = [aliases for aliases in snapshot if aliases.has_multiple_indexes]
    if not inconsistent:
        return False

    names = [aliases.index.name for aliases in inconsistent]
    logger.info(
        "recovering_index_aliases",
        indexes=names,
        delete=[extra for aliases in inconsistent for extra in aliases.extra_indexes()],
    )

    def remove_extra(aliases: IndexAliases) -> Iterable[dict[str, Any]]:
        return (_alias_action("remove_index", index=name) for name in aliases.extra_indexes())

    try:
        _change_aliases_atomically(client, inconsistent, remove_extra)
    except DocIndexError as e:
        raise RolloverError.recovery_failed(names, str(e)) from e
    return True


def _commit_all(client: SearchEngineClient, results: list[IndexRolloverResult]) -> None:
    logger.info("rollover_committing")

    def actions(result: IndexRolloverResult) -> Iterable[dict[str, Any]]:
        yield _alias_action(
            "add", index=result.new_index, alias=result.index.read_alias, is_write_index=False
        )
        yield _alias_action("remove_index", index=result.old_index)

    try:
        _change_aliases_atomically(client, results, actions)
    except DocIndexError as e:
        raise RolloverError.commit_failed(str(e)) from e
    logger.info("rollover_committed")


def _rollback_all(client: SearchEngineClient, results: list[IndexRolloverResult]) -> None:
    logger.info("rollover_rolling_back")

    def actions(result: IndexRolloverResult) -> Iterable[dict[str, Any]]:
        yield _alias_action(
            "add", index=result.old_index, alias=result.index.write_alias, is_write_index=True
        )
        yield _alias_action("remove_index", index=result.new_index)

    try:
        _change_aliases_atomically(client, results, actions)
    except DocIndexError as e:
        raise RolloverError.rollback_failed(str(e)) from e
    logger.info("rollover_rolled_back")


def _change_aliases_atomically(
    client: SearchEngineClient,
    items: list[T],
    actions_for: Callable[[T], Iterable[dict[str, Any]]],
) -> None:
    actions = [action for item in items for action in actions_for(item)]
    client.update_aliases(actions)


def _alias_action(name: str, **parameters: Any) -> dict[str, Any]:
    return {name: parameters}
