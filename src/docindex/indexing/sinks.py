"""Persist document batches into the engine's write aliases."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from docindex.core.errors import DocIndexError, IndexingError

if TYPE_CHECKING:
    from docindex.engine.client import SearchEngineClient
    from docindex.engine.models import LogicalIndex
    from docindex.indexing.documents import Document

logger = structlog.get_logger()

# Per-item errors reported back in the exception details
MAX_REPORTED_ERRORS = 5


class EngineDocumentSink:
    """Sends each batch as one ``_bulk`` request of ``index`` operations.

    Documents are addressed to the write alias of their logical index, so
    during a rollover they land in the new physical index only.
    """

    def __init__(self, client: SearchEngineClient, indexes: list[LogicalIndex]) -> None:
        self.client = client
        self._write_aliases = {index.name: index.write_alias for index in indexes}

    def persist(self, batch: list[Document]) -> None:
        if not batch:
            return
        operations = self._operations(batch)
        try:
            response = self.client.bulk(operations)
        except DocIndexError as e:
            raise IndexingError.batch_failed(len(batch), str(e)) from e

        if response.get("errors"):
            failed = _item_errors(response)
            raise IndexingError.batch_failed(
                len(batch),
                f"{len(failed)} documents rejected",
                errors=failed[:MAX_REPORTED_ERRORS],
            )
        logger.debug("batch_persisted", size=len(batch))

    def _operations(self, batch: list[Document]) -> list[dict[str, Any]]:
        operations: list[dict[str, Any]] = []
        for document in batch:
            alias = self._write_aliases.get(document.index)
            if alias is None:
                raise IndexingError.batch_failed(
                    len(batch), f"document '{document.id}' targets unknown index '{document.index}'"
                )
            operations.append({"index": {"_index": alias, "_id": document.id}})
            operations.append(document.to_source())
        return operations


def _item_errors(response: dict[str, Any]) -> list[dict[str, Any]]:
    errors: list[dict[str, Any]] = []
    for item in response.get("items") or []:
        for result in item.values():
            if isinstance(result, dict) and result.get("error") is not None:
                errors.append({"id": result.get("_id"), "error": result["error"]})
    return errors
