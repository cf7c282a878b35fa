"""Documents and the collaborator interfaces that produce and persist them."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class Document:
    """One indexable document.

    ``index`` names the logical index it belongs to; ``origin`` tags the
    external site it was crawled from.
    """

    id: str
    origin: str
    index: str = "guide"
    fields: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def to_source(self) -> dict[str, Any]:
        """The document body as sent to the engine."""
        return {**self.fields, "origin": self.origin}


@runtime_checkable
class DocumentSource(Protocol):
    """A finite, single-pass supply of documents from one external origin.

    Fetch and parse problems are reported to the run's ``FailureCollector``
    rather than raised; a source that cannot fetch anything yields nothing.
    """

    origin: str

    def guides(self) -> Iterator[Document]: ...

    def close(self) -> None: ...


@runtime_checkable
class DocumentSink(Protocol):
    """Durably submits one batch of documents to the engine.

    A batch is one persistence unit: ``persist`` either succeeds for the whole
    batch or raises.
    """

    def persist(self, batch: list[Document]) -> None: ...
