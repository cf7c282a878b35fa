"""Document sources: JSON lines files, HTTP feeds, and in-memory lists.

Sources never raise for fetch or parse problems. They report them to the
run's ``FailureCollector`` and yield whatever they could read:

- the whole source is unreadable -> CRITICAL at FETCHING, nothing is yielded
- one entry is malformed -> WARNING at PARSING, that entry is skipped
"""

from __future__ import annotations

import json
from collections.abc import Callable, Iterable, Iterator
from pathlib import Path
from typing import TYPE_CHECKING, Any, BinaryIO

import httpx
import structlog

from docindex.core.errors import SourceError
from docindex.indexing.documents import Document, DocumentSource
from docindex.indexing.failures import FailureCollector, Stage

if TYPE_CHECKING:
    from docindex.config.models import SourceConfig

logger = structlog.get_logger()

SourceFactory = Callable[[FailureCollector], DocumentSource]


def document_from_entry(entry: Any, *, origin: str, index: str) -> Document:
    """Build a ``Document`` from one decoded JSON object.

    Raises:
        ValueError: the entry is not an object or has no usable ``id``.
    """
    if not isinstance(entry, dict):
        raise ValueError(f"expected a JSON object, got {type(entry).__name__}")
    doc_id = entry.get("id")
    if not isinstance(doc_id, (str, int)) or isinstance(doc_id, bool) or doc_id == "":
        raise ValueError("missing or invalid 'id'")
    fields = {k: v for k, v in entry.items() if k not in ("id", "origin")}
    return Document(id=str(doc_id), origin=origin, index=index, fields=fields)


class StaticDocumentSource:
    """Yields a fixed list of documents."""

    def __init__(self, origin: str, documents: Iterable[Document]) -> None:
        self.origin = origin
        self._documents = list(documents)
        self.closed = False

    def guides(self) -> Iterator[Document]:
        yield from self._documents

    def close(self) -> None:
        self.closed = True


class JsonLinesDocumentSource:
    """Reads one JSON object per line from a local file."""

    def __init__(
        self, origin: str, path: Path | str, failures: FailureCollector, *, index: str = "guide"
    ) -> None:
        self.origin = origin
        self.path = Path(path).expanduser()
        self.index = index
        self._failures = failures
        self._file: BinaryIO | None = None

    def guides(self) -> Iterator[Document]:
        try:
            self._file = self.path.open("rb")
        except OSError as e:
            error = SourceError.fetch_failed(self.origin, str(self.path), str(e))
            self._failures.critical(Stage.FETCHING, error.message, e)
            return

        logger.info("source_reading", path=str(self.path))
        # Decoded per line: an undecodable line is skipped like a malformed one
        for lineno, raw in enumerate(self._file, start=1):
            if not raw.strip():
                continue
            try:
                entry = json.loads(raw.decode("utf-8"))
                yield document_from_entry(entry, origin=self.origin, index=self.index)
            except ValueError as e:
                self._failures.warning(
                    Stage.PARSING, f"{self.origin}: skipping {self.path}:{lineno}: {e}", e
                )

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None


class HttpDocumentSource:
    """Fetches a JSON array of documents from a URL."""

    def __init__(
        self,
        origin: str,
        url: str,
        failures: FailureCollector,
        *,
        index: str = "guide",
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.origin = origin
        self.url = url
        self.index = index
        self._failures = failures
        self._http = httpx.Client(timeout=timeout, transport=transport, follow_redirects=True)

    def guides(self) -> Iterator[Document]:
        try:
            response = self._http.get(self.url)
            response.raise_for_status()
            entries = response.json()
        except (httpx.HTTPError, ValueError) as e:
            error = SourceError.fetch_failed(self.origin, self.url, str(e))
            self._failures.critical(Stage.FETCHING, error.message, e)
            return
        if not isinstance(entries, list):
            error = SourceError.fetch_failed(self.origin, self.url, "expected a JSON array")
            self._failures.critical(Stage.FETCHING, error.message)
            return

        logger.info("source_fetched", url=self.url, entries=len(entries))
        for position, entry in enumerate(entries):
            try:
                yield document_from_entry(entry, origin=self.origin, index=self.index)
            except ValueError as e:
                self._failures.warning(
                    Stage.PARSING, f"{self.origin}: skipping entry {position}: {e}", e
                )

    def close(self) -> None:
        self._http.close()


def build_source_factories(
    sources: list[SourceConfig],
    *,
    timeout: float = 30.0,
    transport: httpx.BaseTransport | None = None,
) -> list[SourceFactory]:
    """One factory per enabled source; each run binds its own FailureCollector."""
    factories: list[SourceFactory] = []
    for config in sources:
        if not config.enabled:
            logger.debug("source_disabled", origin=config.origin)
            continue
        factories.append(_source_factory(config, timeout=timeout, transport=transport))
    return factories


def _source_factory(
    config: SourceConfig, *, timeout: float, transport: httpx.BaseTransport | None
) -> SourceFactory:
    if config.kind == "http":
        return lambda failures: HttpDocumentSource(
            config.origin,
            config.location,
            failures,
            index=config.index,
            timeout=timeout,
            transport=transport,
        )
    return lambda failures: JsonLinesDocumentSource(
        config.origin, config.location, failures, index=config.index
    )
