"""Reindexing: sources, batch indexing, alias rollover and run coordination."""

from docindex.indexing.batch import BatchExecutor, BatchIndexer
from docindex.indexing.coordinator import IndexCoordinator, RunSummary
from docindex.indexing.documents import Document, DocumentSink, DocumentSource
from docindex.indexing.failures import FailureCollector, FailureRecord, Severity, Stage
from docindex.indexing.rollover import (
    IndexRolloverResult,
    Rollover,
    RolloverState,
    recover_inconsistent_aliases,
)
from docindex.indexing.sinks import EngineDocumentSink
from docindex.indexing.sources import (
    HttpDocumentSource,
    JsonLinesDocumentSource,
    StaticDocumentSource,
    build_source_factories,
)

__all__ = [
    "BatchExecutor",
    "BatchIndexer",
    "Document",
    "DocumentSink",
    "DocumentSource",
    "EngineDocumentSink",
    "FailureCollector",
    "FailureRecord",
    "HttpDocumentSource",
    "IndexCoordinator",
    "IndexRolloverResult",
    "JsonLinesDocumentSource",
    "Rollover",
    "RolloverState",
    "RunSummary",
    "Severity",
    "Stage",
    "StaticDocumentSource",
    "build_source_factories",
    "recover_inconsistent_aliases",
]
