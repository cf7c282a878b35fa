"""docindex - zero-downtime reindexing of crawled documentation into a search engine."""

__version__ = "0.1.0"
