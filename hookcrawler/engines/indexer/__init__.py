"""Search index writer: create-only Elasticsearch documents."""

from hookcrawler.engines.indexer.writer import (
    IndexMissingError,
    IndexOutcome,
    IndexUnauthorizedError,
    IndexWriter,
    SearchError,
)

__all__ = [
    "IndexMissingError",
    "IndexOutcome",
    "IndexUnauthorizedError",
    "IndexWriter",
    "SearchError",
]
