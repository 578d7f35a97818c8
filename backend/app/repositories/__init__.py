"""Repository abstractions for indexer state."""

from .indexer_repository import IndexerQueryRepository, SqlIndexerStore
from .memory_store import InMemoryStore
from .store import IndexerStore

__all__ = [
    "IndexerQueryRepository",
    "IndexerStore",
    "InMemoryStore",
    "SqlIndexerStore",
]
