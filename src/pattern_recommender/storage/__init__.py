"""Storage backends for the pattern catalog and its embeddings."""

from .base import CatalogStore, EmbeddingStore, PatternRecord, StoredEmbedding
from .duckdb import DuckDBStorage

__all__ = [
    "CatalogStore",
    "EmbeddingStore",
    "PatternRecord",
    "StoredEmbedding",
    "DuckDBStorage",
]
