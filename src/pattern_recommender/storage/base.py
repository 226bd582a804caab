"""
Storage interfaces and data models for the pattern catalog.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol


@dataclass(frozen=True)
class PatternRecord:
    """A catalog entry as seen by the retrieval core."""

    id: str
    name: str
    category: str
    description: str
    complexity: str | None = None
    tags: tuple[str, ...] = field(default_factory=tuple)

    @property
    def embedding_text(self) -> str:
        """Text used as similarity input for this entry."""
        return f"{self.name} {self.description}"


@dataclass(frozen=True)
class StoredEmbedding:
    """A persisted embedding vector for one catalog entry."""

    pattern_id: str
    model_id: str
    vector: list[float]
    text_hash: str | None = None

    @property
    def dimensions(self) -> int:
        return len(self.vector)


class CatalogStore(Protocol):
    """Read-only catalog queries consumed by the retrieval core."""

    def find_by_id(self, pattern_id: str) -> PatternRecord | None:
        """Return one catalog entry, or None."""

    def find_by_ids(self, pattern_ids: list[str]) -> dict[str, PatternRecord]:
        """Return the catalog entries that exist among *pattern_ids*."""

    def find_by_category(self, category: str, limit: int | None = None) -> list[PatternRecord]:
        """Return entries of one category ordered by name."""

    def find_all(self, *, categories: list[str] | None = None) -> list[PatternRecord]:
        """Return all entries, optionally restricted to *categories*."""

    def search_text(self, text: str, *, limit: int = 20) -> list[PatternRecord]:
        """Return entries whose name, description, or tags contain *text*."""

    def count_by_category(self) -> dict[str, int]:
        """Return the number of entries per category."""


class EmbeddingStore(Protocol):
    """Persistence for pattern embeddings."""

    def save_embedding(self, embedding: StoredEmbedding) -> None:
        """Insert or replace the vector for ``(pattern_id, model_id)``."""

    def delete_embedding(self, pattern_id: str, *, model_id: str) -> bool:
        """Delete one vector. Return True when a row was removed."""

    def load_embeddings(self, *, model_id: str) -> list[StoredEmbedding]:
        """Return all vectors stored for *model_id* in insertion order."""

    def clear_embeddings(self, *, model_id: str) -> int:
        """Delete every vector stored for *model_id*. Return count removed."""

    def get_text_hashes(self, *, model_id: str) -> dict[str, str]:
        """Return ``pattern_id -> text_hash`` for stored vectors of *model_id*."""
