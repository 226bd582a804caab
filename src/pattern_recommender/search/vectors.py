"""
Exact cosine-similarity search and k-means clustering over pattern vectors.

Vectors are kept in memory in insertion order and, when an embedding store
is attached, written through to it. Search is a linear scan; there is no
approximate index.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Sequence

import numpy as np

from ..errors import DimensionMismatchError, InvalidClusterCountError
from ..storage.base import CatalogStore, EmbeddingStore, PatternRecord, StoredEmbedding


logger = logging.getLogger(__name__)

MAX_KMEANS_ITERATIONS = 100


@dataclass(frozen=True)
class VectorConfig:
    model_id: str = "all-MiniLM-L6-v2"
    dimensions: int = 384
    similarity_threshold: float = 0.3
    max_results: int = 10


@dataclass(frozen=True)
class VectorSearchFilters:
    """Restrictions applied before scoring. Empty fields do not filter."""

    categories: tuple[str, ...] = ()
    complexity: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    exclude_ids: tuple[str, ...] = ()

    @property
    def needs_catalog(self) -> bool:
        return bool(self.categories or self.complexity or self.tags)

    def accepts(self, pattern: PatternRecord | None) -> bool:
        if not self.needs_catalog:
            return True
        if pattern is None:
            return False
        if self.categories and pattern.category not in self.categories:
            return False
        if self.complexity and pattern.complexity not in self.complexity:
            return False
        if self.tags:
            wanted = {tag.lower() for tag in self.tags}
            if not wanted.intersection(tag.lower() for tag in pattern.tags):
                return False
        return True


@dataclass(frozen=True)
class SimilarityHit:
    entry_id: str
    score: float
    rank: int


@dataclass(frozen=True)
class Cluster:
    centroid: list[float]
    member_ids: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class VectorStats:
    total_vectors: int
    model_id: str
    dimensions: int
    similarity_threshold: float


def cosine_similarity(a: Sequence[float] | np.ndarray, b: Sequence[float] | np.ndarray) -> float:
    """``dot(a, b) / (|a| |b|)``, or ``0.0`` when either vector has zero norm."""
    left = np.asarray(a, dtype=np.float64)
    right = np.asarray(b, dtype=np.float64)
    if left.shape != right.shape:
        raise DimensionMismatchError(left.shape[0], right.shape[0], context="similarity")
    left_norm = float(np.linalg.norm(left))
    right_norm = float(np.linalg.norm(right))
    if left_norm == 0.0 or right_norm == 0.0:
        return 0.0
    return float(np.dot(left, right) / (left_norm * right_norm))


class VectorSimilarityEngine:
    """In-memory vector index with optional persistence and catalog filters."""

    def __init__(
        self,
        config: VectorConfig | None = None,
        *,
        catalog: CatalogStore | None = None,
        store: EmbeddingStore | None = None,
    ) -> None:
        self.config = config or VectorConfig()
        self.catalog = catalog
        self.store = store
        self._vectors: dict[str, np.ndarray] = {}

    def __len__(self) -> int:
        return len(self._vectors)

    def __contains__(self, entry_id: object) -> bool:
        return entry_id in self._vectors

    @property
    def entry_ids(self) -> list[str]:
        return list(self._vectors)

    def _as_vector(self, vector: Sequence[float], *, context: str) -> np.ndarray:
        array = np.asarray(vector, dtype=np.float64)
        if array.ndim != 1 or array.shape[0] != self.config.dimensions:
            actual = array.shape[0] if array.ndim == 1 else array.size
            raise DimensionMismatchError(self.config.dimensions, actual, context=context)
        return array

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    def load(self) -> int:
        """Replace the in-memory vectors with those persisted for this model."""
        if self.store is None:
            return len(self._vectors)
        self._vectors.clear()
        for stored in self.store.load_embeddings(model_id=self.config.model_id):
            try:
                self._vectors[stored.pattern_id] = self._as_vector(
                    stored.vector, context="stored embedding"
                )
            except DimensionMismatchError as exc:
                logger.warning("Skipping stored vector for %s: %s", stored.pattern_id, exc)
        logger.info(
            "Loaded %d vectors for model %s", len(self._vectors), self.config.model_id
        )
        return len(self._vectors)

    def store_embedding(
        self,
        entry_id: str,
        vector: Sequence[float],
        *,
        text_hash: str | None = None,
    ) -> None:
        array = self._as_vector(vector, context="embedding")
        if self.store is not None:
            self.store.save_embedding(
                StoredEmbedding(
                    pattern_id=entry_id,
                    model_id=self.config.model_id,
                    vector=array.tolist(),
                    text_hash=text_hash,
                )
            )
        self._vectors[entry_id] = array
        logger.debug("Stored embedding for pattern %s", entry_id)

    def store_embeddings_batch(
        self, items: Iterable[tuple[str, Sequence[float]] | tuple[str, Sequence[float], str | None]]
    ) -> int:
        """Store several vectors; all are validated before any is written."""
        prepared: list[tuple[str, np.ndarray, str | None]] = []
        for item in items:
            entry_id, vector = item[0], item[1]
            text_hash = item[2] if len(item) > 2 else None
            prepared.append((entry_id, self._as_vector(vector, context="embedding"), text_hash))
        for entry_id, array, text_hash in prepared:
            self.store_embedding(entry_id, array, text_hash=text_hash)
        logger.info("Stored %d embeddings in batch", len(prepared))
        return len(prepared)

    def get_embedding(self, entry_id: str) -> list[float] | None:
        array = self._vectors.get(entry_id)
        return array.tolist() if array is not None else None

    def delete_embedding(self, entry_id: str) -> bool:
        removed = self._vectors.pop(entry_id, None) is not None
        if self.store is not None:
            removed = self.store.delete_embedding(entry_id, model_id=self.config.model_id) or removed
        return removed

    def clear(self) -> int:
        count = len(self._vectors)
        if self.store is not None:
            count = max(count, self.store.clear_embeddings(model_id=self.config.model_id))
        self._vectors.clear()
        logger.info("Cleared vectors for model %s", self.config.model_id)
        return count

    def stats(self) -> VectorStats:
        return VectorStats(
            total_vectors=len(self._vectors),
            model_id=self.config.model_id,
            dimensions=self.config.dimensions,
            similarity_threshold=self.config.similarity_threshold,
        )

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def _candidates(self, filters: VectorSearchFilters | None) -> list[str]:
        ids = list(self._vectors)
        if filters is None:
            return ids
        if filters.exclude_ids:
            excluded = set(filters.exclude_ids)
            ids = [entry_id for entry_id in ids if entry_id not in excluded]
        if filters.needs_catalog and ids:
            if self.catalog is None:
                raise ValueError("metadata filters require a catalog store")
            patterns = self.catalog.find_by_ids(ids)
            ids = [entry_id for entry_id in ids if filters.accepts(patterns.get(entry_id))]
        return ids

    def search_similar(
        self,
        query_vector: Sequence[float],
        filters: VectorSearchFilters | None = None,
        limit: int | None = None,
        threshold: float | None = None,
    ) -> list[SimilarityHit]:
        """Score every candidate and return the best ones, ranked from 1.

        Candidates are sorted by descending score (ties keep insertion
        order), those below the threshold are dropped, then the list is
        truncated to ``limit``.
        """
        query = self._as_vector(query_vector, context="query")
        candidates = self._candidates(filters)
        if not candidates:
            return []

        matrix = np.vstack([self._vectors[entry_id] for entry_id in candidates])
        norms = np.linalg.norm(matrix, axis=1)
        query_norm = float(np.linalg.norm(query))
        denominator = norms * query_norm
        dots = matrix @ query
        scores = np.divide(
            dots, denominator, out=np.zeros_like(dots), where=denominator != 0.0
        )

        cutoff = self.config.similarity_threshold if threshold is None else threshold
        max_results = self.config.max_results if limit is None else limit

        hits: list[SimilarityHit] = []
        for index in np.argsort(-scores, kind="stable"):
            score = float(scores[index])
            if score < cutoff:
                continue
            if len(hits) >= max_results:
                break
            hits.append(SimilarityHit(entry_id=candidates[index], score=score, rank=len(hits) + 1))
        return hits

    def find_similar(self, entry_id: str, limit: int | None = None) -> list[SimilarityHit]:
        """Neighbours of a stored entry, excluding the entry itself."""
        vector = self._vectors.get(entry_id)
        if vector is None:
            raise KeyError(f"No embedding found for pattern: {entry_id}")
        return self.search_similar(
            vector, VectorSearchFilters(exclude_ids=(entry_id,)), limit=limit
        )

    # ------------------------------------------------------------------
    # Clustering
    # ------------------------------------------------------------------

    def calculate_clusters(self, k: int) -> list[Cluster]:
        """Lloyd's k-means seeded with the first ``k`` stored vectors."""
        count = len(self._vectors)
        if k < 1 or k > count:
            raise InvalidClusterCountError(
                f"Cannot build {k} clusters from {count} stored vectors"
            )

        ids = list(self._vectors)
        points = np.vstack([self._vectors[entry_id] for entry_id in ids])
        centroids = points[:k].copy()

        assignments = _assign(points, centroids)
        for _ in range(MAX_KMEANS_ITERATIONS):
            updated = centroids.copy()
            for cluster in range(k):
                members = points[assignments == cluster]
                if len(members):
                    updated[cluster] = members.mean(axis=0)
            if np.array_equal(updated, centroids):
                break
            centroids = updated
            assignments = _assign(points, centroids)

        return [
            Cluster(
                centroid=centroids[cluster].tolist(),
                member_ids=[ids[i] for i in np.flatnonzero(assignments == cluster)],
            )
            for cluster in range(k)
        ]


def _assign(points: np.ndarray, centroids: np.ndarray) -> np.ndarray:
    """Index of the nearest centroid (Euclidean) for every point; ties go to the lower index."""
    distances = np.linalg.norm(points[:, None, :] - centroids[None, :, :], axis=2)
    return np.argmin(distances, axis=1)
