"""
Embedding indexer: keeps stored pattern vectors in sync with the catalog.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass

from .embeddings.service import EmbeddingService
from .errors import DimensionMismatchError
from .search.vectors import VectorSimilarityEngine
from .storage.base import CatalogStore, PatternRecord


logger = logging.getLogger(__name__)

_DEFAULT_BATCH_SIZE = 10


@dataclass(frozen=True)
class IndexingResult:
    """Summary output for an indexing run."""

    total: int
    embedded: int
    skipped: int
    failed: int


class EmbeddingIndexer:
    """Embed catalog patterns and store their vectors."""

    def __init__(
        self,
        catalog: CatalogStore,
        vectors: VectorSimilarityEngine,
        embeddings: EmbeddingService,
        *,
        batch_size: int | None = None,
    ) -> None:
        self.catalog = catalog
        self.vectors = vectors
        self.embeddings = embeddings
        self.batch_size = batch_size or embeddings.config.batch_size or _DEFAULT_BATCH_SIZE

    async def index_catalog(self, *, force: bool = False) -> IndexingResult:
        patterns = self.catalog.find_all()
        known_hashes = self._known_hashes()

        pending: list[tuple[PatternRecord, str]] = []
        skipped = 0
        for pattern in patterns:
            text_hash = self._sha256(pattern.embedding_text)
            if (
                not force
                and known_hashes.get(pattern.id) == text_hash
                and pattern.id in self.vectors
            ):
                skipped += 1
                continue
            pending.append((pattern, text_hash))

        embedded = 0
        failed = 0
        for start in range(0, len(pending), self.batch_size):
            batch = pending[start : start + self.batch_size]
            results = await self.embeddings.generate_embedding_results(
                [pattern.embedding_text for pattern, _ in batch]
            )
            for (pattern, text_hash), embedded_text in zip(batch, results):
                if embedded_text.fallback:
                    logger.warning(
                        "Not indexing pattern %s: %s produced a stand-in vector",
                        pattern.id,
                        embedded_text.strategy,
                    )
                    failed += 1
                    continue
                try:
                    self.vectors.store_embedding(
                        pattern.id, embedded_text.vector, text_hash=text_hash
                    )
                except DimensionMismatchError as exc:
                    logger.warning("Could not index pattern %s: %s", pattern.id, exc)
                    failed += 1
                    continue
                embedded += 1

        result = IndexingResult(
            total=len(patterns),
            embedded=embedded,
            skipped=skipped,
            failed=failed,
        )
        logger.info(
            "Indexed catalog: %d embedded, %d skipped, %d failed of %d patterns",
            result.embedded,
            result.skipped,
            result.failed,
            result.total,
        )
        return result

    async def rebuild(self) -> IndexingResult:
        """Drop every stored vector and embed the whole catalog again."""
        self.vectors.clear()
        return await self.index_catalog(force=True)

    def invalidate(self, pattern_id: str) -> bool:
        """Forget the stored vector of one pattern."""
        return self.vectors.delete_embedding(pattern_id)

    def _known_hashes(self) -> dict[str, str]:
        if self.vectors.store is None:
            return {}
        return self.vectors.store.get_text_hashes(model_id=self.vectors.config.model_id)

    @staticmethod
    def _sha256(text: str) -> str:
        return hashlib.sha256(text.encode("utf-8")).hexdigest()
