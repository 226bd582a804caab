"""
Composition root: builds one instance of every component and wires them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .cache import Cache
from .config import Settings, load_settings, resolve_db_path
from .embeddings.factory import EmbeddingStrategyFactory
from .embeddings.service import EmbeddingService, EmbeddingServiceConfig
from .indexing import EmbeddingIndexer
from .search.matcher import MatcherConfig, PatternMatcher
from .search.semantic import SemanticSearchConfig, SemanticSearchService
from .search.vectors import VectorConfig, VectorSimilarityEngine
from .storage.duckdb import DuckDBStorage


logger = logging.getLogger(__name__)


@dataclass
class Recommender:
    """Every wired component of a running recommender."""

    settings: Settings
    cache: Cache
    factory: EmbeddingStrategyFactory
    embeddings: EmbeddingService
    storage: DuckDBStorage
    vectors: VectorSimilarityEngine
    matcher: PatternMatcher
    semantic: SemanticSearchService
    indexer: EmbeddingIndexer

    def close(self) -> None:
        self.storage.close()


async def build_recommender(
    settings: Settings | None = None,
    *,
    factory: EmbeddingStrategyFactory | None = None,
    storage: DuckDBStorage | None = None,
) -> Recommender:
    """Construct and wire the recommender.

    The active embedding strategy is selected first because stored vectors
    are keyed by its model id and sized by its dimensions.
    """
    settings = settings or load_settings()
    cache = Cache(max_size=settings.cache_max_size, default_ttl=settings.cache_default_ttl)
    factory = factory or EmbeddingStrategyFactory(settings)
    embeddings = EmbeddingService(
        factory, cache, EmbeddingServiceConfig.from_settings(settings)
    )
    strategy = await embeddings.initialize()

    storage = storage or DuckDBStorage(resolve_db_path(settings.db_path))
    vector_config = VectorConfig(
        model_id=strategy.model_id,
        dimensions=strategy.dimensions,
        similarity_threshold=settings.similarity_threshold,
        max_results=settings.vector_max_results,
    )
    vectors = VectorSimilarityEngine(vector_config, catalog=storage, store=storage)
    vectors.load()

    matcher = PatternMatcher(
        storage,
        vectors,
        embeddings,
        cache=cache,
        config=MatcherConfig.from_settings(settings),
    )
    semantic = SemanticSearchService(
        storage,
        vectors,
        embeddings,
        SemanticSearchConfig(
            max_results=settings.vector_max_results,
            similarity_threshold=settings.similarity_threshold,
        ),
    )
    indexer = EmbeddingIndexer(storage, vectors, embeddings)
    logger.info(
        "Recommender ready: strategy=%s model=%s vectors=%d",
        strategy.name,
        strategy.model_id,
        len(vectors),
    )
    return Recommender(
        settings=settings,
        cache=cache,
        factory=factory,
        embeddings=embeddings,
        storage=storage,
        vectors=vectors,
        matcher=matcher,
        semantic=semantic,
        indexer=indexer,
    )
