"""
Pattern Recommender - hybrid keyword and semantic retrieval over a pattern catalog.

This package recommends catalog patterns for a natural-language problem
description by fusing exact-term scores with vector similarity. Embeddings
come from a pluggable strategy (sentence-transformers, Ollama, Gemini)
with a deterministic hash fallback, behind a TTL/LRU cache.

Example usage:
    >>> from pattern_recommender import PatternRequest, build_recommender
    >>> recommender = await build_recommender()
    >>> await recommender.matcher.find_matching_patterns(
    ...     PatternRequest(query="create objects without naming their class")
    ... )
"""

from .cache import Cache, CacheStats
from .config import Settings, load_settings
from .container import Recommender, build_recommender
from .embeddings import (
    EmbeddingService,
    EmbeddingServiceConfig,
    EmbeddingStrategy,
    EmbeddingStrategyFactory,
    SimpleHashStrategy,
)
from .errors import (
    DimensionMismatchError,
    EmbeddingError,
    GenerationFailureError,
    InvalidClusterCountError,
    PatternRecommenderError,
    StoreUnavailableError,
    StrategyUnavailableError,
)
from .indexing import EmbeddingIndexer, IndexingResult
from .models import PatternRequest, Recommendation, ScoreBreakdown
from .search import (
    MatcherConfig,
    PatternMatcher,
    SemanticSearchService,
    VectorConfig,
    VectorSimilarityEngine,
)
from .storage import DuckDBStorage, PatternRecord

__all__ = [
    # Cache
    "Cache",
    "CacheStats",
    # Configuration
    "Settings",
    "load_settings",
    "Recommender",
    "build_recommender",
    # Embeddings
    "EmbeddingService",
    "EmbeddingServiceConfig",
    "EmbeddingStrategy",
    "EmbeddingStrategyFactory",
    "SimpleHashStrategy",
    # Search
    "MatcherConfig",
    "PatternMatcher",
    "SemanticSearchService",
    "VectorConfig",
    "VectorSimilarityEngine",
    "EmbeddingIndexer",
    "IndexingResult",
    # Models
    "PatternRequest",
    "Recommendation",
    "ScoreBreakdown",
    "PatternRecord",
    "DuckDBStorage",
    # Errors
    "PatternRecommenderError",
    "EmbeddingError",
    "DimensionMismatchError",
    "GenerationFailureError",
    "InvalidClusterCountError",
    "StoreUnavailableError",
    "StrategyUnavailableError",
]
