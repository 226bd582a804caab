"""Search engines: vector similarity, keyword scoring and hybrid matching."""

from .keyword import KeywordMatch, KeywordScorer, tokenize_query
from .matcher import MatcherConfig, PatternMatcher, fuse_scores
from .semantic import SearchResult, SemanticSearchConfig, SemanticSearchService
from .vectors import (
    Cluster,
    SimilarityHit,
    VectorConfig,
    VectorSearchFilters,
    VectorSimilarityEngine,
    VectorStats,
    cosine_similarity,
)

__all__ = [
    "Cluster",
    "KeywordMatch",
    "KeywordScorer",
    "MatcherConfig",
    "PatternMatcher",
    "SearchResult",
    "SemanticSearchConfig",
    "SemanticSearchService",
    "SimilarityHit",
    "VectorConfig",
    "VectorSearchFilters",
    "VectorSimilarityEngine",
    "VectorStats",
    "cosine_similarity",
    "fuse_scores",
    "tokenize_query",
]
