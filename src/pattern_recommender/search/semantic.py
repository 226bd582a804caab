"""
Vector-based semantic search over the pattern catalog.

Embeds a query (optionally expanded with synonyms), searches stored pattern
vectors via cosine similarity, and optionally re-ranks hits using the
pattern metadata.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

import numpy as np

from ..embeddings.service import EmbeddingService
from ..storage.base import CatalogStore, PatternRecord
from .vectors import VectorSearchFilters, VectorSimilarityEngine


logger = logging.getLogger(__name__)

MAX_SYNONYMS_PER_WORD = 2
MAX_QUERY_VARIANTS = 3
NAME_BOOST = 1.2
CATEGORY_BOOST = 1.1
TAG_BOOST = 1.05

QUERY_EXPANSIONS: dict[str, tuple[str, ...]] = {
    "object": ("instance", "class", "type"),
    "create": ("instantiate", "build", "construct", "make"),
    "manage": ("handle", "control", "organize", "coordinate"),
    "data": ("information", "state", "content"),
    "user": ("client", "customer", "person"),
    "system": ("application", "software", "platform"),
    "service": ("microservice", "api", "endpoint"),
    "database": ("storage", "persistence", "data store"),
    "web": ("http", "browser", "frontend"),
    "api": ("interface", "endpoint", "service"),
    "test": ("testing", "validation", "verification"),
    "error": ("exception", "failure", "problem"),
    "async": ("asynchronous", "concurrent", "parallel"),
    "cache": ("caching", "memory", "storage"),
    "security": ("authentication", "authorization", "encryption"),
}

_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class SemanticSearchConfig:
    max_results: int = 10
    similarity_threshold: float = 0.3
    use_query_expansion: bool = True
    use_reranking: bool = True


@dataclass(frozen=True)
class SearchResult:
    pattern_id: str
    name: str
    category: str
    description: str
    score: float
    rank: int


def expand_query(query: str) -> list[str]:
    """Return the query plus up to two rewritten variants."""
    variants = [query]
    words = [word for word in _WHITESPACE_RE.split(query.lower()) if word]
    expanded: list[str] = []
    for word in words:
        expanded.append(word)
        expanded.extend(QUERY_EXPANSIONS.get(word, ())[:MAX_SYNONYMS_PER_WORD])
    if len(expanded) > len(words):
        variants.append(" ".join(expanded))

    if "design pattern" in query.lower():
        variants.append(query.replace("design pattern", "software pattern"))
        variants.append(query.replace("design pattern", "architectural pattern"))
    return variants[:MAX_QUERY_VARIANTS]


def rerank_score(score: float, query: str, pattern: PatternRecord) -> float:
    """Boost *score* for name, category and tag hits, capped at ``1.0``."""
    lowered = query.lower()
    words = [word for word in _WHITESPACE_RE.split(lowered) if word]
    adjusted = score
    if lowered in pattern.name.lower():
        adjusted *= NAME_BOOST
    category = pattern.category.lower()
    for word in words:
        if word in category:
            adjusted *= CATEGORY_BOOST
    for tag in pattern.tags:
        tag_lower = tag.lower()
        for word in words:
            if word in tag_lower:
                adjusted *= TAG_BOOST
    return min(adjusted, 1.0)


class SemanticSearchService:
    """Embed a query and search stored pattern embeddings."""

    def __init__(
        self,
        catalog: CatalogStore,
        vectors: VectorSimilarityEngine,
        embeddings: EmbeddingService,
        config: SemanticSearchConfig | None = None,
    ) -> None:
        self.catalog = catalog
        self.vectors = vectors
        self.embeddings = embeddings
        self.config = config or SemanticSearchConfig()

    async def search(
        self,
        text: str,
        *,
        categories: list[str] | None = None,
        complexity: list[str] | None = None,
        tags: list[str] | None = None,
        limit: int | None = None,
        threshold: float | None = None,
    ) -> list[SearchResult]:
        queries = expand_query(text) if self.config.use_query_expansion else [text]
        vectors = await self.embeddings.generate_embeddings(queries)
        query_vector = np.mean(np.asarray(vectors, dtype=np.float64), axis=0)

        hits = self.vectors.search_similar(
            query_vector.tolist(),
            VectorSearchFilters(
                categories=tuple(categories or ()),
                complexity=tuple(complexity or ()),
                tags=tuple(tags or ()),
            ),
            limit=limit or self.config.max_results,
            threshold=self.config.similarity_threshold if threshold is None else threshold,
        )
        patterns = self.catalog.find_by_ids([hit.entry_id for hit in hits])

        scored: list[tuple[float, PatternRecord]] = []
        for hit in hits:
            pattern = patterns.get(hit.entry_id)
            if pattern is None:
                continue
            score = hit.score
            if self.config.use_reranking:
                score = rerank_score(score, text, pattern)
            scored.append((score, pattern))
        if self.config.use_reranking:
            scored.sort(key=lambda item: -item[0])

        results = _to_results(scored)
        logger.debug(
            "Semantic search %r: %d variants, %d candidates, %d results",
            text,
            len(queries),
            len(hits),
            len(results),
        )
        return results

    def find_similar_patterns(self, pattern_id: str, limit: int | None = None) -> list[SearchResult]:
        """Patterns whose vectors are closest to the stored vector of *pattern_id*."""
        hits = self.vectors.find_similar(pattern_id, limit=limit or self.config.max_results)
        patterns = self.catalog.find_by_ids([hit.entry_id for hit in hits])
        return _to_results(
            [(hit.score, patterns[hit.entry_id]) for hit in hits if hit.entry_id in patterns]
        )

    def get_search_suggestions(self, partial_query: str, limit: int = 5) -> list[str]:
        """Pattern names and three-word phrases that contain the partial query."""
        needle = partial_query.strip().lower()
        if not needle:
            return []
        words = needle.split()
        suggestions: list[str] = []
        for pattern in self.catalog.search_text(needle, limit=limit * 2):
            if needle in pattern.name.lower():
                suggestions.append(pattern.name)
            description = pattern.description.split()
            for start in range(len(description) - 2):
                phrase = " ".join(description[start : start + 3])
                if any(word in phrase.lower() for word in words):
                    suggestions.append(phrase)
        return list(dict.fromkeys(suggestions))[:limit]


def _to_results(scored: list[tuple[float, PatternRecord]]) -> list[SearchResult]:
    return [
        SearchResult(
            pattern_id=pattern.id,
            name=pattern.name,
            category=pattern.category,
            description=pattern.description,
            score=score,
            rank=rank,
        )
        for rank, (score, pattern) in enumerate(scored, start=1)
    ]
