"""
Hybrid pattern matching: keyword scoring fused with vector similarity.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field

from ..cache import Cache
from ..config import Settings
from ..embeddings.service import EmbeddingService
from ..errors import EmbeddingError
from ..models import MatchType, PatternRequest, Recommendation, ScoreBreakdown
from ..storage.base import CatalogStore, PatternRecord
from .keyword import KeywordScorer
from .vectors import SimilarityHit, VectorSearchFilters, VectorSimilarityEngine


logger = logging.getLogger(__name__)

RESULT_CACHE_PREFIX = "pattern_match:"
DEFAULT_REASON = "pattern matches query requirements"
MAX_ALTERNATIVES = 3


@dataclass(frozen=True)
class MatcherConfig:
    max_results: int = 5
    min_confidence: float = 0.3
    use_semantic_search: bool = True
    use_keyword_search: bool = True
    semantic_weight: float = 0.7
    keyword_weight: float = 0.3
    result_ttl: float = 1800.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "MatcherConfig":
        return cls(
            max_results=settings.max_results,
            min_confidence=settings.min_confidence,
            use_semantic_search=settings.use_semantic_search,
            use_keyword_search=settings.use_keyword_search,
            semantic_weight=settings.semantic_weight,
            keyword_weight=settings.keyword_weight,
            result_ttl=settings.result_cache_ttl,
        )


def fuse_scores(
    semantic_score: float,
    keyword_score: float,
    *,
    semantic_weight: float,
    keyword_weight: float,
) -> float:
    """Weighted mean of both legs; a missing leg contributes ``0``."""
    total = semantic_weight + keyword_weight
    if total <= 0:
        raise ValueError("semantic_weight + keyword_weight must be positive")
    return (semantic_weight * semantic_score + keyword_weight * keyword_score) / total


def result_cache_key(request: PatternRequest) -> str:
    options = json.dumps(
        {
            "categories": sorted(request.categories) if request.categories else None,
            "max_results": request.max_results,
            "language": request.language,
        },
        sort_keys=True,
    )
    return f"{RESULT_CACHE_PREFIX}{request.query}:{options}"


@dataclass
class _Candidate:
    pattern: PatternRecord
    semantic_score: float | None = None
    keyword_score: float | None = None
    semantic_reasons: list[str] = field(default_factory=list)
    keyword_reasons: list[str] = field(default_factory=list)

    @property
    def match_type(self) -> MatchType:
        if self.semantic_score is not None and self.keyword_score is not None:
            return "hybrid"
        if self.semantic_score is not None:
            return "semantic"
        return "keyword"


class PatternMatcher:
    """Find the catalog patterns that best answer a request."""

    def __init__(
        self,
        catalog: CatalogStore,
        vectors: VectorSimilarityEngine,
        embeddings: EmbeddingService,
        *,
        cache: Cache | None = None,
        config: MatcherConfig | None = None,
        keyword_scorer: KeywordScorer | None = None,
    ) -> None:
        self.catalog = catalog
        self.vectors = vectors
        self.embeddings = embeddings
        self.cache = cache
        self.config = config or MatcherConfig()
        self.keyword_scorer = keyword_scorer or KeywordScorer()

    async def find_matching_patterns(self, request: PatternRequest) -> list[Recommendation]:
        cache_key = result_cache_key(request)
        if self.cache is not None:
            cached = self.cache.get(cache_key)
            if cached is not None:
                logger.debug("Serving cached matches for %r", request.query)
                return list(cached)

        candidates: dict[str, _Candidate] = {}
        degraded = False
        if self.config.use_semantic_search:
            degraded = not await self._semantic_leg(request, candidates)
        if self.config.use_keyword_search:
            self._keyword_leg(request, candidates)

        recommendations = self._rank(request, list(candidates.values()))
        if degraded:
            logger.debug("Keyword-only matches for %r are not cached", request.query)
        elif self.cache is not None:
            self.cache.set(cache_key, recommendations, self.config.result_ttl)
        return list(recommendations)

    async def _semantic_leg(
        self, request: PatternRequest, candidates: dict[str, _Candidate]
    ) -> bool:
        """Add vector hits to *candidates*; false when the leg failed."""
        try:
            query_vector = await self.embeddings.generate_embedding(request.query)
            hits = self.vectors.search_similar(
                query_vector,
                VectorSearchFilters(categories=tuple(request.categories or ())),
                limit=len(self.vectors),
            )
        except EmbeddingError as exc:
            logger.warning(
                "Semantic search failed for %r, continuing with keyword matches only: %s",
                request.query,
                exc,
            )
            return False

        patterns = self.catalog.find_by_ids([hit.entry_id for hit in hits])
        for hit in hits:
            pattern = patterns.get(hit.entry_id)
            if pattern is None:
                logger.debug("Vector for unknown pattern %s ignored", hit.entry_id)
                continue
            candidates[hit.entry_id] = _Candidate(
                pattern=pattern,
                semantic_score=hit.score,
                semantic_reasons=[_semantic_reason(hit)],
            )
        return True

    def _keyword_leg(self, request: PatternRequest, candidates: dict[str, _Candidate]) -> None:
        patterns = self.catalog.find_all(categories=request.categories or None)
        matches = self.keyword_scorer.score_patterns(
            request.query, patterns, min_confidence=self.config.min_confidence
        )
        for match in matches:
            candidate = candidates.get(match.pattern.id)
            if candidate is None:
                candidate = _Candidate(pattern=match.pattern)
                candidates[match.pattern.id] = candidate
            candidate.keyword_score = match.score
            candidate.keyword_reasons = list(match.reasons)

    def _rank(
        self, request: PatternRequest, candidates: list[_Candidate]
    ) -> list[Recommendation]:
        scored = [
            (
                fuse_scores(
                    candidate.semantic_score or 0.0,
                    candidate.keyword_score or 0.0,
                    semantic_weight=self.config.semantic_weight,
                    keyword_weight=self.config.keyword_weight,
                ),
                candidate,
            )
            for candidate in candidates
        ]
        scored.sort(key=lambda item: -item[0])
        limit = request.max_results or self.config.max_results
        ranked = [candidate.pattern for _, candidate in scored]

        recommendations: list[Recommendation] = []
        for rank, (final_score, candidate) in enumerate(scored[:limit], start=1):
            pattern = candidate.pattern
            reasons = candidate.semantic_reasons + candidate.keyword_reasons
            recommendations.append(
                Recommendation(
                    pattern_id=pattern.id,
                    name=pattern.name,
                    category=pattern.category,
                    description=pattern.description,
                    confidence=final_score,
                    rank=rank,
                    match_type=candidate.match_type,
                    reasons=tuple(reasons or [DEFAULT_REASON]),
                    score_breakdown=ScoreBreakdown(
                        semantic_score=candidate.semantic_score or 0.0,
                        keyword_score=candidate.keyword_score or 0.0,
                        final_score=final_score,
                    ),
                    problem_fit=_problem_fit(request, pattern),
                    language=request.language,
                    alternatives=_alternatives(pattern, ranked),
                )
            )
        return recommendations


def _semantic_reason(hit: SimilarityHit) -> str:
    return f"semantic similarity: {hit.score * 100:.1f}%"


def _problem_fit(request: PatternRequest, pattern: PatternRecord) -> str:
    fit = (
        f"This pattern addresses your requirement for '{request.query}' by providing "
        f"a proven solution for {pattern.category.lower()} scenarios"
    )
    if request.language:
        return f"{fit} in {request.language}."
    return f"{fit}."


def _alternatives(
    pattern: PatternRecord, ranked: list[PatternRecord], limit: int = MAX_ALTERNATIVES
) -> tuple[str, ...]:
    """Other matched patterns of the same category, best first."""
    return tuple(
        other.id
        for other in ranked
        if other.id != pattern.id and other.category == pattern.category
    )[:limit]
