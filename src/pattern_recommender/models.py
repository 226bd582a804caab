from __future__ import annotations

import uuid
from typing import Literal, TypeAlias

from pydantic import BaseModel, ConfigDict, Field

MatchType: TypeAlias = Literal["keyword", "semantic", "hybrid"]


class PatternRequest(BaseModel):
    """A natural-language request for pattern recommendations"""

    id: str = Field(
        default_factory=lambda: uuid.uuid4().hex,
        description="Identifier of the request",
    )
    query: str = Field(min_length=1, description="Problem description to match against")
    categories: list[str] | None = Field(
        default=None, description="Restrict matches to these categories"
    )
    max_results: int | None = Field(
        default=None, ge=1, description="Maximum number of recommendations"
    )
    language: str | None = Field(default=None, description="Target programming language")


class ScoreBreakdown(BaseModel):
    """Per-leg scores that produced the final confidence"""

    model_config = ConfigDict(frozen=True)

    semantic_score: float = Field(default=0.0, description="Cosine similarity to the query")
    keyword_score: float = Field(default=0.0, description="Normalized keyword score")
    final_score: float = Field(description="Weighted fusion of both legs")


class Recommendation(BaseModel):
    """A ranked, justified pattern recommendation"""

    model_config = ConfigDict(frozen=True)

    pattern_id: str
    name: str
    category: str
    description: str
    confidence: float = Field(description="Final fused score")
    rank: int = Field(ge=1, description="1-based position in the result set")
    match_type: MatchType
    reasons: tuple[str, ...] = Field(min_length=1, description="Evidence for the match")
    score_breakdown: ScoreBreakdown
    problem_fit: str = Field(description="How the pattern fits the request")
    language: str | None = Field(default=None, description="Language the request targets")
    alternatives: tuple[str, ...] = Field(
        default=(), description="Other matched patterns from the same category"
    )

    @property
    def primary_reason(self) -> str:
        return self.reasons[0]

    @property
    def supporting_reasons(self) -> tuple[str, ...]:
        return self.reasons[1:]
