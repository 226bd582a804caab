"""
Exact-term scoring of catalog entries against a query.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from ..storage.base import PatternRecord


NAME_WEIGHT = 1.0
CATEGORY_WEIGHT = 0.75
TEXT_WEIGHT = 0.5
SCORE_DIVISOR = 10.0
SCORE_CAP = 0.99
MIN_TOKEN_LENGTH = 3

_PUNCTUATION_RE = re.compile(r"[^\w\s]")


def tokenize_query(query: str) -> list[str]:
    """Lowercase, replace punctuation with spaces, drop tokens of two characters or fewer."""
    cleaned = _PUNCTUATION_RE.sub(" ", query.lower())
    return [token for token in cleaned.split() if len(token) >= MIN_TOKEN_LENGTH]


@dataclass(frozen=True)
class KeywordMatch:
    pattern: PatternRecord
    raw_score: float
    score: float
    reasons: tuple[str, ...]


class KeywordScorer:
    """Weighted hit count: name hits count most, then category, then free text."""

    def score_pattern(self, tokens: list[str], pattern: PatternRecord) -> KeywordMatch:
        name = pattern.name.lower()
        category = pattern.category.lower()
        description = pattern.description.lower()
        tags = [tag.lower() for tag in pattern.tags]

        raw = 0.0
        reasons: list[str] = []
        for token in tokens:
            if token in name:
                raw += NAME_WEIGHT
                reasons.append(f"pattern name contains '{token}'")
            if token in category:
                raw += CATEGORY_WEIGHT
                reasons.append(f"pattern category matches '{token}'")
            in_description = token in description
            in_tags = any(token in tag for tag in tags)
            if in_description or in_tags:
                raw += TEXT_WEIGHT
                if in_description:
                    reasons.append(f"pattern description mentions '{token}'")
                else:
                    reasons.append(f"pattern tags include '{token}'")

        return KeywordMatch(
            pattern=pattern,
            raw_score=raw,
            score=normalize_keyword_score(raw),
            reasons=tuple(reasons),
        )

    def score_patterns(
        self,
        query: str,
        patterns: list[PatternRecord],
        *,
        min_confidence: float = 0.0,
    ) -> list[KeywordMatch]:
        """Score *patterns* in catalog order, keeping those at or above *min_confidence*."""
        tokens = tokenize_query(query)
        if not tokens:
            return []
        matches = []
        for pattern in patterns:
            match = self.score_pattern(tokens, pattern)
            if match.raw_score > 0 and match.score >= min_confidence:
                matches.append(match)
        return matches


def normalize_keyword_score(raw: float) -> float:
    return min(raw / SCORE_DIVISOR, SCORE_CAP)
