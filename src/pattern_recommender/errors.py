"""
Error types raised by the retrieval core.
"""

from __future__ import annotations


class PatternRecommenderError(Exception):
    """Base class for all errors raised by pattern_recommender."""


class EmbeddingError(PatternRecommenderError):
    """Base class for embedding generation problems."""


class StrategyUnavailableError(EmbeddingError):
    """Raised when an embedding strategy cannot be used."""


class GenerationFailureError(EmbeddingError):
    """Raised when a strategy fails to produce an embedding."""


class DimensionMismatchError(EmbeddingError, ValueError):
    """Raised when a vector length differs from the declared dimensions."""

    def __init__(self, expected: int, actual: int, *, context: str = "embedding") -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"{context} dimensions mismatch: expected {expected}, got {actual}"
        )


class StoreUnavailableError(PatternRecommenderError):
    """Raised when the catalog or embedding store cannot be queried."""


class InvalidClusterCountError(PatternRecommenderError, ValueError):
    """Raised when a clustering request asks for an impossible cluster count."""
