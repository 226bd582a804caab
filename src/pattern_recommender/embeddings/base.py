"""
Common contract shared by every embedding strategy.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Sequence

from ..errors import DimensionMismatchError, GenerationFailureError


@dataclass(frozen=True)
class StrategyDescriptor:
    """Identity of a strategy: what it is called and what it produces."""

    name: str
    model_id: str
    dimensions: int


class EmbeddingStrategy(ABC):
    """A way of turning text into a fixed-length vector.

    Strategies own any model handle they need and initialize it lazily.
    ``is_available`` must never raise and must be safe to call before the
    first ``generate``.
    """

    name: str
    model_id: str
    dimensions: int

    @property
    def descriptor(self) -> StrategyDescriptor:
        return StrategyDescriptor(
            name=self.name,
            model_id=self.model_id,
            dimensions=self.dimensions,
        )

    @abstractmethod
    async def generate(self, text: str) -> list[float]:
        """Embed one text."""

    async def generate_batch(self, texts: Sequence[str]) -> list[list[float]]:
        """Embed several texts, preserving order."""
        return [await self.generate(text) for text in texts]

    @abstractmethod
    async def is_available(self) -> bool:
        """Return whether the strategy can currently produce embeddings."""

    def _check_dimensions(self, vector: Sequence[float]) -> list[float]:
        if len(vector) != self.dimensions:
            raise DimensionMismatchError(
                self.dimensions, len(vector), context=f"{self.name} embedding"
            )
        try:
            return [float(value) for value in vector]
        except (TypeError, ValueError) as exc:
            raise GenerationFailureError(
                f"{self.name} returned a non-numeric embedding: {exc}"
            ) from exc

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(name={self.name!r}, model_id={self.model_id!r}, "
            f"dimensions={self.dimensions})"
        )


def l2_normalize(values: Sequence[float]) -> list[float]:
    """Scale *values* to unit length. A zero vector is returned unchanged."""
    # Left-to-right accumulation, not sum(), so results match across
    # interpreter versions.
    squares = 0.0
    for value in values:
        squares += value * value
    divisor = math.sqrt(squares) or 1.0
    return [value / divisor for value in values]
