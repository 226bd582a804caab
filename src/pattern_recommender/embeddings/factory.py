"""
Selection of the best available embedding strategy.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Mapping

from ..config import Settings
from ..errors import StrategyUnavailableError
from .base import EmbeddingStrategy
from .gemini import GEMINI_NAME, GeminiStrategy
from .hashing import SIMPLE_HASH_NAME, SimpleHashStrategy
from .ollama import OLLAMA_NAME, OllamaStrategy
from .sbert import TRANSFORMERS_NAME, SentenceTransformerStrategy


logger = logging.getLogger(__name__)

StrategyBuilder = Callable[[], EmbeddingStrategy]

FALLBACK_ORDER: tuple[str, ...] = (TRANSFORMERS_NAME, OLLAMA_NAME, GEMINI_NAME)


@dataclass(frozen=True)
class StrategyStatus:
    name: str
    available: bool
    model: str


def default_builders(settings: Settings) -> dict[str, StrategyBuilder]:
    """Builders for every known strategy, configured from *settings*."""
    dim = settings.embedding_dimensions
    return {
        TRANSFORMERS_NAME: lambda: SentenceTransformerStrategy(
            model=settings.transformers_model,
            dim=dim,
            load_timeout=settings.model_load_timeout,
        ),
        OLLAMA_NAME: lambda: OllamaStrategy(
            base_url=settings.ollama_base_url,
            model=settings.ollama_model,
            dim=dim,
            timeout=settings.strategy_timeout,
            probe_timeout=settings.probe_timeout,
            unavailable_ttl=settings.unavailable_ttl,
        ),
        GEMINI_NAME: lambda: GeminiStrategy(
            model=settings.gemini_model,
            dim=dim,
            probe_timeout=settings.probe_timeout,
            unavailable_ttl=settings.unavailable_ttl,
        ),
        SIMPLE_HASH_NAME: lambda: SimpleHashStrategy(dim),
    }


class EmbeddingStrategyFactory:
    """Create embedding strategies and pick the best one that is available.

    The preferred strategy is tried first, then the remaining model-backed
    strategies in ``FALLBACK_ORDER``, then the deterministic hash strategy
    when ``fallback_to_simple`` is enabled. The winner is remembered until
    :meth:`clear_cache` is called.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        builders: Mapping[str, StrategyBuilder] | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self._builders: dict[str, StrategyBuilder] = dict(
            builders if builders is not None else default_builders(self.settings)
        )
        self._instances: dict[str, EmbeddingStrategy] = {}
        self._selected: dict[tuple[str, str], EmbeddingStrategy] = {}

    @property
    def strategy_names(self) -> list[str]:
        return list(self._builders)

    def _cache_key(self) -> tuple[str, str]:
        return (self.settings.preferred_strategy, self.settings.ollama_base_url)

    def _candidate_order(self) -> list[str]:
        preferred = self.settings.preferred_strategy
        if preferred == SIMPLE_HASH_NAME:
            return [SIMPLE_HASH_NAME]
        return [preferred, *(name for name in FALLBACK_ORDER if name != preferred)]

    def create_specific_strategy(self, name: str) -> EmbeddingStrategy | None:
        """Return the strategy registered under *name*, or ``None`` if unknown."""
        cached = self._instances.get(name)
        if cached is not None:
            return cached
        builder = self._builders.get(name)
        if builder is None:
            return None
        strategy = builder()
        self._instances[name] = strategy
        return strategy

    async def create_strategy(self) -> EmbeddingStrategy:
        key = self._cache_key()
        cached = self._selected.get(key)
        if cached is not None:
            return cached

        for name in self._candidate_order():
            strategy = self.create_specific_strategy(name)
            if strategy is None:
                continue
            if await strategy.is_available():
                if name == self.settings.preferred_strategy:
                    logger.info("Using %s embedding strategy", strategy.name)
                else:
                    logger.warning("Falling back to %s embedding strategy", strategy.name)
                self._selected[key] = strategy
                return strategy
            logger.debug("Embedding strategy %s is unavailable", name)

        if self.settings.fallback_to_simple:
            strategy = self.create_specific_strategy(SIMPLE_HASH_NAME) or SimpleHashStrategy(
                self.settings.embedding_dimensions
            )
            logger.warning("Using simple hash embedding strategy as final fallback")
            self._selected[key] = strategy
            return strategy

        raise StrategyUnavailableError("No embedding strategy available")

    async def get_available_strategies(self) -> list[StrategyStatus]:
        """Probe every registered strategy concurrently."""
        strategies = [
            strategy
            for strategy in (self.create_specific_strategy(name) for name in self._builders)
            if strategy is not None
        ]
        flags = await asyncio.gather(*(strategy.is_available() for strategy in strategies))
        return [
            StrategyStatus(name=strategy.name, available=bool(flag), model=strategy.model_id)
            for strategy, flag in zip(strategies, flags)
        ]

    def clear_cache(self) -> None:
        """Forget the selected strategy and every built instance."""
        self._selected.clear()
        self._instances.clear()
