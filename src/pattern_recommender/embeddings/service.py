"""
Embedding service: the single entry point the rest of the system uses to
turn text into vectors.

It wraps the active strategy with a cache lookup, bounded retries and a
per-attempt timeout. When the active strategy keeps failing, the
deterministic hash strategy produces the vector instead so callers always
get a result of the right length.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Sequence

from tenacity import (
    AsyncRetrying,
    RetryError,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from ..cache import Cache
from ..config import Settings
from ..errors import EmbeddingError, StrategyUnavailableError
from .base import EmbeddingStrategy
from .factory import EmbeddingStrategyFactory, StrategyStatus
from .hashing import SimpleHashStrategy


logger = logging.getLogger(__name__)

EMBEDDING_CACHE_PREFIX = "embedding:"
_RETRYABLE = (EmbeddingError, asyncio.TimeoutError, OSError)


@dataclass(frozen=True)
class EmbeddingServiceConfig:
    cache_enabled: bool = True
    cache_ttl: float = 3600.0
    batch_size: int = 10
    retry_attempts: int = 3
    retry_delay: float = 1.0
    timeout: float = 30.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "EmbeddingServiceConfig":
        return cls(
            cache_enabled=settings.embedding_cache_enabled,
            cache_ttl=settings.embedding_cache_ttl,
            batch_size=settings.embedding_batch_size,
            retry_attempts=settings.retry_attempts,
            retry_delay=settings.retry_delay,
            timeout=settings.strategy_timeout,
        )


@dataclass(frozen=True)
class StrategyInfo:
    """Active strategy plus the strategy that produced the latest vector."""

    name: str
    model_id: str
    dimensions: int
    last_used: str | None
    fallback_count: int


@dataclass(frozen=True)
class EmbeddedText:
    """A generated vector and the strategy that produced it.

    ``fallback`` is true when the active strategy failed and the hash
    strategy stood in; such vectors are never cached.
    """

    vector: list[float]
    strategy: str
    fallback: bool


def embedding_cache_key(text: str) -> str:
    return f"{EMBEDDING_CACHE_PREFIX}{text}"


class EmbeddingService:
    """Cached, retrying, fallback-protected access to the active strategy."""

    def __init__(
        self,
        factory: EmbeddingStrategyFactory,
        cache: Cache | None = None,
        config: EmbeddingServiceConfig | None = None,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.factory = factory
        self.cache = cache
        self.config = config or EmbeddingServiceConfig()
        if self.config.retry_attempts < 1:
            raise ValueError("retry_attempts must be >= 1")
        if self.config.batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self._sleep = sleep
        self._strategy: EmbeddingStrategy | None = None
        self._fallback: SimpleHashStrategy | None = None
        self._last_used: str | None = None
        self._fallback_count = 0

    @property
    def strategy(self) -> EmbeddingStrategy | None:
        return self._strategy

    async def initialize(self) -> EmbeddingStrategy:
        """Select the best available strategy through the factory."""
        try:
            self._strategy = await self.factory.create_strategy()
        except StrategyUnavailableError:
            logger.error("Failed to initialize an embedding strategy")
            raise
        self._fallback = None
        logger.info("Embedding service initialized with %s strategy", self._strategy.name)
        return self._strategy

    async def _active(self) -> EmbeddingStrategy:
        if self._strategy is None:
            return await self.initialize()
        return self._strategy

    async def is_ready(self) -> bool:
        if self._strategy is None:
            try:
                await self.initialize()
            except StrategyUnavailableError:
                return False
        strategy = self._strategy
        if strategy is None:
            return False
        return await strategy.is_available()

    def get_strategy_info(self) -> StrategyInfo | None:
        if self._strategy is None:
            return None
        return StrategyInfo(
            name=self._strategy.name,
            model_id=self._strategy.model_id,
            dimensions=self._strategy.dimensions,
            last_used=self._last_used,
            fallback_count=self._fallback_count,
        )

    async def get_available_strategies(self) -> list[StrategyStatus]:
        return await self.factory.get_available_strategies()

    async def switch_strategy(self, name: str) -> EmbeddingStrategy:
        """Make *name* the active strategy if it exists and is available."""
        candidate = self.factory.create_specific_strategy(name)
        if candidate is None or not await candidate.is_available():
            logger.error("Failed to switch to %s strategy", name)
            raise StrategyUnavailableError(f"Strategy {name} is not available")
        self._strategy = candidate
        self._fallback = None
        logger.info("Switched to %s embedding strategy", name)
        return candidate

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def generate_embedding(self, text: str) -> list[float]:
        return (await self.generate_embedding_result(text)).vector

    async def generate_embedding_result(self, text: str) -> EmbeddedText:
        """Embed *text* and report which strategy produced the vector."""
        cached = self._cached(text)
        if cached is not None:
            return EmbeddedText(cached, strategy="cache", fallback=False)

        strategy = await self._active()
        result = await self._generate_one(strategy, text)
        if not result.fallback:
            self._store(text, result.vector)
        return result

    async def generate_embeddings(self, texts: Sequence[str]) -> list[list[float]]:
        """Embed *texts* in order, serving cached vectors where possible."""
        return [result.vector for result in await self.generate_embedding_results(texts)]

    async def generate_embedding_results(self, texts: Sequence[str]) -> list[EmbeddedText]:
        """Like :meth:`generate_embeddings`, keeping per-text provenance."""
        results: list[EmbeddedText | None] = [None] * len(texts)
        pending: list[tuple[int, str]] = []
        for index, text in enumerate(texts):
            cached = self._cached(text)
            if cached is not None:
                results[index] = EmbeddedText(cached, strategy="cache", fallback=False)
            else:
                pending.append((index, text))

        if pending:
            strategy = await self._active()
            size = self.config.batch_size
            for start in range(0, len(pending), size):
                batch = pending[start : start + size]
                generated = await self._generate_batch(strategy, [text for _, text in batch])
                for (index, _), result in zip(batch, generated):
                    results[index] = result

        return [result for result in results if result is not None]

    async def _generate_batch(
        self, strategy: EmbeddingStrategy, texts: list[str]
    ) -> list[EmbeddedText]:
        try:
            vectors = await asyncio.wait_for(
                strategy.generate_batch(texts), timeout=self.config.timeout
            )
            if len(vectors) != len(texts):
                raise EmbeddingError(
                    f"{strategy.name} returned {len(vectors)} vectors for {len(texts)} texts"
                )
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Batch embedding with %s failed, falling back to individual processing: %s",
                strategy.name,
                exc,
            )
            results: list[EmbeddedText] = []
            for text in texts:
                result = await self._generate_one(strategy, text)
                if not result.fallback:
                    self._store(text, result.vector)
                results.append(result)
            return results

        self._last_used = strategy.name
        for text, vector in zip(texts, vectors):
            self._store(text, vector)
        return [EmbeddedText(vector, strategy=strategy.name, fallback=False) for vector in vectors]

    async def _generate_one(self, strategy: EmbeddingStrategy, text: str) -> EmbeddedText:
        try:
            vector = await self._generate_with_retry(strategy, text)
        except RetryError as exc:
            cause = exc.last_attempt.exception()
            logger.warning(
                "Embedding generation with %s failed after %d attempts (%s)",
                strategy.name,
                self.config.retry_attempts,
                cause,
            )
            return await self._generate_fallback(strategy, text)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Embedding generation with %s raised %s: %s",
                strategy.name,
                type(exc).__name__,
                exc,
            )
            return await self._generate_fallback(strategy, text)

        self._last_used = strategy.name
        return EmbeddedText(vector, strategy=strategy.name, fallback=False)

    async def _generate_fallback(self, strategy: EmbeddingStrategy, text: str) -> EmbeddedText:
        self._fallback_count += 1
        fallback = self._fallback_strategy(strategy)
        logger.warning("Using %s embeddings in place of %s", fallback.name, strategy.name)
        vector = await fallback.generate(text)
        self._last_used = fallback.name
        return EmbeddedText(vector, strategy=fallback.name, fallback=True)

    async def _generate_with_retry(self, strategy: EmbeddingStrategy, text: str) -> list[float]:
        delay = self.config.retry_delay
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.config.retry_attempts),
            wait=wait_incrementing(start=delay, increment=delay),
            retry=retry_if_exception_type(_RETRYABLE),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            sleep=self._sleep,
        )
        return await retrying(self._attempt, strategy, text)

    async def _attempt(self, strategy: EmbeddingStrategy, text: str) -> list[float]:
        return await asyncio.wait_for(strategy.generate(text), timeout=self.config.timeout)

    def _fallback_strategy(self, strategy: EmbeddingStrategy) -> SimpleHashStrategy:
        if self._fallback is None or self._fallback.dimensions != strategy.dimensions:
            self._fallback = SimpleHashStrategy(strategy.dimensions)
        return self._fallback

    def _cached(self, text: str) -> list[float] | None:
        if self.cache is None or not self.config.cache_enabled:
            return None
        cached = self.cache.get(embedding_cache_key(text))
        return list(cached) if cached is not None else None

    def _store(self, text: str, vector: list[float]) -> None:
        if self.cache is not None and self.config.cache_enabled:
            self.cache.set(embedding_cache_key(text), list(vector), self.config.cache_ttl)
