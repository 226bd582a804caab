"""
In-process embeddings via sentence-transformers.

The model is loaded on first use, exactly once. A load failure, or a load
that outlasts ``load_timeout``, marks the strategy as unavailable for the
lifetime of the instance instead of being retried.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Sequence

from ..errors import GenerationFailureError, StrategyUnavailableError
from .base import EmbeddingStrategy


logger = logging.getLogger(__name__)

TRANSFORMERS_NAME = "transformers"
_DEFAULT_MODEL = "all-MiniLM-L6-v2"
_DEFAULT_DIM = 384
_DEFAULT_LOAD_TIMEOUT = 120.0


def _load_sentence_transformer(model_name: str) -> Any:
    from sentence_transformers import SentenceTransformer

    return SentenceTransformer(model_name)


class SentenceTransformerStrategy(EmbeddingStrategy):
    """Embed text with a local sentence-transformers model."""

    name = TRANSFORMERS_NAME

    def __init__(
        self,
        *,
        model: str = _DEFAULT_MODEL,
        dim: int = _DEFAULT_DIM,
        model_loader: Callable[[str], Any] | None = None,
        load_timeout: float = _DEFAULT_LOAD_TIMEOUT,
    ) -> None:
        self.model_id = model
        self.dimensions = dim
        self._model_loader = model_loader or _load_sentence_transformer
        self.load_timeout = load_timeout
        self._model: Any | None = None
        self._initialized = False
        self._init_lock = asyncio.Lock()

    async def _ensure_model(self) -> Any | None:
        if self._initialized:
            return self._model
        async with self._init_lock:
            if self._initialized:
                return self._model
            try:
                self._model = await asyncio.wait_for(
                    asyncio.to_thread(self._model_loader, self.model_id),
                    timeout=self.load_timeout,
                )
            except asyncio.TimeoutError:
                logger.warning(
                    "sentence-transformers model %s did not load within %.1fs",
                    self.model_id,
                    self.load_timeout,
                )
                self._model = None
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "sentence-transformers model %s unavailable: %s", self.model_id, exc
                )
                self._model = None
            self._initialized = True
        return self._model

    async def is_available(self) -> bool:
        return await self._ensure_model() is not None

    async def generate(self, text: str) -> list[float]:
        vectors = await self.generate_batch([text])
        return vectors[0]

    async def generate_batch(self, texts: Sequence[str]) -> list[list[float]]:
        model = await self._ensure_model()
        if model is None:
            raise StrategyUnavailableError(
                f"sentence-transformers model {self.model_id} is not available"
            )
        if not texts:
            return []
        try:
            encoded = await asyncio.to_thread(
                model.encode,
                list(texts),
                normalize_embeddings=True,
                convert_to_numpy=True,
            )
        except Exception as exc:  # noqa: BLE001
            raise GenerationFailureError(
                f"sentence-transformers embedding failed: {exc}"
            ) from exc

        rows = encoded.tolist() if hasattr(encoded, "tolist") else list(encoded)
        if len(rows) != len(texts):
            raise GenerationFailureError(
                f"sentence-transformers returned {len(rows)} vectors for {len(texts)} texts"
            )
        return [self._check_dimensions(row) for row in rows]
