"""
Embedding strategy backed by the Google GenAI embedding API.

Requests ask for ``output_dimensionality`` equal to the configured dimension
so the vectors line up with the rest of the catalog.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from typing import Any, Callable, Sequence

import httpx
from google.genai import Client as GenAIClient
from google.genai import errors as genai_errors

from ..errors import GenerationFailureError, StrategyUnavailableError
from .base import EmbeddingStrategy


logger = logging.getLogger(__name__)

GEMINI_NAME = "gemini"
_DEFAULT_MODEL = "gemini-embedding-001"
_DEFAULT_DIM = 384
_TRANSPORT_ERRORS = (genai_errors.APIError, httpx.HTTPError, OSError)


class GeminiStrategy(EmbeddingStrategy):
    """Generate text embeddings via Google GenAI."""

    name = GEMINI_NAME

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str = _DEFAULT_MODEL,
        dim: int = _DEFAULT_DIM,
        task_type: str = "SEMANTIC_SIMILARITY",
        probe_timeout: float = 5.0,
        unavailable_ttl: float = 60.0,
        client: Any | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.model_id = model
        self.dimensions = dim
        self.task_type = task_type
        self.probe_timeout = probe_timeout
        self.unavailable_ttl = unavailable_ttl
        self._clock = clock
        self._unavailable_until: float | None = None

        if client is not None:
            self._client = client
        else:
            resolved_key = api_key or os.getenv("GOOGLE_API_KEY")
            self._client = GenAIClient(api_key=resolved_key) if resolved_key else None

    def _require_client(self) -> Any:
        if self._client is None:
            raise StrategyUnavailableError(
                "GOOGLE_API_KEY not found. Provide api_key or set the environment variable."
            )
        return self._client

    async def generate(self, text: str) -> list[float]:
        vectors = await self.generate_batch([text])
        return vectors[0]

    async def generate_batch(self, texts: Sequence[str]) -> list[list[float]]:
        if not texts:
            return []
        client = self._require_client()
        try:
            result = await client.aio.models.embed_content(
                model=self.model_id,
                contents=list(texts),
                config={
                    "task_type": self.task_type,
                    "output_dimensionality": self.dimensions,
                },
            )
        except _TRANSPORT_ERRORS as exc:
            raise GenerationFailureError(f"Gemini embedding generation failed: {exc}") from exc

        embeddings = list(result.embeddings or [])
        if len(embeddings) != len(texts):
            raise GenerationFailureError(
                f"Gemini returned {len(embeddings)} embeddings for {len(texts)} texts"
            )
        return [self._check_dimensions(list(emb.values or [])) for emb in embeddings]

    async def is_available(self) -> bool:
        if self._client is None:
            return False
        now = self._clock()
        if self._unavailable_until is not None and now < self._unavailable_until:
            return False

        try:
            await asyncio.wait_for(
                self._client.aio.models.get(model=self.model_id),
                timeout=self.probe_timeout,
            )
        except (asyncio.TimeoutError, *_TRANSPORT_ERRORS) as exc:
            logger.debug("Gemini probe for %s failed: %s", self.model_id, exc)
            self._unavailable_until = now + self.unavailable_ttl
            return False

        self._unavailable_until = None
        return True
