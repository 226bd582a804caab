"""
Embeddings served by a local Ollama instance.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

import httpx

from ..errors import GenerationFailureError
from .base import EmbeddingStrategy


logger = logging.getLogger(__name__)

OLLAMA_NAME = "ollama"
_DEFAULT_BASE_URL = "http://localhost:11434"
_DEFAULT_MODEL = "all-minilm:l6-v2"
_DEFAULT_DIM = 384
_EMBEDDING_MODEL_MARKERS = ("all-minilm", "embedding")


class OllamaStrategy(EmbeddingStrategy):
    """Embed text through Ollama's ``/api/embeddings`` endpoint.

    Availability is probed with ``GET /api/tags`` and a short timeout. A
    negative probe is remembered for ``unavailable_ttl`` seconds.
    """

    name = OLLAMA_NAME

    def __init__(
        self,
        *,
        base_url: str = _DEFAULT_BASE_URL,
        model: str = _DEFAULT_MODEL,
        dim: int = _DEFAULT_DIM,
        timeout: float = 30.0,
        probe_timeout: float = 5.0,
        unavailable_ttl: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model_id = model
        self.dimensions = dim
        self.timeout = timeout
        self.probe_timeout = probe_timeout
        self.unavailable_ttl = unavailable_ttl
        self._transport = transport
        self._clock = clock
        self._unavailable_until: float | None = None

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout),
            transport=self._transport,
        )

    async def generate(self, text: str) -> list[float]:
        try:
            async with self._client(self.timeout) as client:
                response = await client.post(
                    "/api/embeddings",
                    json={"model": self.model_id, "prompt": text},
                )
                response.raise_for_status()
                payload: Any = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise GenerationFailureError(f"Ollama embedding generation failed: {exc}") from exc

        embedding = payload.get("embedding") if isinstance(payload, dict) else None
        if not isinstance(embedding, list):
            raise GenerationFailureError("Ollama response did not contain an embedding")
        return self._check_dimensions(embedding)

    async def is_available(self) -> bool:
        now = self._clock()
        if self._unavailable_until is not None and now < self._unavailable_until:
            return False

        available = await self._probe()
        if available:
            self._unavailable_until = None
        else:
            self._unavailable_until = now + self.unavailable_ttl
        return available

    async def _probe(self) -> bool:
        try:
            async with self._client(self.probe_timeout) as client:
                response = await client.get("/api/tags")
                if response.status_code != 200:
                    return False
                payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.debug("Ollama probe at %s failed: %s", self.base_url, exc)
            return False

        models = payload.get("models") if isinstance(payload, dict) else None
        if not isinstance(models, list):
            return False
        for entry in models:
            name = str(entry.get("name", "")) if isinstance(entry, dict) else ""
            if any(marker in name for marker in _EMBEDDING_MODEL_MARKERS):
                return True
        return False
