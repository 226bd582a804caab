from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

import pytest

from pattern_recommender.embeddings.base import EmbeddingStrategy, l2_normalize
from pattern_recommender.embeddings.hashing import SimpleHashStrategy
from pattern_recommender.errors import GenerationFailureError
from pattern_recommender.storage import DuckDBStorage, PatternRecord


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StubStrategy(EmbeddingStrategy):
    """Configurable strategy that records calls and can fail on demand."""

    def __init__(
        self,
        name: str = "stub",
        *,
        model_id: str = "stub-model",
        dimensions: int = 4,
        available: bool = True,
        failures: int = 0,
        fail_batches: bool = False,
        fail_texts: Sequence[str] = (),
    ) -> None:
        self.name = name
        self.model_id = model_id
        self.dimensions = dimensions
        self.available = available
        self.failures = failures
        self.fail_batches = fail_batches
        self.fail_texts = set(fail_texts)
        self.calls: list[str] = []
        self.batch_calls: list[list[str]] = []
        self.probes = 0

    def vector_for(self, text: str) -> list[float]:
        values = [float(len(text) + index + 1) for index in range(self.dimensions)]
        return l2_normalize(values)

    async def generate(self, text: str) -> list[float]:
        self.calls.append(text)
        if text in self.fail_texts:
            raise GenerationFailureError(f"{self.name} cannot embed {text!r}")
        if self.failures > 0:
            self.failures -= 1
            raise GenerationFailureError(f"{self.name} is failing")
        return self.vector_for(text)

    async def generate_batch(self, texts: Sequence[str]) -> list[list[float]]:
        self.batch_calls.append(list(texts))
        if self.fail_batches:
            raise GenerationFailureError(f"{self.name} batch failed")
        return [self.vector_for(text) for text in texts]

    async def is_available(self) -> bool:
        self.probes += 1
        return self.available


CATALOG: tuple[PatternRecord, ...] = (
    PatternRecord(
        id="factory-method",
        name="Factory Method",
        category="Creational",
        description="Define an interface for creating an object, but let subclasses decide which class to instantiate.",
        complexity="Intermediate",
        tags=("creation", "inheritance"),
    ),
    PatternRecord(
        id="singleton",
        name="Singleton",
        category="Creational",
        description="Ensure a class only has one instance and provide a global point of access to it.",
        complexity="Beginner",
        tags=("instance", "global"),
    ),
    PatternRecord(
        id="observer",
        name="Observer",
        category="Behavioral",
        description="Notify dependent objects automatically when the state of a subject changes.",
        complexity="Intermediate",
        tags=("events", "publish-subscribe"),
    ),
    PatternRecord(
        id="circuit-breaker",
        name="Circuit Breaker",
        category="Cloud",
        description="Stop calling a failing remote service until it has had time to recover.",
        complexity="Advanced",
        tags=("resilience", "fault-tolerance"),
    ),
)


@pytest.fixture(autouse=True)
def _reset_package_logger():
    yield
    package_logger = logging.getLogger("pattern_recommender")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
    package_logger.setLevel(logging.NOTSET)
    package_logger.propagate = True


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def storage(tmp_path: Path):
    store = DuckDBStorage(str(tmp_path / "catalog.duckdb"))
    for pattern in CATALOG:
        store.upsert_pattern(pattern)
    yield store
    store.close()


@pytest.fixture
def hash_strategy() -> SimpleHashStrategy:
    return SimpleHashStrategy()
