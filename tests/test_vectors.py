"""Tests for cosine search and clustering."""

from __future__ import annotations

import numpy as np
import pytest

from pattern_recommender.errors import DimensionMismatchError, InvalidClusterCountError
from pattern_recommender.search.vectors import (
    VectorConfig,
    VectorSearchFilters,
    VectorSimilarityEngine,
    cosine_similarity,
)
from pattern_recommender.storage import DuckDBStorage


def _engine(dimensions: int = 3, **kwargs) -> VectorSimilarityEngine:
    return VectorSimilarityEngine(
        VectorConfig(model_id="test-model", dimensions=dimensions, similarity_threshold=0.0),
        **kwargs,
    )


@pytest.mark.parametrize("seed", [0, 1, 2, 3, 4])
def test_cosine_of_vector_with_itself_and_its_negation(seed: int) -> None:
    vector = np.random.default_rng(seed).normal(size=384)

    assert cosine_similarity(vector, vector) == pytest.approx(1.0)
    assert cosine_similarity(vector, -vector) == pytest.approx(-1.0)


def test_cosine_with_zero_vector_is_zero() -> None:
    assert cosine_similarity([0.0, 0.0], [1.0, 2.0]) == 0.0


def test_store_rejects_wrong_dimensions() -> None:
    engine = _engine()

    with pytest.raises(DimensionMismatchError):
        engine.store_embedding("a", [1.0, 0.0])
    assert len(engine) == 0


def test_restoring_replaces_vector() -> None:
    engine = _engine()
    engine.store_embedding("a", [1.0, 0.0, 0.0])
    engine.store_embedding("a", [0.0, 1.0, 0.0])

    assert len(engine) == 1
    assert engine.get_embedding("a") == [0.0, 1.0, 0.0]


def test_search_sorts_thresholds_then_limits() -> None:
    engine = _engine()
    engine.store_embedding("far", [0.0, 0.0, 1.0])
    engine.store_embedding("close", [1.0, 0.1, 0.0])
    engine.store_embedding("exact", [1.0, 0.0, 0.0])
    engine.store_embedding("mid", [1.0, 1.0, 0.0])

    hits = engine.search_similar([1.0, 0.0, 0.0], threshold=0.5, limit=2)

    assert [hit.entry_id for hit in hits] == ["exact", "close"]
    assert [hit.rank for hit in hits] == [1, 2]
    assert hits[0].score == pytest.approx(1.0)


def test_threshold_never_admits_lower_scores() -> None:
    rng = np.random.default_rng(42)
    engine = _engine(dimensions=16)
    for index in range(50):
        engine.store_embedding(f"v{index}", rng.normal(size=16).tolist())
    query = rng.normal(size=16)

    hits = engine.search_similar(query.tolist(), threshold=0.9, limit=100)

    for hit in hits:
        true_score = cosine_similarity(engine.get_embedding(hit.entry_id), query)
        assert true_score >= 0.9


def test_search_keeps_negative_scores_when_threshold_allows() -> None:
    engine = _engine()
    engine.store_embedding("opposite", [-1.0, 0.0, 0.0])

    hits = engine.search_similar([1.0, 0.0, 0.0], threshold=-1.0)

    assert hits[0].score == pytest.approx(-1.0)


def test_ties_keep_insertion_order() -> None:
    engine = _engine()
    for entry_id in ("b", "a", "c"):
        engine.store_embedding(entry_id, [1.0, 0.0, 0.0])

    hits = engine.search_similar([1.0, 0.0, 0.0])

    assert [hit.entry_id for hit in hits] == ["b", "a", "c"]


def test_search_filters_by_catalog_metadata(storage: DuckDBStorage) -> None:
    engine = _engine(catalog=storage)
    engine.store_embedding("factory-method", [1.0, 0.0, 0.0])
    engine.store_embedding("singleton", [0.9, 0.1, 0.0])
    engine.store_embedding("observer", [0.8, 0.2, 0.0])

    creational = engine.search_similar(
        [1.0, 0.0, 0.0], VectorSearchFilters(categories=("Creational",))
    )
    beginner = engine.search_similar(
        [1.0, 0.0, 0.0], VectorSearchFilters(complexity=("Beginner",))
    )
    tagged = engine.search_similar([1.0, 0.0, 0.0], VectorSearchFilters(tags=("EVENTS",)))

    assert [hit.entry_id for hit in creational] == ["factory-method", "singleton"]
    assert [hit.entry_id for hit in beginner] == ["singleton"]
    assert [hit.entry_id for hit in tagged] == ["observer"]


def test_metadata_filters_need_a_catalog() -> None:
    engine = _engine()
    engine.store_embedding("a", [1.0, 0.0, 0.0])

    with pytest.raises(ValueError):
        engine.search_similar([1.0, 0.0, 0.0], VectorSearchFilters(categories=("x",)))


def test_find_similar_excludes_the_entry_itself() -> None:
    engine = _engine()
    engine.store_embedding("a", [1.0, 0.0, 0.0])
    engine.store_embedding("b", [1.0, 0.1, 0.0])

    hits = engine.find_similar("a")

    assert [hit.entry_id for hit in hits] == ["b"]
    with pytest.raises(KeyError):
        engine.find_similar("missing")


def test_write_through_and_reload(storage: DuckDBStorage) -> None:
    engine = _engine(catalog=storage, store=storage)
    engine.store_embeddings_batch(
        [("observer", [0.0, 1.0, 0.0]), ("singleton", [1.0, 0.0, 0.0], "hash")]
    )

    reloaded = _engine(catalog=storage, store=storage)
    assert reloaded.load() == 2
    assert reloaded.entry_ids == ["observer", "singleton"]
    assert storage.get_text_hashes(model_id="test-model") == {"singleton": "hash"}

    assert reloaded.delete_embedding("observer") is True
    assert reloaded.delete_embedding("observer") is False
    assert reloaded.clear() == 1
    assert storage.load_embeddings(model_id="test-model") == []


def test_batch_store_validates_before_writing() -> None:
    engine = _engine()

    with pytest.raises(DimensionMismatchError):
        engine.store_embeddings_batch([("ok", [1.0, 0.0, 0.0]), ("bad", [1.0])])
    assert len(engine) == 0


def test_clusters_group_nearby_vectors() -> None:
    engine = _engine(dimensions=2)
    engine.store_embedding("a1", [0.0, 0.0])
    engine.store_embedding("b1", [10.0, 10.0])
    engine.store_embedding("a2", [0.5, 0.0])
    engine.store_embedding("b2", [10.0, 10.5])
    engine.store_embedding("a3", [0.0, 0.5])

    clusters = engine.calculate_clusters(2)

    members = sorted(sorted(cluster.member_ids) for cluster in clusters)
    assert members == [["a1", "a2", "a3"], ["b1", "b2"]]
    by_first = {cluster.member_ids[0]: cluster for cluster in clusters}
    assert by_first["b1"].centroid == pytest.approx([10.0, 10.25])


def test_clusters_reject_invalid_counts() -> None:
    engine = _engine(dimensions=2)
    engine.store_embedding("a", [0.0, 0.0])

    with pytest.raises(InvalidClusterCountError):
        engine.calculate_clusters(2)
    with pytest.raises(InvalidClusterCountError):
        engine.calculate_clusters(0)
    assert len(engine.calculate_clusters(1)) == 1


def test_stats_reports_model_and_count() -> None:
    engine = _engine()
    engine.store_embedding("a", [1.0, 0.0, 0.0])

    stats = engine.stats()

    assert stats.total_vectors == 1
    assert stats.model_id == "test-model"
    assert stats.dimensions == 3
