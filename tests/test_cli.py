"""CLI tests for indexing, recommendation and inspection commands."""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

import pattern_recommender.main as main_module
from conftest import CATALOG, StubStrategy
from pattern_recommender.embeddings.factory import EmbeddingStrategyFactory
from pattern_recommender.embeddings.hashing import SimpleHashStrategy
from pattern_recommender.storage import DuckDBStorage

runner = CliRunner()


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    path = str(tmp_path / "cli.duckdb")
    store = DuckDBStorage(path)
    for pattern in CATALOG:
        store.upsert_pattern(pattern)
    store.close()
    return path


@pytest.fixture
def offline_models(monkeypatch) -> None:
    """Replace model-backed strategies with unavailable stubs."""
    original = main_module.build_recommender

    async def build(settings):
        builders = {
            name: (lambda name=name: StubStrategy(name, available=False))
            for name in ("transformers", "ollama", "gemini")
        }
        builders["simple-hash"] = lambda: SimpleHashStrategy(settings.embedding_dimensions)
        factory = EmbeddingStrategyFactory(settings, builders=builders)
        return await original(settings, factory=factory)

    monkeypatch.setattr(main_module, "build_recommender", build)


def _invoke(*args: str):
    return runner.invoke(main_module.app, list(args))


def test_index_then_recommend(db_path: str) -> None:
    indexed = _invoke("index", "--db", db_path, "--strategy", "simple-hash")
    assert indexed.exit_code == 0, indexed.output
    assert "Embedded: 4" in indexed.output

    again = _invoke("index", "--db", db_path, "--strategy", "simple-hash")
    assert "Skipped: 4" in again.output

    result = _invoke(
        "recommend",
        CATALOG[0].embedding_text,
        "--db",
        db_path,
        "--strategy",
        "simple-hash",
        "--json",
    )
    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload[0]["pattern_id"] == "factory-method"
    assert payload[0]["rank"] == 1
    assert payload[0]["reasons"]
    assert isinstance(payload[0]["alternatives"], list)


def test_recommend_keyword_only_with_category_filter(db_path: str) -> None:
    result = _invoke(
        "recommend",
        "observer behavioral notify dependent objects",
        "--category",
        "Behavioral",
        "--db",
        db_path,
        "--strategy",
        "simple-hash",
        "--json",
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert [item["pattern_id"] for item in payload] == ["observer"]
    assert payload[0]["match_type"] == "keyword"


def test_recommend_without_matches(db_path: str) -> None:
    result = _invoke("recommend", "zz", "--db", db_path, "--strategy", "simple-hash")

    assert result.exit_code == 0, result.output
    assert "No matching patterns found." in result.output


def test_rebuild_and_clusters(db_path: str) -> None:
    rebuilt = _invoke("index", "--rebuild", "--db", db_path, "--strategy", "simple-hash")
    assert rebuilt.exit_code == 0, rebuilt.output

    clustered = _invoke("clusters", "2", "--db", db_path, "--strategy", "simple-hash")
    assert clustered.exit_code == 0, clustered.output
    assert "Cluster 1" in clustered.output
    assert "Cluster 2" in clustered.output

    too_many = _invoke("clusters", "10", "--db", db_path, "--strategy", "simple-hash")
    assert too_many.exit_code == 1
    assert "Error" in too_many.output


def test_similar_command(db_path: str) -> None:
    _invoke("index", "--db", db_path, "--strategy", "simple-hash")

    found = _invoke("similar", "observer", "--db", db_path, "--strategy", "simple-hash", "--json")
    assert found.exit_code == 0, found.output
    assert all(item["pattern_id"] != "observer" for item in json.loads(found.output))

    missing = _invoke("similar", "nope", "--db", db_path, "--strategy", "simple-hash")
    assert missing.exit_code == 1
    assert "No embedding stored" in missing.output


def test_strategies_lists_every_strategy(db_path: str, offline_models) -> None:
    result = _invoke("strategies", "--db", db_path)

    assert result.exit_code == 0, result.output
    for name in ("transformers", "ollama", "gemini", "simple-hash"):
        assert name in result.output
