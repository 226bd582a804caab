"""Tests for settings resolution and logging setup."""

import logging
from pathlib import Path

import pytest
from rich.logging import RichHandler

from pattern_recommender.config import Settings, load_settings, resolve_db_path
from pattern_recommender.embeddings.factory import default_builders
from pattern_recommender.embeddings.service import EmbeddingServiceConfig
from pattern_recommender.logging_utils import configure_logging
from pattern_recommender.search.matcher import MatcherConfig


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch) -> None:
    for name in (
        "PATTERN_RECOMMENDER_DB_PATH",
        "PATTERN_RECOMMENDER_EMBEDDING_STRATEGY",
        "PATTERN_RECOMMENDER_RETRY_ATTEMPTS",
        "PATTERN_RECOMMENDER_SEMANTIC_WEIGHT",
        "PATTERN_RECOMMENDER_USE_KEYWORD",
        "PATTERN_RECOMMENDER_LOG_LEVEL",
        "PATTERN_RECOMMENDER_MODEL_LOAD_TIMEOUT",
    ):
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    settings = load_settings()

    assert settings == Settings()
    assert settings.preferred_strategy == "transformers"
    assert settings.embedding_dimensions == 384


def test_environment_overrides_defaults(monkeypatch) -> None:
    monkeypatch.setenv("PATTERN_RECOMMENDER_EMBEDDING_STRATEGY", "ollama")
    monkeypatch.setenv("PATTERN_RECOMMENDER_RETRY_ATTEMPTS", "5")
    monkeypatch.setenv("PATTERN_RECOMMENDER_SEMANTIC_WEIGHT", "0.5")
    monkeypatch.setenv("PATTERN_RECOMMENDER_USE_KEYWORD", "no")
    monkeypatch.setenv("PATTERN_RECOMMENDER_LOG_LEVEL", "debug")

    settings = load_settings()

    assert settings.preferred_strategy == "ollama"
    assert settings.retry_attempts == 5
    assert settings.semantic_weight == 0.5
    assert settings.use_keyword_search is False
    assert settings.log_level == "DEBUG"


def test_explicit_overrides_win(monkeypatch) -> None:
    monkeypatch.setenv("PATTERN_RECOMMENDER_EMBEDDING_STRATEGY", "ollama")

    settings = load_settings(preferred_strategy="simple-hash", db_path="x.duckdb")

    assert settings.preferred_strategy == "simple-hash"
    assert settings.db_path == "x.duckdb"


def test_none_override_keeps_environment(monkeypatch) -> None:
    monkeypatch.setenv("PATTERN_RECOMMENDER_EMBEDDING_STRATEGY", "gemini")

    assert load_settings(preferred_strategy=None).preferred_strategy == "gemini"


def test_invalid_values_are_rejected(monkeypatch) -> None:
    monkeypatch.setenv("PATTERN_RECOMMENDER_RETRY_ATTEMPTS", "three")

    with pytest.raises(ValueError, match="RETRY_ATTEMPTS"):
        load_settings()
    with pytest.raises(TypeError):
        load_settings(unknown_option=1)


def test_resolve_db_path_precedence(tmp_path: Path, monkeypatch) -> None:
    env_path = tmp_path / "env" / "db.duckdb"
    monkeypatch.setenv("PATTERN_RECOMMENDER_DB_PATH", str(env_path))

    assert resolve_db_path() == str(env_path.resolve())
    assert env_path.parent.is_dir()
    explicit = tmp_path / "explicit.duckdb"
    assert resolve_db_path(str(explicit)) == str(explicit.resolve())


def test_component_configs_follow_settings() -> None:
    settings = Settings(retry_attempts=7, keyword_weight=0.4, result_cache_ttl=5.0)

    assert EmbeddingServiceConfig.from_settings(settings).retry_attempts == 7
    matcher = MatcherConfig.from_settings(settings)
    assert matcher.keyword_weight == 0.4
    assert matcher.result_ttl == 5.0


def test_configure_logging_installs_single_rich_handler() -> None:
    configure_logging("INFO")
    configure_logging("DEBUG")

    package_logger = logging.getLogger("pattern_recommender")
    rich_handlers = [h for h in package_logger.handlers if isinstance(h, RichHandler)]
    assert len(rich_handlers) == 1
    assert package_logger.level == logging.DEBUG
    assert package_logger.propagate is False


def test_model_load_timeout_reaches_transformers_builder(monkeypatch) -> None:
    monkeypatch.setenv("PATTERN_RECOMMENDER_MODEL_LOAD_TIMEOUT", "2.5")

    settings = load_settings()
    strategy = default_builders(settings)["transformers"]()

    assert settings.model_load_timeout == 2.5
    assert strategy.load_timeout == 2.5  # type: ignore[attr-defined]
