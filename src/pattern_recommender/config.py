"""
Configuration helpers.

Every setting can be passed explicitly, read from a
``PATTERN_RECOMMENDER_*`` environment variable, or fall back to its default,
in that order of precedence.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


ENV_PREFIX = "PATTERN_RECOMMENDER_"
DEFAULT_DB_PATH = "~/.pattern_recommender/catalog.duckdb"
ENV_DB_PATH = f"{ENV_PREFIX}DB_PATH"


def resolve_db_path(override_path: str | None = None) -> str:
    """
    Resolve the DuckDB catalog path from CLI override, env var, or default.

    Precedence:
    1) explicit override_path
    2) PATTERN_RECOMMENDER_DB_PATH
    3) default path
    """
    raw_path = override_path or os.getenv(ENV_DB_PATH) or DEFAULT_DB_PATH
    resolved = Path(raw_path).expanduser().resolve()
    resolved.parent.mkdir(parents=True, exist_ok=True)
    return str(resolved)


def _env(name: str) -> str | None:
    value = os.getenv(f"{ENV_PREFIX}{name}")
    if value is None or not value.strip():
        return None
    return value.strip()


def _env_str(name: str, default: str) -> str:
    return _env(name) or default


def _env_int(name: str, default: int) -> int:
    raw = _env(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}") from exc


def _env_float(name: str, default: float) -> float:
    raw = _env(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{ENV_PREFIX}{name} must be a number, got {raw!r}") from exc


def _env_bool(name: str, default: bool) -> bool:
    raw = _env(name)
    if raw is None:
        return default
    return raw.lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Resolved runtime settings for the retrieval core."""

    db_path: str | None = None
    log_level: str = "WARNING"

    # Embedding strategies
    preferred_strategy: str = "transformers"
    fallback_to_simple: bool = True
    embedding_dimensions: int = 384
    ollama_base_url: str = "http://localhost:11434"
    ollama_model: str = "all-minilm:l6-v2"
    transformers_model: str = "all-MiniLM-L6-v2"
    gemini_model: str = "gemini-embedding-001"
    probe_timeout: float = 5.0
    model_load_timeout: float = 120.0
    unavailable_ttl: float = 60.0

    # Embedding service
    embedding_cache_enabled: bool = True
    embedding_cache_ttl: float = 3600.0
    embedding_batch_size: int = 10
    retry_attempts: int = 3
    retry_delay: float = 1.0
    strategy_timeout: float = 30.0

    # Cache
    cache_max_size: int = 1000
    cache_default_ttl: float = 3600.0

    # Vector search
    similarity_threshold: float = 0.3
    vector_max_results: int = 10

    # Hybrid matching
    max_results: int = 5
    min_confidence: float = 0.3
    semantic_weight: float = 0.7
    keyword_weight: float = 0.3
    use_semantic_search: bool = True
    use_keyword_search: bool = True
    result_cache_ttl: float = 1800.0


def load_settings(*, db_path: str | None = None, **overrides: object) -> Settings:
    """Build :class:`Settings` from the environment plus explicit overrides."""
    defaults = Settings()
    values: dict[str, object] = {
        "db_path": db_path or _env("DB_PATH"),
        "log_level": _env_str("LOG_LEVEL", defaults.log_level).upper(),
        "preferred_strategy": _env_str("EMBEDDING_STRATEGY", defaults.preferred_strategy),
        "fallback_to_simple": _env_bool("FALLBACK_TO_SIMPLE", defaults.fallback_to_simple),
        "embedding_dimensions": _env_int("EMBEDDING_DIM", defaults.embedding_dimensions),
        "ollama_base_url": _env_str("OLLAMA_URL", defaults.ollama_base_url),
        "ollama_model": _env_str("OLLAMA_MODEL", defaults.ollama_model),
        "transformers_model": _env_str("TRANSFORMERS_MODEL", defaults.transformers_model),
        "gemini_model": _env_str("GEMINI_MODEL", defaults.gemini_model),
        "probe_timeout": _env_float("PROBE_TIMEOUT", defaults.probe_timeout),
        "model_load_timeout": _env_float(
            "MODEL_LOAD_TIMEOUT", defaults.model_load_timeout
        ),
        "unavailable_ttl": _env_float("UNAVAILABLE_TTL", defaults.unavailable_ttl),
        "embedding_cache_enabled": _env_bool(
            "EMBEDDING_CACHE_ENABLED", defaults.embedding_cache_enabled
        ),
        "embedding_cache_ttl": _env_float("EMBEDDING_CACHE_TTL", defaults.embedding_cache_ttl),
        "embedding_batch_size": _env_int("EMBEDDING_BATCH_SIZE", defaults.embedding_batch_size),
        "retry_attempts": _env_int("RETRY_ATTEMPTS", defaults.retry_attempts),
        "retry_delay": _env_float("RETRY_DELAY", defaults.retry_delay),
        "strategy_timeout": _env_float("STRATEGY_TIMEOUT", defaults.strategy_timeout),
        "cache_max_size": _env_int("CACHE_MAX_SIZE", defaults.cache_max_size),
        "cache_default_ttl": _env_float("CACHE_TTL", defaults.cache_default_ttl),
        "similarity_threshold": _env_float(
            "SIMILARITY_THRESHOLD", defaults.similarity_threshold
        ),
        "vector_max_results": _env_int("VECTOR_MAX_RESULTS", defaults.vector_max_results),
        "max_results": _env_int("MAX_RESULTS", defaults.max_results),
        "min_confidence": _env_float("MIN_CONFIDENCE", defaults.min_confidence),
        "semantic_weight": _env_float("SEMANTIC_WEIGHT", defaults.semantic_weight),
        "keyword_weight": _env_float("KEYWORD_WEIGHT", defaults.keyword_weight),
        "use_semantic_search": _env_bool("USE_SEMANTIC", defaults.use_semantic_search),
        "use_keyword_search": _env_bool("USE_KEYWORD", defaults.use_keyword_search),
        "result_cache_ttl": _env_float("RESULT_CACHE_TTL", defaults.result_cache_ttl),
    }
    unknown = set(overrides) - set(values)
    if unknown:
        raise TypeError(f"Unknown settings: {', '.join(sorted(unknown))}")
    values.update({key: value for key, value in overrides.items() if value is not None})
    return Settings(**values)  # type: ignore[arg-type]
