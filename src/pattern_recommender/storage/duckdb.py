"""
DuckDB storage backend for the pattern catalog and pattern embeddings.
"""

from __future__ import annotations

import json
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

import duckdb

from ..errors import StoreUnavailableError
from .base import PatternRecord, StoredEmbedding


_PATTERN_COLUMNS = "id, name, category, description, complexity, tags"


def _parse_tags(raw: Any) -> tuple[str, ...]:
    if raw is None:
        return ()
    if isinstance(raw, (list, tuple)):
        return tuple(str(tag) for tag in raw)
    text = str(raw).strip()
    if not text:
        return ()
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        return tuple(part.strip() for part in text.split(",") if part.strip())
    if isinstance(parsed, list):
        return tuple(str(tag) for tag in parsed)
    return (str(parsed),)


def _row_to_pattern(row: tuple[Any, ...]) -> PatternRecord:
    return PatternRecord(
        id=str(row[0]),
        name=str(row[1]),
        category=str(row[2]),
        description=str(row[3] or ""),
        complexity=str(row[4]) if row[4] is not None else None,
        tags=_parse_tags(row[5]),
    )


class DuckDBStorage:
    """DuckDB-backed persistence for patterns and their embeddings."""

    def __init__(
        self,
        db_path: str,
        *,
        read_only: bool = False,
        initialize: bool = True,
    ) -> None:
        self.db_path = str(Path(db_path).expanduser().resolve())
        self.read_only = read_only
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        try:
            self._conn = duckdb.connect(self.db_path, read_only=read_only)
        except duckdb.Error as exc:
            raise StoreUnavailableError(f"Cannot open catalog at {self.db_path}: {exc}") from exc
        if initialize and not read_only:
            self.initialize()

    def close(self) -> None:
        """Close the underlying DuckDB connection."""
        self._conn.close()

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        try:
            yield
        except duckdb.Error as exc:
            raise StoreUnavailableError(f"Catalog {operation} failed: {exc}") from exc

    def initialize(self) -> None:
        with self._guard("initialization"):
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS patterns (
                    id VARCHAR PRIMARY KEY,
                    name VARCHAR NOT NULL,
                    category VARCHAR NOT NULL,
                    description VARCHAR NOT NULL DEFAULT '',
                    complexity VARCHAR,
                    tags VARCHAR NOT NULL DEFAULT '[]',
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                );
                """
            )
            self._conn.execute("CREATE SEQUENCE IF NOT EXISTS pattern_embedding_seq START 1;")
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS pattern_embeddings (
                    pattern_id VARCHAR NOT NULL,
                    model VARCHAR NOT NULL,
                    embedding DOUBLE[] NOT NULL,
                    dimensions INTEGER NOT NULL,
                    text_hash VARCHAR,
                    position BIGINT NOT NULL,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    PRIMARY KEY (pattern_id, model)
                );
                """
            )

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def upsert_pattern(self, pattern: PatternRecord) -> None:
        with self._guard("pattern upsert"):
            self._conn.execute(
                """
                INSERT INTO patterns (id, name, category, description, complexity, tags)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name = excluded.name,
                    category = excluded.category,
                    description = excluded.description,
                    complexity = excluded.complexity,
                    tags = excluded.tags
                """,
                [
                    pattern.id,
                    pattern.name,
                    pattern.category,
                    pattern.description,
                    pattern.complexity,
                    json.dumps(list(pattern.tags)),
                ],
            )

    def find_by_id(self, pattern_id: str) -> PatternRecord | None:
        with self._guard("lookup"):
            row = self._conn.execute(
                f"SELECT {_PATTERN_COLUMNS} FROM patterns WHERE id = ? LIMIT 1",
                [pattern_id],
            ).fetchone()
        if row is None:
            return None
        return _row_to_pattern(row)

    def find_by_ids(self, pattern_ids: list[str]) -> dict[str, PatternRecord]:
        if not pattern_ids:
            return {}
        unique_ids = sorted(set(pattern_ids))
        placeholders = ", ".join(["?"] * len(unique_ids))
        with self._guard("lookup"):
            rows = self._conn.execute(
                f"SELECT {_PATTERN_COLUMNS} FROM patterns WHERE id IN ({placeholders})",
                unique_ids,
            ).fetchall()
        return {str(row[0]): _row_to_pattern(row) for row in rows}

    def find_by_category(self, category: str, limit: int | None = None) -> list[PatternRecord]:
        sql = f"""
            SELECT {_PATTERN_COLUMNS}
            FROM patterns
            WHERE lower(category) = lower(?)
            ORDER BY name ASC, id ASC
        """
        params: list[Any] = [category]
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        with self._guard("category query"):
            rows = self._conn.execute(sql, params).fetchall()
        return [_row_to_pattern(row) for row in rows]

    def find_all(self, *, categories: list[str] | None = None) -> list[PatternRecord]:
        sql = f"SELECT {_PATTERN_COLUMNS} FROM patterns"
        params: list[Any] = []
        if categories:
            placeholders = ", ".join(["?"] * len(categories))
            sql += f" WHERE category IN ({placeholders})"
            params.extend(categories)
        sql += " ORDER BY name ASC, id ASC"
        with self._guard("catalog scan"):
            rows = self._conn.execute(sql, params).fetchall()
        return [_row_to_pattern(row) for row in rows]

    def search_text(self, text: str, *, limit: int = 20) -> list[PatternRecord]:
        needle = text.strip().lower()
        if not needle:
            return []
        with self._guard("text search"):
            rows = self._conn.execute(
                f"""
                SELECT {_PATTERN_COLUMNS}
                FROM patterns
                WHERE lower(name) LIKE '%' || ? || '%'
                   OR lower(description) LIKE '%' || ? || '%'
                   OR lower(tags) LIKE '%' || ? || '%'
                ORDER BY name ASC, id ASC
                LIMIT ?
                """,
                [needle, needle, needle, limit],
            ).fetchall()
        return [_row_to_pattern(row) for row in rows]

    def count_by_category(self) -> dict[str, int]:
        with self._guard("category aggregation"):
            rows = self._conn.execute(
                """
                SELECT category, COUNT(*)
                FROM patterns
                GROUP BY category
                ORDER BY category ASC
                """
            ).fetchall()
        return {str(row[0]): int(row[1]) for row in rows}

    # ------------------------------------------------------------------
    # Embeddings
    # ------------------------------------------------------------------

    def save_embedding(self, embedding: StoredEmbedding) -> None:
        with self._guard("embedding write"):
            self._conn.execute(
                """
                INSERT INTO pattern_embeddings (
                    pattern_id, model, embedding, dimensions, text_hash, position
                )
                VALUES (?, ?, ?, ?, ?, nextval('pattern_embedding_seq'))
                ON CONFLICT(pattern_id, model) DO UPDATE SET
                    embedding = excluded.embedding,
                    dimensions = excluded.dimensions,
                    text_hash = excluded.text_hash,
                    created_at = now()
                """,
                [
                    embedding.pattern_id,
                    embedding.model_id,
                    [float(value) for value in embedding.vector],
                    embedding.dimensions,
                    embedding.text_hash,
                ],
            )

    def delete_embedding(self, pattern_id: str, *, model_id: str) -> bool:
        with self._guard("embedding delete"):
            row = self._conn.execute(
                "SELECT COUNT(*) FROM pattern_embeddings WHERE pattern_id = ? AND model = ?",
                [pattern_id, model_id],
            ).fetchone()
            self._conn.execute(
                "DELETE FROM pattern_embeddings WHERE pattern_id = ? AND model = ?",
                [pattern_id, model_id],
            )
        return bool(row and int(row[0]) > 0)

    def load_embeddings(self, *, model_id: str) -> list[StoredEmbedding]:
        with self._guard("embedding scan"):
            rows = self._conn.execute(
                """
                SELECT pattern_id, model, embedding, text_hash
                FROM pattern_embeddings
                WHERE model = ?
                ORDER BY position ASC
                """,
                [model_id],
            ).fetchall()
        return [
            StoredEmbedding(
                pattern_id=str(row[0]),
                model_id=str(row[1]),
                vector=[float(value) for value in row[2]],
                text_hash=str(row[3]) if row[3] is not None else None,
            )
            for row in rows
        ]

    def clear_embeddings(self, *, model_id: str) -> int:
        with self._guard("embedding clear"):
            row = self._conn.execute(
                "SELECT COUNT(*) FROM pattern_embeddings WHERE model = ?",
                [model_id],
            ).fetchone()
            self._conn.execute("DELETE FROM pattern_embeddings WHERE model = ?", [model_id])
        return int(row[0]) if row else 0

    def get_text_hashes(self, *, model_id: str) -> dict[str, str]:
        with self._guard("embedding hash scan"):
            rows = self._conn.execute(
                """
                SELECT pattern_id, text_hash
                FROM pattern_embeddings
                WHERE model = ? AND text_hash IS NOT NULL
                """,
                [model_id],
            ).fetchall()
        return {str(row[0]): str(row[1]) for row in rows}
