"""Chunk vectors in per-model sqlite-vec tables, and scoped L2 search.

One ``vec0`` virtual table per embedding model (``vec_chunks_<model_slug>``);
each row's rowid is the owning ``document_chunks.id``. Virtual tables do not
take part in foreign-key cascades, so vectors are removed explicitly before
their chunks.
"""

from __future__ import annotations

import json
import re
import sqlite3
from dataclasses import dataclass
from typing import Sequence

from docindex.db.models import ProcessingStatus, Scope
from docindex.errors import DimensionMismatch, InvalidLimit, StorageError

_DIMS_RE = re.compile(r"float\[(\d+)\]")


def model_to_slug(model: str) -> str:
    """Convert a provider/model string to a valid table name suffix.

    Examples:
        "openai/text-embedding-3-small" -> "openai_text_embedding_3_small"
        "ollama/nomic-embed-text"       -> "ollama_nomic_embed_text"
    """
    return re.sub(r"[^a-z0-9]", "_", model.lower())


def vec_table_name(model_slug: str) -> str:
    """Return the full vec table name for a model slug."""
    return f"vec_chunks_{model_slug}"


def ensure_vec_table(conn: sqlite3.Connection, model_slug: str, dimensions: int) -> str:
    """Create vec_chunks_{model_slug} if it doesn't already exist.

    Args:
        conn: Active database connection (sqlite-vec must be loaded).
        model_slug: Sanitized model identifier (use model_to_slug() to generate).
        dimensions: Embedding vector dimensions (e.g. 1536 for text-embedding-3-small).

    Returns:
        The table name (vec_chunks_{model_slug}).

    Raises:
        ValueError: On an unsafe slug or non-positive dimensions.
        DimensionMismatch: If the table exists with a different dimensionality.
    """
    if not re.fullmatch(r"[a-z0-9_]+", model_slug):
        raise ValueError(
            f"Invalid model_slug '{model_slug}' — use model_to_slug() to sanitize."
        )
    if dimensions < 1:
        raise ValueError(f"dimensions must be >= 1, got {dimensions}")

    table = vec_table_name(model_slug)
    existing = conn.execute(
        "SELECT sql FROM sqlite_master WHERE type='table' AND name=?", (table,)
    ).fetchone()

    if existing is None:
        conn.execute(
            f"CREATE VIRTUAL TABLE {table} USING vec0(embedding float[{dimensions}])"
        )
        conn.commit()
    else:
        match = _DIMS_RE.search(existing[0] or "")
        if match and int(match.group(1)) != dimensions:
            raise DimensionMismatch(expected=int(match.group(1)), actual=dimensions)

    return table


@dataclass
class SimilarChunk:
    """A nearest-neighbour hit with the fields retrieval needs."""

    chunk_id: int
    document_id: str
    document_name: str
    chunk_index: int
    content: str
    distance: float


class VectorStore:
    """Fixed-dimensionality vector storage keyed by chunk id.

    Args:
        conn: Open connection with sqlite-vec loaded and schema initialised.
        model_slug: Sanitized embedding model identifier.
        dimensions: Length every stored and query vector must have.
    """

    def __init__(self, conn: sqlite3.Connection, model_slug: str, dimensions: int) -> None:
        self._conn = conn
        self.dimensions = dimensions
        self.table = ensure_vec_table(conn, model_slug, dimensions)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def store(self, chunk_id: int, vector: Sequence[float]) -> None:
        """Persist *vector* for *chunk_id*, replacing any previous one.

        Raises:
            DimensionMismatch: If ``len(vector)`` differs from :attr:`dimensions`.
        """
        self._check_dims(vector)
        try:
            self._conn.execute(f"DELETE FROM {self.table} WHERE rowid = ?", (chunk_id,))
            self._conn.execute(
                f"INSERT INTO {self.table}(rowid, embedding) VALUES (?, ?)",
                (chunk_id, json.dumps(list(vector))),
            )
            self._conn.commit()
        except sqlite3.Error as exc:
            self._conn.rollback()
            raise StorageError(f"Could not store vector for chunk {chunk_id}: {exc}") from exc

    def delete_by_chunk(self, chunk_id: int) -> None:
        """Remove the vector of *chunk_id*. Missing vectors are not an error."""
        try:
            self._conn.execute(f"DELETE FROM {self.table} WHERE rowid = ?", (chunk_id,))
            self._conn.commit()
        except sqlite3.Error as exc:
            self._conn.rollback()
            raise StorageError(f"Could not delete vector for chunk {chunk_id}: {exc}") from exc

    def delete_by_document(self, document_id: str) -> int:
        """Remove the vectors of every chunk of *document_id*. Returns rows deleted."""
        rowids = [
            r[0]
            for r in self._conn.execute(
                "SELECT id FROM document_chunks WHERE document_id = ?", (document_id,)
            ).fetchall()
        ]
        if not rowids:
            return 0
        placeholders = ",".join("?" * len(rowids))
        try:
            cur = self._conn.execute(
                f"DELETE FROM {self.table} WHERE rowid IN ({placeholders})",  # noqa: S608
                rowids,
            )
            self._conn.commit()
        except sqlite3.Error as exc:
            self._conn.rollback()
            raise StorageError(f"Could not delete vectors of document {document_id}: {exc}") from exc
        return cur.rowcount

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def has_vector(self, chunk_id: int) -> bool:
        return (
            self._conn.execute(
                f"SELECT 1 FROM {self.table} WHERE rowid = ?", (chunk_id,)
            ).fetchone()
            is not None
        )

    def count_by_document(self, document_id: str) -> int:
        return self._conn.execute(
            f"""
            SELECT COUNT(*) FROM document_chunks c
            JOIN {self.table} v ON v.rowid = c.id
            WHERE c.document_id = ?
            """,
            (document_id,),
        ).fetchone()[0]

    def search_similar(
        self,
        query_vector: Sequence[float],
        limit: int,
        scope: Scope | None = None,
    ) -> list[SimilarChunk]:
        """Return up to *limit* chunks nearest to *query_vector* (L2, ascending).

        Only chunks of ``completed`` documents are considered. *scope* narrows
        the search to a project and/or task (both given → both must match).
        Equal distances are ordered by chunk id.

        Raises:
            InvalidLimit: If *limit* is not positive.
            DimensionMismatch: If the query vector has the wrong length.
        """
        if limit <= 0:
            raise InvalidLimit(f"limit must be > 0, got {limit}")
        self._check_dims(query_vector)
        scope = scope or Scope()

        # Exact scan with vec_distance_l2 rather than a vec0 KNN query: KNN picks
        # the k nearest before the status/scope filter, which would drop hits.
        rows = self._conn.execute(
            f"""
            SELECT c.id AS chunk_id, c.document_id, d.name AS document_name,
                   c.chunk_index, c.content,
                   vec_distance_l2(v.embedding, ?) AS distance
            FROM {self.table} v
            JOIN document_chunks c ON c.id = v.rowid
            JOIN documents d ON d.id = c.document_id
            WHERE d.processing_status = ?
              AND (? IS NULL OR d.project_id = ?)
              AND (? IS NULL OR d.task_id = ?)
            ORDER BY distance ASC, c.id ASC
            LIMIT ?
            """,  # noqa: S608
            (
                json.dumps(list(query_vector)),
                ProcessingStatus.COMPLETED.value,
                scope.project_id,
                scope.project_id,
                scope.task_id,
                scope.task_id,
                limit,
            ),
        ).fetchall()

        return [
            SimilarChunk(
                chunk_id=r["chunk_id"],
                document_id=r["document_id"],
                document_name=r["document_name"],
                chunk_index=r["chunk_index"],
                content=r["content"],
                distance=float(r["distance"]),
            )
            for r in rows
        ]

    def _check_dims(self, vector: Sequence[float]) -> None:
        if len(vector) != self.dimensions:
            raise DimensionMismatch(expected=self.dimensions, actual=len(vector))
