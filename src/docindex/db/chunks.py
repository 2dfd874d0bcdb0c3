"""Chunk persistence. Chunks are immutable once written."""

from __future__ import annotations

import sqlite3

from docindex.db.models import Chunk
from docindex.errors import StorageError


class ChunkStore:
    """Data access for the ``document_chunks`` table.

    ``document_chunks.id`` doubles as the rowid of the chunk's vector in the
    vec table, so deleting a chunk must be paired with
    :meth:`VectorStore.delete_by_chunk`.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def add(self, chunk: Chunk) -> int:
        """Insert *chunk* and return its new id (also set on the instance)."""
        try:
            cur = self._conn.execute(
                """
                INSERT INTO document_chunks (document_id, chunk_index, content, token_count)
                VALUES (?, ?, ?, ?)
                """,
                (chunk.document_id, chunk.chunk_index, chunk.content, chunk.token_count),
            )
            self._conn.commit()
        except sqlite3.Error as exc:
            self._conn.rollback()
            raise StorageError(
                f"Could not store chunk {chunk.chunk_index} of document {chunk.document_id}: {exc}"
            ) from exc
        chunk.id = cur.lastrowid
        return chunk.id

    def get(self, chunk_id: int) -> Chunk | None:
        row = self._conn.execute(
            """
            SELECT id, document_id, chunk_index, content, token_count, created_at
            FROM document_chunks WHERE id = ?
            """,
            (chunk_id,),
        ).fetchone()
        return _row_to_chunk(row) if row else None

    def list_by_document(self, document_id: str) -> list[Chunk]:
        """All chunks of *document_id* in index order."""
        rows = self._conn.execute(
            """
            SELECT id, document_id, chunk_index, content, token_count, created_at
            FROM document_chunks WHERE document_id = ? ORDER BY chunk_index
            """,
            (document_id,),
        ).fetchall()
        return [_row_to_chunk(r) for r in rows]

    def count_by_document(self, document_id: str) -> int:
        return self._conn.execute(
            "SELECT COUNT(*) FROM document_chunks WHERE document_id = ?", (document_id,)
        ).fetchone()[0]

    def delete_by_document(self, document_id: str) -> int:
        """Delete every chunk of *document_id*. Returns the number removed."""
        try:
            cur = self._conn.execute(
                "DELETE FROM document_chunks WHERE document_id = ?", (document_id,)
            )
            self._conn.commit()
        except sqlite3.Error as exc:
            self._conn.rollback()
            raise StorageError(f"Could not delete chunks of document {document_id}: {exc}") from exc
        return cur.rowcount


def _row_to_chunk(row: sqlite3.Row) -> Chunk:
    return Chunk(
        id=row["id"],
        document_id=row["document_id"],
        chunk_index=row["chunk_index"],
        content=row["content"],
        token_count=row["token_count"],
        created_at=row["created_at"],
    )
