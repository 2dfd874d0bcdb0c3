"""Document metadata and the processing-status state machine.

    pending ──► processing ──► completed
       │             │
       └─────────────┴──────► failed

``pending`` is set at creation, ``processing`` once the source file has been
copied into storage. ``completed`` stores the extracted text (possibly empty),
``failed`` stores an error string. Both are final: re-ingestion means deleting
the document and creating a new one.
"""

from __future__ import annotations

import sqlite3
import uuid

from docindex.db.models import TRANSITIONS, Document, ProcessingStatus, Scope
from docindex.errors import InvalidTransition, StorageError

_COLUMNS = (
    "id, project_id, task_id, name, file_path, file_type, file_size, "
    "processing_status, processing_error, extracted_text, created_at"
)


class DocumentStore:
    """Data access for the ``documents`` table.

    Wraps a caller-owned sqlite3.Connection. Writes commit immediately;
    sqlite errors are re-raised as :class:`StorageError`.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    # ------------------------------------------------------------------
    # Create / read
    # ------------------------------------------------------------------

    def create(
        self,
        name: str,
        file_type: str,
        file_size: int,
        scope: Scope | None = None,
        file_path: str = "",
    ) -> Document:
        """Insert a new ``pending`` document and return it."""
        scope = scope or Scope()
        doc_id = str(uuid.uuid4())
        try:
            self._conn.execute(
                """
                INSERT INTO documents (id, project_id, task_id, name, file_path, file_type, file_size)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (doc_id, scope.project_id, scope.task_id, name, file_path, file_type, file_size),
            )
            self._conn.commit()
        except sqlite3.Error as exc:
            self._conn.rollback()
            raise StorageError(f"Could not create document '{name}': {exc}") from exc
        created = self.get(doc_id)
        if created is None:
            raise StorageError(f"Document {doc_id} vanished right after insert")
        return created

    def get(self, document_id: str) -> Document | None:
        """Return a document by ID, or None if not found."""
        row = self._conn.execute(
            f"SELECT {_COLUMNS} FROM documents WHERE id = ?", (document_id,)
        ).fetchone()
        return _row_to_document(row) if row else None

    def exists(self, document_id: str) -> bool:
        return (
            self._conn.execute("SELECT 1 FROM documents WHERE id = ?", (document_id,)).fetchone()
            is not None
        )

    def list_by_project(self, project_id: str) -> list[Document]:
        """Documents of *project_id*, newest first."""
        rows = self._conn.execute(
            f"SELECT {_COLUMNS} FROM documents WHERE project_id = ? "
            "ORDER BY created_at DESC, rowid DESC",
            (project_id,),
        ).fetchall()
        return [_row_to_document(r) for r in rows]

    def list_by_task(self, task_id: str) -> list[Document]:
        """Documents of *task_id*, newest first."""
        rows = self._conn.execute(
            f"SELECT {_COLUMNS} FROM documents WHERE task_id = ? "
            "ORDER BY created_at DESC, rowid DESC",
            (task_id,),
        ).fetchall()
        return [_row_to_document(r) for r in rows]

    def list_all(self) -> list[Document]:
        rows = self._conn.execute(
            f"SELECT {_COLUMNS} FROM documents ORDER BY created_at DESC, rowid DESC"
        ).fetchall()
        return [_row_to_document(r) for r in rows]

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    def set_file_path(self, document_id: str, file_path: str) -> bool:
        """Record where the original file was stored. False if the row is gone."""
        return self._update(
            "UPDATE documents SET file_path = ? WHERE id = ?", (file_path, document_id)
        )

    def rename(self, document_id: str, name: str) -> bool:
        """Change the display name. False if the row is gone."""
        return self._update("UPDATE documents SET name = ? WHERE id = ?", (name, document_id))

    def mark_processing(self, document_id: str) -> bool:
        return self._transition(document_id, ProcessingStatus.PROCESSING)

    def mark_completed(self, document_id: str, extracted_text: str) -> bool:
        return self._transition(
            document_id, ProcessingStatus.COMPLETED, extracted_text=extracted_text
        )

    def mark_failed(self, document_id: str, error: str) -> bool:
        return self._transition(document_id, ProcessingStatus.FAILED, error=error)

    def delete(self, document_id: str) -> bool:
        """Delete the row (chunks cascade). Idempotent; True if a row was removed."""
        try:
            cur = self._conn.execute("DELETE FROM documents WHERE id = ?", (document_id,))
            self._conn.commit()
        except sqlite3.Error as exc:
            self._conn.rollback()
            raise StorageError(f"Could not delete document {document_id}: {exc}") from exc
        return cur.rowcount > 0

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _transition(
        self,
        document_id: str,
        target: ProcessingStatus,
        *,
        error: str | None = None,
        extracted_text: str | None = None,
    ) -> bool:
        """Move *document_id* to *target*.

        Returns False when the document no longer exists (deleted mid-ingestion).

        Raises:
            InvalidTransition: If *target* is not reachable from the current status.
        """
        row = self._conn.execute(
            "SELECT processing_status FROM documents WHERE id = ?", (document_id,)
        ).fetchone()
        if row is None:
            return False

        current = ProcessingStatus(row["processing_status"])
        if current.is_terminal:
            raise InvalidTransition(
                f"Document {document_id} is already '{current.value}'; "
                f"cannot move to '{target.value}'"
            )
        if target not in TRANSITIONS[current]:
            raise InvalidTransition(
                f"Document {document_id}: cannot move from '{current.value}' to '{target.value}'"
            )

        # Guard on the status we read so a concurrent writer cannot be overwritten.
        return self._update(
            """
            UPDATE documents
            SET processing_status = ?, processing_error = ?, extracted_text = ?
            WHERE id = ? AND processing_status = ?
            """,
            (target.value, error, extracted_text, document_id, current.value),
        )

    def _update(self, sql: str, params: tuple) -> bool:
        try:
            cur = self._conn.execute(sql, params)
            self._conn.commit()
        except sqlite3.Error as exc:
            self._conn.rollback()
            raise StorageError(f"Document update failed: {exc}") from exc
        return cur.rowcount > 0


def _row_to_document(row: sqlite3.Row) -> Document:
    return Document(
        id=row["id"],
        project_id=row["project_id"],
        task_id=row["task_id"],
        name=row["name"],
        file_path=row["file_path"],
        file_type=row["file_type"],
        file_size=row["file_size"],
        status=ProcessingStatus(row["processing_status"]),
        error=row["processing_error"],
        extracted_text=row["extracted_text"],
        created_at=row["created_at"],
    )
