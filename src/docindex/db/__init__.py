"""docindex database layer."""

from docindex.db.chunks import ChunkStore
from docindex.db.connection import Database
from docindex.db.documents import DocumentStore
from docindex.db.migrations import MIGRATIONS, run_migrations
from docindex.db.models import Chunk, Document, ProcessingStatus, Scope
from docindex.db.schema import initialize
from docindex.db.vectors import (
    SimilarChunk,
    VectorStore,
    ensure_vec_table,
    model_to_slug,
    vec_table_name,
)

__all__ = [
    "Chunk",
    "ChunkStore",
    "Database",
    "Document",
    "DocumentStore",
    "MIGRATIONS",
    "ProcessingStatus",
    "Scope",
    "SimilarChunk",
    "VectorStore",
    "ensure_vec_table",
    "initialize",
    "model_to_slug",
    "run_migrations",
    "vec_table_name",
]
