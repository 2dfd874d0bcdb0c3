"""DocumentService: the application-facing facade over ingest, storage and search.

One instance owns one database connection. Construct it with
:meth:`DocumentService.from_config` or wire the collaborators by hand (tests).

    with DocumentService.from_config(load_config()) as svc:
        result = asyncio.run(svc.upload("notes.md", project_id="p1"))
        hits = asyncio.run(svc.search("deadline", project_id="p1"))
"""

from __future__ import annotations

import base64
import binascii
import sqlite3
from pathlib import Path

from docindex.config import DocIndexConfig
from docindex.db.chunks import ChunkStore
from docindex.db.connection import Database
from docindex.db.documents import DocumentStore
from docindex.db.models import Document, Scope
from docindex.db.schema import initialize
from docindex.db.vectors import VectorStore, model_to_slug
from docindex.errors import InputError, UnsupportedFormat
from docindex.ingest.chunker import CharRatioEstimator, ParagraphChunker
from docindex.ingest.embedding_client import EmbeddingClient
from docindex.ingest.extractors import Extractor
from docindex.ingest.orchestrator import IngestionOrchestrator, IngestResult
from docindex.ingest.storage import FileStorage
from docindex.logging import get_logger
from docindex.rag.retriever import RetrievalService, SearchHit

logger = get_logger(__name__)

# Upload outcomes use the orchestrator's result type.
UploadResult = IngestResult


class DocumentService:
    def __init__(
        self,
        conn: sqlite3.Connection,
        storage: FileStorage,
        orchestrator: IngestionOrchestrator,
        retriever: RetrievalService,
        vectors: VectorStore,
    ) -> None:
        self._conn = conn
        self.documents = DocumentStore(conn)
        self.chunks = ChunkStore(conn)
        self.vectors = vectors
        self.storage = storage
        self.orchestrator = orchestrator
        self.retriever = retriever

    @classmethod
    def from_config(cls, cfg: DocIndexConfig, api_key: str | None = None) -> "DocumentService":
        """Open the configured database and build the full pipeline."""
        conn = Database(cfg.storage.db_path).connect()
        initialize(conn)

        vectors = VectorStore(conn, model_to_slug(cfg.embedding.model), cfg.embedding.dimensions)
        storage = FileStorage(cfg.storage.documents_dir)
        embedder = EmbeddingClient(
            model=cfg.embedding.model,
            dimensions=cfg.embedding.dimensions,
            api_key=api_key,
            max_chars=cfg.embedding.max_chars,
            timeout=cfg.embedding.timeout,
            num_retries=cfg.embedding.num_retries,
        )
        chunker = ParagraphChunker(
            chunk_size=cfg.chunking.chunk_size,
            overlap=cfg.chunking.overlap,
            chars_per_word=cfg.chunking.chars_per_word,
            estimator=CharRatioEstimator(cfg.chunking.chars_per_token),
        )
        extractor = Extractor(
            ocr_timeout=cfg.extraction.ocr_timeout,
            ocr_language=cfg.extraction.ocr_language,
            max_text_bytes=cfg.storage.max_file_bytes,
        )
        orchestrator = IngestionOrchestrator(
            documents=DocumentStore(conn),
            chunks=ChunkStore(conn),
            vectors=vectors,
            storage=storage,
            extractor=extractor,
            chunker=chunker,
            embedder=embedder,
            max_file_bytes=cfg.storage.max_file_bytes,
            embed_concurrency=cfg.embedding.concurrency,
        )
        retriever = RetrievalService(
            embedder,
            vectors,
            default_limit=cfg.retrieval.limit,
            min_relevance=cfg.retrieval.min_relevance,
        )
        return cls(conn, storage, orchestrator, retriever, vectors)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "DocumentService":
        return self

    def __exit__(self, *_: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    async def upload(
        self,
        path: Path | str,
        project_id: str | None = None,
        task_id: str | None = None,
    ) -> UploadResult:
        """Ingest the file at *path*. Never raises for bad input or pipeline failures."""
        try:
            return await self.orchestrator.ingest(path, Scope(project_id, task_id))
        except InputError as exc:
            logger.warning("upload_rejected", path=str(path), error=str(exc))
            return UploadResult(success=False, document_id="", error=str(exc))

    async def upload_clipboard(
        self,
        b64: str,
        mime_type: str = "image/png",
        project_id: str | None = None,
        task_id: str | None = None,
    ) -> UploadResult:
        """Ingest a base64-encoded image (a ``data:`` URL prefix is accepted)."""
        if b64.startswith("data:") and "," in b64:
            header, b64 = b64.split(",", 1)
            mime_type = header[5:].split(";", 1)[0] or mime_type
        try:
            if not mime_type.startswith("image/"):
                raise UnsupportedFormat(f"Clipboard data must be an image, got {mime_type}")
            try:
                data = base64.b64decode(b64, validate=True)
            except (binascii.Error, ValueError) as exc:
                raise InputError(f"Invalid base64 image data: {exc}") from exc
            return await self.orchestrator.ingest_bytes(data, mime_type, Scope(project_id, task_id))
        except InputError as exc:
            logger.warning("clipboard_upload_rejected", mime_type=mime_type, error=str(exc))
            return UploadResult(success=False, document_id="", error=str(exc))

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def search(
        self,
        query: str,
        project_id: str | None = None,
        task_id: str | None = None,
        limit: int | None = None,
        min_relevance: float | None = None,
    ) -> list[SearchHit]:
        """Semantic search; see :meth:`RetrievalService.search`."""
        return await self.retriever.search(
            query, Scope(project_id, task_id), limit=limit, min_relevance=min_relevance
        )

    # ------------------------------------------------------------------
    # Document management
    # ------------------------------------------------------------------

    def get(self, document_id: str) -> Document | None:
        return self.documents.get(document_id)

    def list_documents(
        self, project_id: str | None = None, task_id: str | None = None
    ) -> list[Document]:
        if task_id is not None:
            docs = self.documents.list_by_task(task_id)
            if project_id is not None:
                docs = [d for d in docs if d.project_id == project_id]
            return docs
        if project_id is not None:
            return self.documents.list_by_project(project_id)
        return self.documents.list_all()

    def rename(self, document_id: str, name: str) -> bool:
        name = name.strip()
        if not name:
            raise InputError("Document name must not be empty")
        return self.documents.rename(document_id, name)

    def delete(self, document_id: str) -> bool:
        """Remove vectors, chunks, stored file and row, in that order.

        Idempotent; returns True if a document row was removed.
        """
        vectors = self.vectors.delete_by_document(document_id)
        chunks = self.chunks.delete_by_document(document_id)
        files = self.storage.delete(document_id)
        removed = self.documents.delete(document_id)
        if removed:
            logger.info(
                "document_deleted",
                document_id=document_id,
                vectors=vectors,
                chunks=chunks,
                files=files,
            )
        return removed

    def get_file_path(self, document_id: str) -> Path | None:
        """Path of the stored original, or None if the document or file is gone."""
        if not self.documents.exists(document_id):
            return None
        return self.storage.get_original(document_id)

    def get_data_url(self, document_id: str) -> str | None:
        """``data:<mime>;base64,...`` URL of the stored original, for previews.

        Returns None when the document is unknown or its original cannot be read.
        """
        doc = self.documents.get(document_id)
        if doc is None:
            return None
        path = self.storage.get_original(document_id)
        if path is None:
            return None
        try:
            raw = path.read_bytes()
        except OSError as exc:
            logger.warning(
                "original_unreadable", document_id=document_id, path=str(path), error=str(exc)
            )
            return None
        encoded = base64.b64encode(raw).decode("ascii")
        return f"data:{doc.file_type};base64,{encoded}"
