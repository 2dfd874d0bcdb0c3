"""Ingestion pipeline: store file → extract → chunk → embed → persist.

Validation failures (missing file, oversized file, unsupported format) raise
an :class:`InputError` before anything is written. Once the document row
exists, every failure is captured into its ``failed`` status; ``ingest`` does
not raise for them. An aborted pass removes the chunk rows and vectors it
wrote, so a document's chunks are either all present (``completed``) or
absent.

Per-chunk embedding failures are logged and swallowed: the chunk is kept
without a vector and simply never matches a similarity search.
"""

from __future__ import annotations

import asyncio
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from docindex.config import MAX_FILE_BYTES
from docindex.db.chunks import ChunkStore
from docindex.db.documents import DocumentStore
from docindex.db.models import Chunk, Document, ProcessingStatus, Scope
from docindex.db.vectors import VectorStore
from docindex.errors import (
    DocIndexError,
    EmbeddingUnavailable,
    ExtractionError,
    ExternalDependencyError,
    FileTooLarge,
    SourceNotFound,
    UnsupportedFormat,
)
from docindex.ingest.chunker import ParagraphChunker
from docindex.ingest.embedding_client import EmbeddingClient
from docindex.ingest.extractors import Extractor, detect_kind, guess_media_type
from docindex.ingest.storage import FileStorage
from docindex.logging import get_logger

logger = get_logger(__name__)

# Clipboard MIME type → stored extension; unknown types are stored as PNG.
_CLIPBOARD_EXTENSIONS: dict[str, str] = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/gif": ".gif",
    "image/webp": ".webp",
}


@dataclass
class IngestResult:
    """Outcome of one ingestion.

    ``success`` is True only when the document reached ``completed``; chunks
    whose embedding failed do not count against it. ``error`` carries the
    stored failure message otherwise.
    """

    success: bool
    document_id: str
    error: str | None = None
    status: ProcessingStatus | None = None

    @classmethod
    def from_document(cls, doc: Document) -> "IngestResult":
        ok = doc.status is ProcessingStatus.COMPLETED
        return cls(
            success=ok,
            document_id=doc.id,
            error=None if ok else (doc.error or f"Document is {doc.status.value}"),
            status=doc.status,
        )


class _DocumentGone(Exception):
    """The document was deleted while its ingestion was still running."""


class IngestionOrchestrator:
    """Drives one document at a time through the pipeline.

    Concurrent ``ingest`` calls for different files may interleave on the same
    event loop; within one document, chunk rows are written in index order
    before any embedding request starts, so indices never depend on which
    request finishes first.

    Args:
        documents: Document metadata / status store.
        chunks: Chunk store.
        vectors: Vector store for the configured embedding model.
        storage: Per-document file storage.
        extractor: Text extractor.
        chunker: Paragraph chunker.
        embedder: Embedding client.
        max_file_bytes: Ingestion size ceiling.
        embed_concurrency: Maximum embedding requests in flight per document.
    """

    def __init__(
        self,
        documents: DocumentStore,
        chunks: ChunkStore,
        vectors: VectorStore,
        storage: FileStorage,
        extractor: Extractor,
        chunker: ParagraphChunker,
        embedder: EmbeddingClient,
        max_file_bytes: int = MAX_FILE_BYTES,
        embed_concurrency: int = 1,
    ) -> None:
        if embed_concurrency < 1:
            raise ValueError("embed_concurrency must be >= 1")
        self._documents = documents
        self._chunks = chunks
        self._vectors = vectors
        self._storage = storage
        self._extractor = extractor
        self._chunker = chunker
        self._embedder = embedder
        self.max_file_bytes = max_file_bytes
        self.embed_concurrency = embed_concurrency

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def ingest(
        self,
        source_path: Path | str,
        scope: Scope | None = None,
        *,
        name: str | None = None,
        media_type: str | None = None,
    ) -> IngestResult:
        """Run the full pipeline for *source_path*.

        Pipeline failures end up in the returned result (and the document's
        ``failed`` status), never as exceptions.

        Raises:
            SourceNotFound: *source_path* is not a readable file.
            FileTooLarge: The file exceeds ``max_file_bytes``.
            UnsupportedFormat: No extractor handles the file.
        """
        source = Path(source_path)
        if not source.is_file():
            raise SourceNotFound(f"File not found: {source}")
        size = source.stat().st_size
        if size > self.max_file_bytes:
            raise FileTooLarge(size, self.max_file_bytes)
        media_type = media_type or guess_media_type(source)
        detect_kind(source, media_type)

        doc = self._documents.create(
            name=name or source.name,
            file_type=media_type,
            file_size=size,
            scope=scope,
        )
        log = logger.bind(document_id=doc.id, name=doc.name)
        log.info("document_accepted", file_type=media_type, file_size=size)

        try:
            stored = self._storage.store(source, doc.id)
            self._require(self._documents.set_file_path(doc.id, str(stored)))
            self._require(self._documents.mark_processing(doc.id))
            await self._process(doc.id, stored, media_type, log)
        except _DocumentGone:
            log.warning("document_deleted_during_ingestion")
        except Exception as exc:
            self._abort(doc.id, exc, log)

        final = self._documents.get(doc.id)
        if final is None:
            return IngestResult(
                success=False,
                document_id=doc.id,
                error="Document was deleted during ingestion",
            )
        return IngestResult.from_document(final)

    async def ingest_bytes(
        self,
        data: bytes,
        media_type: str,
        scope: Scope | None = None,
        *,
        name: str | None = None,
    ) -> IngestResult:
        """Ingest in-memory image data (e.g. a pasted screenshot).

        The bytes go to a temporary file next to the document directories,
        which is removed whatever the outcome.

        Raises:
            FileTooLarge: *data* exceeds ``max_file_bytes``.
            UnsupportedFormat: *media_type* is not an image type.
        """
        if not media_type.startswith("image/"):
            raise UnsupportedFormat(f"In-memory data must be an image, got {media_type}")
        if len(data) > self.max_file_bytes:
            raise FileTooLarge(len(data), self.max_file_bytes)
        ext = _CLIPBOARD_EXTENSIONS.get(media_type, ".png")
        if name is None:
            stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%f")[:-3]
            name = f"screenshot-{stamp}Z{ext}"

        self._storage.documents_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix="temp-", suffix=ext, dir=self._storage.documents_dir
        )
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
            return await self.ingest(tmp_path, scope, name=name, media_type=media_type)
        finally:
            tmp_path.unlink(missing_ok=True)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _process(self, doc_id: str, stored: Path, media_type: str, log) -> None:
        try:
            text = await self._extractor.extract(stored, media_type)
        except ExtractionError as exc:
            log.warning("extraction_failed", error=str(exc))
            self._require(self._documents.mark_failed(doc_id, str(exc)))
            return

        if not text.strip():
            self._require(self._documents.mark_completed(doc_id, ""))
            log.info("document_ingested", chunks=0, embedded=0)
            return

        pieces = self._chunker.chunk(text)
        stored_chunks: list[Chunk] = []
        for piece in pieces:
            self._require(self._documents.exists(doc_id))
            chunk = Chunk(
                document_id=doc_id,
                chunk_index=piece.index,
                content=piece.content,
                token_count=piece.token_count,
            )
            self._chunks.add(chunk)
            stored_chunks.append(chunk)

        embedded = await self._embed_chunks(doc_id, stored_chunks, log)

        self._require(self._documents.mark_completed(doc_id, text))
        log.info("document_ingested", chunks=len(stored_chunks), embedded=embedded)

    async def _embed_chunks(self, doc_id: str, chunks: list[Chunk], log) -> int:
        """Embed and store a vector per chunk. Returns how many succeeded."""
        if not chunks:
            return 0
        try:
            self._embedder.check_credentials()
        except EmbeddingUnavailable as exc:
            log.warning("embedding_unavailable", error=str(exc), chunks=len(chunks))
            return 0

        semaphore = asyncio.Semaphore(self.embed_concurrency)

        async def _one(chunk: Chunk) -> bool:
            async with semaphore:
                try:
                    vector = await self._embedder.embed(chunk.content)
                except ExternalDependencyError as exc:
                    log.warning(
                        "chunk_embedding_failed", chunk_index=chunk.chunk_index, error=str(exc)
                    )
                    return False
            self._require(self._documents.exists(doc_id))
            self._vectors.store(chunk.id, vector)
            return True

        # return_exceptions: let every request settle before a failure unwinds,
        # so no vector is written after the abort cleanup has run.
        results = await asyncio.gather(*(_one(c) for c in chunks), return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                raise result
        return sum(1 for r in results if r is True)

    # ------------------------------------------------------------------
    # Failure handling
    # ------------------------------------------------------------------

    @staticmethod
    def _require(still_there: bool) -> None:
        if not still_there:
            raise _DocumentGone

    def _abort(self, doc_id: str, exc: Exception, log) -> None:
        """Remove partial chunks/vectors and mark the document failed."""
        message = str(exc) or exc.__class__.__name__
        if isinstance(exc, DocIndexError):
            log.error("ingestion_failed", error=message)
        else:
            log.exception("ingestion_failed", error=message)
        try:
            self._vectors.delete_by_document(doc_id)
            self._chunks.delete_by_document(doc_id)
            if not self._documents.mark_failed(doc_id, message):
                log.warning("document_deleted_during_ingestion")
        except DocIndexError as cleanup_exc:
            log.error("ingestion_cleanup_failed", error=str(cleanup_exc))
