"""Dense retrieval over ingested chunks.

The query is embedded with the same model used at ingest time and matched
against the model's vector table by L2 distance. Relevance is reported as
``1 - distance`` (not clamped; it can go negative for distant hits).

Retrieval degrades instead of raising: if the query cannot be embedded or the
vector store fails, the result is an empty list and a warning is logged. Bad
input (empty query, non-positive limit) is still an error.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass

from docindex.db.models import Scope
from docindex.db.vectors import SimilarChunk, VectorStore
from docindex.errors import EmptyQuery, ExternalDependencyError, InvalidLimit, StorageError
from docindex.ingest.embedding_client import EmbeddingClient
from docindex.logging import get_logger

logger = get_logger(__name__)

DEFAULT_LIMIT = 3


@dataclass
class SearchHit:
    """A retrieved passage.

    Attributes:
        document_id: Owning document.
        document_name: Display name of the owning document.
        content: Chunk text.
        chunk_index: Position of the chunk inside its document.
        relevance: ``1 - L2 distance``; higher is closer.
    """

    document_id: str
    document_name: str
    content: str
    chunk_index: int
    relevance: float

    @classmethod
    def from_similar(cls, hit: SimilarChunk) -> "SearchHit":
        return cls(
            document_id=hit.document_id,
            document_name=hit.document_name,
            content=hit.content,
            chunk_index=hit.chunk_index,
            relevance=1.0 - hit.distance,
        )


class RetrievalService:
    """Query-side counterpart of the ingestion orchestrator."""

    def __init__(
        self,
        embedder: EmbeddingClient,
        vectors: VectorStore,
        default_limit: int = DEFAULT_LIMIT,
        min_relevance: float | None = None,
    ) -> None:
        self._embedder = embedder
        self._vectors = vectors
        self.default_limit = default_limit
        self.min_relevance = min_relevance

    @property
    def embedder(self) -> EmbeddingClient:
        return self._embedder

    async def search(
        self,
        query: str,
        scope: Scope | None = None,
        limit: int | None = None,
        min_relevance: float | None = None,
    ) -> list[SearchHit]:
        """Return up to *limit* hits for *query*, most relevant first.

        Only chunks of completed documents inside *scope* are searched.
        Hits whose relevance is at or below *min_relevance* are dropped.

        Raises:
            EmptyQuery: *query* is empty or whitespace.
            InvalidLimit: *limit* is not positive.
        """
        if not query or not query.strip():
            raise EmptyQuery("Search query must not be empty")
        limit = self.default_limit if limit is None else limit
        if limit <= 0:
            raise InvalidLimit(f"limit must be > 0, got {limit}")
        threshold = self.min_relevance if min_relevance is None else min_relevance

        try:
            query_vector = await self._embedder.embed(query)
        except ExternalDependencyError as exc:
            logger.warning("query_embedding_failed", error=str(exc))
            return []

        try:
            similar = self._vectors.search_similar(query_vector, limit, scope)
        except (StorageError, sqlite3.Error) as exc:
            logger.warning("vector_search_failed", error=str(exc))
            return []

        hits = [SearchHit.from_similar(s) for s in similar]
        if threshold is not None:
            hits = [h for h in hits if h.relevance > threshold]
        logger.debug("search_finished", hits=len(hits), limit=limit)
        return hits
