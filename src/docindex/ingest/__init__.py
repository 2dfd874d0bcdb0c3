"""docindex ingest pipeline: extractors, chunker, embedding client, orchestrator."""

from docindex.ingest.chunker import CharRatioEstimator, ParagraphChunker, TextChunk, TokenEstimator
from docindex.ingest.embedding_client import EmbeddingClient
from docindex.ingest.extractors import Extractor, MediaKind, detect_kind
from docindex.ingest.orchestrator import IngestionOrchestrator, IngestResult
from docindex.ingest.storage import FileStorage

__all__ = [
    "CharRatioEstimator",
    "EmbeddingClient",
    "Extractor",
    "FileStorage",
    "IngestResult",
    "IngestionOrchestrator",
    "MediaKind",
    "ParagraphChunker",
    "TextChunk",
    "TokenEstimator",
    "detect_kind",
]
