"""Domain models for the docindex database layer."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ProcessingStatus(str, Enum):
    """Per-document ingestion state."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ProcessingStatus.COMPLETED, ProcessingStatus.FAILED)


# Allowed forward moves; terminal states have none.
TRANSITIONS: dict[ProcessingStatus, frozenset[ProcessingStatus]] = {
    ProcessingStatus.PENDING: frozenset({ProcessingStatus.PROCESSING, ProcessingStatus.FAILED}),
    ProcessingStatus.PROCESSING: frozenset({ProcessingStatus.COMPLETED, ProcessingStatus.FAILED}),
    ProcessingStatus.COMPLETED: frozenset(),
    ProcessingStatus.FAILED: frozenset(),
}


@dataclass(frozen=True)
class Scope:
    """Optional (project, task) restriction. Both unset means everything."""

    project_id: str | None = None
    task_id: str | None = None


@dataclass
class Document:
    id: str
    name: str
    file_type: str
    file_size: int
    project_id: str | None = None
    task_id: str | None = None
    file_path: str = ""
    status: ProcessingStatus = ProcessingStatus.PENDING
    error: str | None = None
    extracted_text: str | None = None
    created_at: str | None = None


@dataclass
class Chunk:
    document_id: str
    chunk_index: int
    content: str
    token_count: int
    created_at: str | None = None
    id: int | None = None  # set after insert; None for unsaved chunks
