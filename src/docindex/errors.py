"""Exception hierarchy for docindex.

    DocIndexError
    +-- InputError               (rejected synchronously, no state created)
    |   +-- SourceNotFound
    |   +-- FileTooLarge
    |   +-- UnsupportedFormat
    |   +-- EmptyQuery
    |   +-- InvalidLimit
    +-- ExtractionError          (turns a document 'failed')
    |   +-- CorruptFile
    |   +-- ExtractionFailed
    |   +-- ExtractionTimeout
    +-- ExternalDependencyError
    |   +-- EmbeddingUnavailable
    |   +-- EmbeddingFailed
    |   +-- ExtractionTimeout
    +-- StorageError
    |   +-- DimensionMismatch
    |   +-- InvalidTransition
    +-- ConfigError

InputError and ConfigError are also ValueErrors so callers that only know the
builtin hierarchy still catch them.
"""

from __future__ import annotations


class DocIndexError(Exception):
    """Base exception. ``provider_name`` names the external service, if any."""

    def __init__(self, message: str = "An unexpected error occurred", provider_name: str | None = None) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Input errors
# ---------------------------------------------------------------------------


class InputError(DocIndexError, ValueError):
    """Caller supplied something the pipeline refuses to process."""


class SourceNotFound(InputError):
    """The source file does not exist or is not a regular file."""


class FileTooLarge(InputError):
    """The source file exceeds the ingestion size ceiling."""

    def __init__(self, size: int, limit: int) -> None:
        self.size = size
        self.limit = limit
        super().__init__(
            f"File too large ({size / (1024 * 1024):.1f} MB, max {limit // (1024 * 1024)}MB)"
        )


class UnsupportedFormat(InputError):
    """No extractor handles this extension / MIME type."""


class EmptyQuery(InputError):
    """A search query was empty or whitespace only."""


class InvalidLimit(InputError):
    """A result-count limit was not a positive integer."""


# ---------------------------------------------------------------------------
# Extraction / external dependencies
# ---------------------------------------------------------------------------


class ExtractionError(DocIndexError):
    """Text could not be extracted from a stored file."""


class CorruptFile(ExtractionError):
    """The file matched a known format but could not be parsed."""


class ExtractionFailed(ExtractionError):
    """The extraction backend itself failed (e.g. tesseract missing)."""


class ExternalDependencyError(DocIndexError):
    """An external collaborator (embedding provider, OCR engine) failed."""


class ExtractionTimeout(ExtractionError, ExternalDependencyError):
    """Extraction (OCR) did not finish within its timeout."""


class EmbeddingUnavailable(ExternalDependencyError):
    """No credential is available for the embedding provider."""


class EmbeddingFailed(ExternalDependencyError):
    """The embedding provider returned an error or an unusable vector."""


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------


class StorageError(DocIndexError):
    """A database or filesystem write failed."""


class DimensionMismatch(StorageError):
    """A vector's length differs from the vector store's dimensionality."""

    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Vector has {actual} dimensions, store expects {expected}")


class InvalidTransition(StorageError):
    """A document status change not allowed by the state machine."""


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigError(DocIndexError, ValueError):
    """Raised when a config file contains an invalid or forbidden value."""
