"""Per-document file storage.

Layout: ``<documents_dir>/<document_id>/original<ext>``. The original file is
copied byte-for-byte; the extension is lower-cased so lookups and deletion can
use a fixed set of names.
"""

from __future__ import annotations

import shutil
from pathlib import Path

from docindex.errors import StorageError

_ORIGINAL_STEM = "original"

# Lookup order for get_original(); images first so previews resolve quickly.
KNOWN_EXTENSIONS: tuple[str, ...] = (
    ".png", ".jpg", ".jpeg", ".gif", ".webp",
    ".pdf", ".docx", ".txt", ".md", ".markdown",
)


def read_bounded(path: Path | str, max_bytes: int) -> bytes:
    """Read at most *max_bytes* from *path*.

    Callers that must reject oversized files compare the file size first; this
    only guarantees the read itself never exceeds the cap.
    """
    if max_bytes < 0:
        raise ValueError(f"max_bytes must be >= 0, got {max_bytes}")
    with open(path, "rb") as fh:
        return fh.read(max_bytes)


class FileStorage:
    """Copies source files into, and removes them from, per-document directories."""

    def __init__(self, documents_dir: Path | str) -> None:
        self.documents_dir = Path(documents_dir)

    def document_dir(self, document_id: str) -> Path:
        return self.documents_dir / document_id

    def store(self, source: Path | str, document_id: str) -> Path:
        """Copy *source* to ``<document_id>/original<ext>`` and return the new path."""
        source = Path(source)
        doc_dir = self.document_dir(document_id)
        dest = doc_dir / f"{_ORIGINAL_STEM}{source.suffix.lower()}"
        try:
            doc_dir.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, dest)
        except OSError as exc:
            raise StorageError(f"Could not copy '{source.name}' into storage: {exc}") from exc
        return dest

    def get_original(self, document_id: str) -> Path | None:
        """Return the stored original for *document_id*, or None."""
        doc_dir = self.document_dir(document_id)
        for ext in KNOWN_EXTENSIONS:
            candidate = doc_dir / f"{_ORIGINAL_STEM}{ext}"
            if candidate.is_file():
                return candidate
        return None

    def delete(self, document_id: str) -> int:
        """Remove the stored original(s) and the directory if it ends up empty.

        Idempotent. Returns the number of files removed.
        """
        doc_dir = self.document_dir(document_id)
        if not doc_dir.is_dir():
            return 0
        removed = 0
        try:
            for path in doc_dir.glob(f"{_ORIGINAL_STEM}.*"):
                if path.is_file():
                    path.unlink()
                    removed += 1
            if not any(doc_dir.iterdir()):
                doc_dir.rmdir()
        except OSError as exc:
            raise StorageError(f"Could not remove stored files of {document_id}: {exc}") from exc
        return removed
