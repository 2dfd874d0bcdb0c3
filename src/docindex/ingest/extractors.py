"""Text extraction for stored source files.

Dispatch is a pure mapping from (extension, declared MIME type) to a
:class:`MediaKind`; the extension wins, the MIME type is the fallback. Each
kind has one extraction function with the signature ``(path) -> str``:

  PDF         pypdf, page text in order, pages separated by a blank line
  DOCX        python-docx, paragraph text, formatting dropped
  PLAIN_TEXT  UTF-8 read through a bounded reader
  IMAGE       pytesseract OCR, runs under a timeout

All extraction functions are blocking; :class:`Extractor` runs them in a
worker thread so one slow OCR job does not stall other ingestions.
"""

from __future__ import annotations

import asyncio
import zipfile
from enum import Enum
from functools import partial
from pathlib import Path
from typing import Callable, Mapping

import docx
import pypdf
import pytesseract
from docx.opc.exceptions import PackageNotFoundError
from pypdf.errors import PyPdfError
from PIL import Image, UnidentifiedImageError

from docindex.config import MAX_FILE_BYTES
from docindex.errors import (
    CorruptFile,
    ExtractionError,
    ExtractionFailed,
    ExtractionTimeout,
    UnsupportedFormat,
)
from docindex.ingest.storage import read_bounded
from docindex.logging import get_logger

logger = get_logger(__name__)

DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
OCTET_STREAM = "application/octet-stream"


class MediaKind(str, Enum):
    PDF = "pdf"
    DOCX = "docx"
    PLAIN_TEXT = "plain_text"
    IMAGE = "image"


_EXTENSION_KINDS: dict[str, MediaKind] = {
    ".pdf": MediaKind.PDF,
    ".docx": MediaKind.DOCX,
    ".txt": MediaKind.PLAIN_TEXT,
    ".md": MediaKind.PLAIN_TEXT,
    ".markdown": MediaKind.PLAIN_TEXT,
    ".png": MediaKind.IMAGE,
    ".jpg": MediaKind.IMAGE,
    ".jpeg": MediaKind.IMAGE,
    ".gif": MediaKind.IMAGE,
    ".webp": MediaKind.IMAGE,
}

_MIME_TYPES: dict[str, str] = {
    ".pdf": "application/pdf",
    ".docx": DOCX_MIME,
    ".txt": "text/plain",
    ".md": "text/markdown",
    ".markdown": "text/markdown",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".webp": "image/webp",
}

SUPPORTED_EXTENSIONS: frozenset[str] = frozenset(_EXTENSION_KINDS)

ExtractFn = Callable[[Path], str]


# ------------------------------------------------------------------
# Dispatch
# ------------------------------------------------------------------


def guess_media_type(path: Path | str) -> str:
    """MIME type for *path* based on its extension (octet-stream if unknown)."""
    return _MIME_TYPES.get(Path(path).suffix.lower(), OCTET_STREAM)


def detect_kind(path: Path | str, media_type: str | None = None) -> MediaKind:
    """Map a file extension (first) or declared MIME type (fallback) to a kind.

    Raises:
        UnsupportedFormat: If neither the extension nor the MIME type is known.
    """
    ext = Path(path).suffix.lower()
    kind = _EXTENSION_KINDS.get(ext)
    if kind is not None:
        return kind

    mime = (media_type or "").split(";", 1)[0].strip().lower()
    if mime == "application/pdf":
        return MediaKind.PDF
    if mime == DOCX_MIME:
        return MediaKind.DOCX
    if mime.startswith("text/"):
        return MediaKind.PLAIN_TEXT
    if mime.startswith("image/"):
        return MediaKind.IMAGE

    shown = ext or "(no extension)"
    raise UnsupportedFormat(
        f"Unsupported file type: {shown}"
        + (f" ({media_type})" if media_type and media_type != OCTET_STREAM else "")
    )


# ------------------------------------------------------------------
# Per-kind extraction functions
# ------------------------------------------------------------------


def extract_pdf(path: Path) -> str:
    """Concatenate the text of every page of the PDF at *path*."""
    try:
        reader = pypdf.PdfReader(str(path))
        pages = [(page.extract_text() or "").strip() for page in reader.pages]
    except (PyPdfError, ValueError, KeyError, OSError) as exc:
        raise CorruptFile(f"Could not read PDF '{path.name}': {exc}") from exc
    return "\n\n".join(p for p in pages if p)


def extract_docx(path: Path) -> str:
    """Return the raw paragraph text of the Word document at *path*."""
    try:
        document = docx.Document(str(path))
    except (PackageNotFoundError, zipfile.BadZipFile, KeyError, ValueError) as exc:
        raise CorruptFile(f"Could not read DOCX '{path.name}': {exc}") from exc
    return "\n\n".join(p.text for p in document.paragraphs if p.text)


def extract_plain_text(path: Path, max_bytes: int = MAX_FILE_BYTES) -> str:
    """Read *path* as UTF-8; undecodable bytes are replaced, not fatal."""
    return read_bounded(path, max_bytes).decode("utf-8", errors="replace")


def extract_image(path: Path, language: str = "eng", timeout: float = 120.0) -> str:
    """OCR the image at *path* with tesseract.

    Raises:
        CorruptFile: Pillow cannot decode the image.
        ExtractionTimeout: tesseract ran longer than *timeout* seconds.
        ExtractionFailed: tesseract is missing or crashed.
    """
    try:
        with Image.open(path) as img:
            rgb = img.convert("RGB")
    except UnidentifiedImageError as exc:
        raise CorruptFile(f"Could not decode image '{path.name}': {exc}") from exc

    try:
        return pytesseract.image_to_string(rgb, lang=language, timeout=timeout)
    except pytesseract.TesseractNotFoundError as exc:
        raise ExtractionFailed("tesseract is not installed or not on PATH", "tesseract") from exc
    except RuntimeError as exc:
        # pytesseract kills the process and raises RuntimeError on timeout.
        if "timeout" in str(exc).lower():
            raise ExtractionTimeout(f"OCR timed out after {timeout:g}s", "tesseract") from exc
        raise ExtractionFailed(f"OCR failed: {exc}", "tesseract") from exc
    except pytesseract.TesseractError as exc:
        raise ExtractionFailed(f"OCR failed: {exc}", "tesseract") from exc


# ------------------------------------------------------------------
# Extractor
# ------------------------------------------------------------------


class Extractor:
    """Async front for the per-kind extraction functions.

    Args:
        ocr_timeout: Seconds allowed for one OCR run.
        ocr_language: Tesseract language code(s), e.g. ``"eng"`` or ``"eng+deu"``.
        max_text_bytes: Read cap for plain-text files.
        extractors: Optional per-kind overrides (tests, alternative backends).
        ocr_grace: Extra seconds the async watchdog waits past ``ocr_timeout``
            before abandoning the OCR thread.
    """

    def __init__(
        self,
        ocr_timeout: float = 120.0,
        ocr_language: str = "eng",
        max_text_bytes: int = MAX_FILE_BYTES,
        extractors: Mapping[MediaKind, ExtractFn] | None = None,
        ocr_grace: float = 5.0,
    ) -> None:
        self.ocr_timeout = ocr_timeout
        self.ocr_grace = ocr_grace
        self._extractors: dict[MediaKind, ExtractFn] = {
            MediaKind.PDF: extract_pdf,
            MediaKind.DOCX: extract_docx,
            MediaKind.PLAIN_TEXT: partial(extract_plain_text, max_bytes=max_text_bytes),
            MediaKind.IMAGE: partial(extract_image, language=ocr_language, timeout=ocr_timeout),
        }
        if extractors:
            self._extractors.update(extractors)

    async def extract(self, path: Path | str, media_type: str | None = None) -> str:
        """Extract text from *path*.

        Raises:
            UnsupportedFormat: Unknown extension and MIME type.
            CorruptFile: The file could not be parsed.
            ExtractionTimeout: OCR exceeded its timeout.
            ExtractionFailed: Any other backend failure.
        """
        path = Path(path)
        kind = detect_kind(path, media_type)
        fn = self._extractors[kind]
        logger.debug("extraction_started", path=str(path), kind=kind.value)

        call = asyncio.to_thread(fn, path)
        try:
            if kind is MediaKind.IMAGE:
                # Small grace period so tesseract's own timeout fires first.
                text = await asyncio.wait_for(call, timeout=self.ocr_timeout + self.ocr_grace)
            else:
                text = await call
        except asyncio.TimeoutError as exc:
            raise ExtractionTimeout(
                f"OCR timed out after {self.ocr_timeout:g}s", "tesseract"
            ) from exc
        except ExtractionError:
            raise
        except OSError as exc:
            raise ExtractionFailed(f"Could not read '{path.name}': {exc}") from exc

        logger.debug("extraction_finished", path=str(path), kind=kind.value, chars=len(text))
        return text
