"""Tests for format detection and the per-kind extractors."""

from __future__ import annotations

import threading
from pathlib import Path
from unittest.mock import MagicMock, patch

import docx
import pytesseract
import pytest
from PIL import Image

from docindex.errors import (
    CorruptFile,
    ExtractionFailed,
    ExtractionTimeout,
    ExternalDependencyError,
    UnsupportedFormat,
)
from docindex.ingest.extractors import (
    DOCX_MIME,
    Extractor,
    MediaKind,
    detect_kind,
    extract_docx,
    extract_image,
    extract_pdf,
    extract_plain_text,
    guess_media_type,
)


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _mock_reader(page_texts: list[str | None]):
    """Return a mock PdfReader with pages that yield the given texts."""
    pages = []
    for text in page_texts:
        page = MagicMock()
        page.extract_text.return_value = text
        pages.append(page)
    reader = MagicMock()
    reader.pages = pages
    return reader


def _make_docx(path: Path, paragraphs: list[str]) -> Path:
    document = docx.Document()
    for text in paragraphs:
        document.add_paragraph(text)
    document.save(str(path))
    return path


def _make_png(path: Path) -> Path:
    Image.new("RGB", (20, 10), color="white").save(path)
    return path


# ------------------------------------------------------------------
# Dispatch
# ------------------------------------------------------------------


@pytest.mark.parametrize("name,kind", [
    ("report.pdf", MediaKind.PDF),
    ("REPORT.PDF", MediaKind.PDF),
    ("letter.docx", MediaKind.DOCX),
    ("notes.txt", MediaKind.PLAIN_TEXT),
    ("readme.md", MediaKind.PLAIN_TEXT),
    ("shot.png", MediaKind.IMAGE),
    ("photo.JPEG", MediaKind.IMAGE),
    ("anim.gif", MediaKind.IMAGE),
    ("pic.webp", MediaKind.IMAGE),
])
def test_detect_kind_by_extension(name, kind):
    assert detect_kind(name) is kind


@pytest.mark.parametrize("mime,kind", [
    ("application/pdf", MediaKind.PDF),
    (DOCX_MIME, MediaKind.DOCX),
    ("text/csv", MediaKind.PLAIN_TEXT),
    ("text/plain; charset=utf-8", MediaKind.PLAIN_TEXT),
    ("image/bmp", MediaKind.IMAGE),
])
def test_detect_kind_falls_back_to_mime(mime, kind):
    assert detect_kind("upload.bin", mime) is kind


def test_extension_wins_over_mime():
    assert detect_kind("notes.txt", "application/pdf") is MediaKind.PLAIN_TEXT


@pytest.mark.parametrize("name,mime", [
    ("archive.xyz", None),
    ("noext", None),
    ("data.bin", "application/octet-stream"),
    ("sheet.xlsx", "application/vnd.ms-excel"),
])
def test_detect_kind_unsupported(name, mime):
    with pytest.raises(UnsupportedFormat):
        detect_kind(name, mime)


def test_guess_media_type():
    assert guess_media_type("a.PDF") == "application/pdf"
    assert guess_media_type("a.md") == "text/markdown"
    assert guess_media_type("a.xyz") == "application/octet-stream"


# ------------------------------------------------------------------
# PDF
# ------------------------------------------------------------------


def test_extract_pdf_joins_pages(tmp_path):
    with patch("docindex.ingest.extractors.pypdf") as mock_pypdf:
        mock_pypdf.PdfReader.return_value = _mock_reader(["Page one. ", None, "Page three."])
        text = extract_pdf(tmp_path / "doc.pdf")
    assert text == "Page one.\n\nPage three."


def test_extract_pdf_corrupt_file(tmp_path):
    bad = tmp_path / "bad.pdf"
    bad.write_bytes(b"this is not a pdf")
    with pytest.raises(CorruptFile, match="bad.pdf"):
        extract_pdf(bad)


# ------------------------------------------------------------------
# DOCX
# ------------------------------------------------------------------


def test_extract_docx_paragraphs(tmp_path):
    path = _make_docx(tmp_path / "letter.docx", ["Dear team,", "", "The launch moved to May."])
    assert extract_docx(path) == "Dear team,\n\nThe launch moved to May."


def test_extract_docx_corrupt_file(tmp_path):
    bad = tmp_path / "bad.docx"
    bad.write_bytes(b"garbage")
    with pytest.raises(CorruptFile):
        extract_docx(bad)


# ------------------------------------------------------------------
# Plain text
# ------------------------------------------------------------------


def test_extract_plain_text_utf8(tmp_path):
    path = tmp_path / "notes.md"
    path.write_text("# Título\n\nÜber alles", encoding="utf-8")
    assert extract_plain_text(path) == "# Título\n\nÜber alles"


def test_extract_plain_text_replaces_invalid_bytes(tmp_path):
    path = tmp_path / "notes.txt"
    path.write_bytes(b"ok \xff\xfe done")
    assert extract_plain_text(path) == "ok \ufffd\ufffd done"


def test_extract_plain_text_bounded(tmp_path):
    path = tmp_path / "big.txt"
    path.write_text("abcdefghij")
    assert extract_plain_text(path, max_bytes=4) == "abcd"


def test_extract_plain_text_empty(tmp_path):
    path = tmp_path / "empty.txt"
    path.write_bytes(b"")
    assert extract_plain_text(path) == ""


# ------------------------------------------------------------------
# Image (OCR)
# ------------------------------------------------------------------


def test_extract_image_runs_tesseract(tmp_path):
    path = _make_png(tmp_path / "shot.png")
    with patch(
        "docindex.ingest.extractors.pytesseract.image_to_string", return_value="Invoice 42"
    ) as mock_ocr:
        text = extract_image(path, language="eng+deu", timeout=30)
    assert text == "Invoice 42"
    _, kwargs = mock_ocr.call_args
    assert kwargs["lang"] == "eng+deu"
    assert kwargs["timeout"] == 30


def test_extract_image_undecodable(tmp_path):
    bad = tmp_path / "bad.png"
    bad.write_bytes(b"not an image")
    with pytest.raises(CorruptFile):
        extract_image(bad)


def test_extract_image_timeout(tmp_path):
    path = _make_png(tmp_path / "shot.png")
    with patch(
        "docindex.ingest.extractors.pytesseract.image_to_string",
        side_effect=RuntimeError("Tesseract process timeout"),
    ):
        with pytest.raises(ExtractionTimeout) as exc_info:
            extract_image(path, timeout=1)
    assert isinstance(exc_info.value, ExternalDependencyError)
    assert exc_info.value.provider_name == "tesseract"


def test_extract_image_tesseract_missing(tmp_path):
    path = _make_png(tmp_path / "shot.png")
    with patch(
        "docindex.ingest.extractors.pytesseract.image_to_string",
        side_effect=pytesseract.TesseractNotFoundError(),
    ):
        with pytest.raises(ExtractionFailed, match="tesseract"):
            extract_image(path)


# ------------------------------------------------------------------
# Extractor (async front)
# ------------------------------------------------------------------


async def test_extractor_reads_text_file(tmp_path):
    path = tmp_path / "a.txt"
    path.write_text("hello")
    assert await Extractor().extract(path) == "hello"


async def test_extractor_uses_mime_for_unknown_extension(tmp_path):
    path = tmp_path / "upload.bin"
    path.write_text("from mime")
    assert await Extractor().extract(path, "text/plain") == "from mime"


async def test_extractor_unsupported(tmp_path):
    path = tmp_path / "a.xyz"
    path.write_text("x")
    with pytest.raises(UnsupportedFormat):
        await Extractor().extract(path)


async def test_extractor_override_table(tmp_path):
    path = tmp_path / "a.pdf"
    path.write_bytes(b"%PDF")
    extractor = Extractor(extractors={MediaKind.PDF: lambda p: f"stub:{p.name}"})
    assert await extractor.extract(path) == "stub:a.pdf"


async def test_extractor_watchdog_abandons_hung_ocr(tmp_path):
    path = _make_png(tmp_path / "shot.png")
    release = threading.Event()

    def _hang(p: Path) -> str:
        release.wait(5)
        return "late"

    extractor = Extractor(ocr_timeout=0.05, ocr_grace=0, extractors={MediaKind.IMAGE: _hang})
    try:
        with pytest.raises(ExtractionTimeout, match="OCR timed out after 0.05s"):
            await extractor.extract(path)
    finally:
        release.set()


async def test_extractor_wraps_os_error(tmp_path):
    def _boom(path: Path) -> str:
        raise PermissionError("denied")

    path = tmp_path / "a.txt"
    path.write_text("x")
    extractor = Extractor(extractors={MediaKind.PLAIN_TEXT: _boom})
    with pytest.raises(ExtractionFailed, match="denied"):
        await extractor.extract(path)


async def test_extractor_passes_extraction_errors_through(tmp_path):
    path = tmp_path / "bad.pdf"
    path.write_bytes(b"not a pdf")
    with pytest.raises(CorruptFile):
        await Extractor().extract(path)


async def test_extractor_image_uses_configured_language(tmp_path):
    path = _make_png(tmp_path / "shot.png")
    with patch(
        "docindex.ingest.extractors.pytesseract.image_to_string", return_value="ok"
    ) as mock_ocr:
        text = await Extractor(ocr_language="deu", ocr_timeout=15).extract(path)
    assert text == "ok"
    assert mock_ocr.call_args.kwargs["lang"] == "deu"
    assert mock_ocr.call_args.kwargs["timeout"] == 15
