"""Plain-text extraction for uploaded documents.

Text and Markdown files are read as UTF-8, Word documents go through
python-docx. PDF files are recognised but rejected.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict

from docx import Document as DocxDocument

from docchat.utils.text import normalize_whitespace

LOGGER = logging.getLogger(__name__)

TEXT_PLAIN = "text/plain"
TEXT_MARKDOWN = "text/markdown"
DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
PDF = "application/pdf"

SUPPORTED_MIME_TYPES = frozenset({TEXT_PLAIN, TEXT_MARKDOWN, DOCX})
ACCEPTED_MIME_TYPES = SUPPORTED_MIME_TYPES | {PDF}

SUFFIX_MIME_TYPES: Dict[str, str] = {
    ".txt": TEXT_PLAIN,
    ".text": TEXT_PLAIN,
    ".md": TEXT_MARKDOWN,
    ".markdown": TEXT_MARKDOWN,
    ".docx": DOCX,
    ".pdf": PDF,
}


class DocumentError(Exception):
    """Base class for document ingestion failures."""


class UnsupportedFormat(DocumentError):
    """The declared MIME type cannot be turned into text."""


class ExtractionFailed(DocumentError):
    """The document could not be read or parsed."""


def guess_mime_type(path: Path) -> str | None:
    """Resolve a MIME type from the file suffix."""
    return SUFFIX_MIME_TYPES.get(path.suffix.lower())


def extract_text(path: Path, mime_type: str) -> str:
    """Return the plain-text content of ``path``.

    Raises:
        UnsupportedFormat: for PDF and any unknown MIME type.
        ExtractionFailed: when the file cannot be read or parsed.
    """
    if mime_type in (TEXT_PLAIN, TEXT_MARKDOWN):
        return _extract_plain(path)
    if mime_type == DOCX:
        return _extract_docx(path)
    if mime_type == PDF:
        raise UnsupportedFormat("PDF processing not yet supported. Please use .txt, .md or .docx files.")
    raise UnsupportedFormat(f"Unsupported file type: {mime_type}")


def _extract_plain(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ExtractionFailed(f"Failed to read text file {path.name}: {exc}") from exc


def _extract_docx(path: Path) -> str:
    try:
        doc = DocxDocument(str(path))
    except Exception as exc:
        LOGGER.error("Failed to open DOCX %s: %s", path, exc)
        raise ExtractionFailed(f"Failed to parse DOCX {path.name}: {exc}") from exc
    return normalize_whitespace(paragraph.text for paragraph in doc.paragraphs)
