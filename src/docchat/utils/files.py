"""Utility helpers for working with files."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Iterator

from docchat.ingestion.extractors import SUPPORTED_MIME_TYPES, guess_mime_type


def iter_document_paths(inputs: Iterable[Path]) -> Iterator[Path]:
    """Yield ingestible document paths from input paths, descending into directories.

    Only text, Markdown and Word files are yielded; PDFs are left out.
    """
    for item in inputs:
        if item.is_dir():
            yield from iter_document_paths(
                sorted(child for child in item.rglob("*") if child.is_file())
            )
        elif item.is_file() and guess_mime_type(item) in SUPPORTED_MIME_TYPES:
            yield item


def strip_extension(filename: str) -> str:
    """Drop the last extension from a file name, keeping any directories out."""
    name = Path(filename).name
    stem, dot, _ = name.rpartition(".")
    return stem if dot and stem else name
