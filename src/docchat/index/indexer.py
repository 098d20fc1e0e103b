"""Document ingestion pipeline."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

from docchat.index.search import Searcher
from docchat.index.storage import SQLiteStore
from docchat.ingestion.extractors import (
    DocumentError,
    UnsupportedFormat,
    extract_text,
    guess_mime_type,
)
from docchat.models import Document
from docchat.utils.files import iter_document_paths, strip_extension
from docchat.utils.text import chunk_text

LOGGER = logging.getLogger(__name__)


def find_documents(paths: Sequence[Path]) -> list[Path]:
    """Find all ingestible files under the given paths."""
    return list(iter_document_paths(paths))


@dataclass(slots=True)
class IndexStats:
    inserted: int = 0
    failed: int = 0
    processed_files: list[Path] = field(default_factory=list)

    def increment(self, status: str, path: Path) -> None:
        if status == "inserted":
            self.inserted += 1
        else:
            self.failed += 1
        self.processed_files.append(path)


class Indexer:
    """Coordinates text extraction, persistence and search index refreshes."""

    def __init__(
        self,
        store: SQLiteStore,
        searcher: Searcher,
        *,
        chunk_chars: int = 1000,
    ) -> None:
        self.store = store
        self.searcher = searcher
        self.chunk_chars = chunk_chars

    def index(self, paths: Sequence[Path]) -> IndexStats:
        """Ingest every supported file found under the given paths."""
        files = find_documents(paths)
        if not files:
            LOGGER.warning("No supported documents found")
            return IndexStats()

        stats = IndexStats()
        for path in files:
            try:
                LOGGER.info("Processing: %s", path)
                self.ingest_file(path)
                stats.increment("inserted", path)
            except DocumentError as exc:
                LOGGER.error("Failed to process %s: %s", path, exc)
                stats.increment("failed", path)
        return stats

    def ingest_file(
        self,
        path: Path,
        *,
        mime_type: str | None = None,
        original_name: str | None = None,
        size: int | None = None,
    ) -> Document:
        """Extract, chunk and store a single file, then refresh the index.

        Extraction errors propagate before anything is stored.
        """
        original_name = original_name or path.name
        mime_type = mime_type or guess_mime_type(Path(original_name))
        if mime_type is None:
            raise UnsupportedFormat(f"Unsupported file type: {Path(original_name).suffix or original_name}")

        content = extract_text(path, mime_type)
        chunks = chunk_text(content, max_chars=self.chunk_chars)
        if not chunks:
            LOGGER.warning("No text extracted from %s", original_name)

        document = self.store.create_document(
            name=strip_extension(original_name),
            original_name=original_name,
            mime_type=mime_type,
            size=size if size is not None else path.stat().st_size,
            content=content,
            chunks=chunks,
        )
        LOGGER.info("Stored %s as document %d with %d chunks", original_name, document.id, len(chunks))
        self.refresh()
        return document

    def delete(self, doc_id: int) -> bool:
        """Delete a document and drop its chunks from the search index."""
        deleted = self.store.delete_document(doc_id)
        if deleted:
            self.refresh()
        return deleted

    def refresh(self) -> None:
        """Push the complete document set to the searcher."""
        self.searcher.refresh(self.store.list_documents)
