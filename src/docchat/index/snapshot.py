"""Immutable views of the searchable corpus."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Tuple

from docchat.models import Document


@dataclass(slots=True, frozen=True)
class SnapshotEntry:
    document: Document
    chunk_index: int
    text: str


@dataclass(slots=True, frozen=True)
class CorpusSnapshot:
    """All documents and their chunks as seen by one search.

    Entries are stored document by document, chunks in index order. That
    order breaks ties between equal scores.
    """

    documents: Tuple[Document, ...] = ()
    entries: Tuple[SnapshotEntry, ...] = ()
    version: int = 0

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def chunk_count(self) -> int:
        return len(self.entries)


def build_snapshot(documents: Iterable[Document], *, version: int = 0) -> CorpusSnapshot:
    """Collect the already-computed chunks of ``documents`` into a snapshot."""
    docs = tuple(documents)
    entries = tuple(
        SnapshotEntry(document=document, chunk_index=index, text=text)
        for document in docs
        for index, text in enumerate(document.chunks)
    )
    return CorpusSnapshot(documents=docs, entries=entries, version=version)


EMPTY_SNAPSHOT = CorpusSnapshot()
