"""Lexical search over the in-memory corpus snapshot."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Iterable, List

from docchat.index.scoring import score
from docchat.index.snapshot import EMPTY_SNAPSHOT, CorpusSnapshot, build_snapshot
from docchat.models import Document
from docchat.utils.text import tokenize

LOGGER = logging.getLogger(__name__)

SIMILARITY_THRESHOLD = 0.01


@dataclass(slots=True)
class SearchResult:
    document: Document
    text: str
    chunk_index: int
    score: float


def search(snapshot: CorpusSnapshot, query: str, *, limit: int = 5) -> List[SearchResult]:
    """Return the ``limit`` best scoring chunks of ``snapshot`` for ``query``.

    Chunks scoring at or below ``SIMILARITY_THRESHOLD`` are dropped. Equal
    scores keep snapshot order.
    """
    if not snapshot.entries:
        return []

    query_terms = tokenize(query)
    candidates: List[SearchResult] = []
    for entry in snapshot.entries:
        similarity = score(query_terms, tokenize(entry.text))
        LOGGER.debug(
            "Chunk %s/%d scored %.6f", entry.document.name, entry.chunk_index, similarity
        )
        if similarity > SIMILARITY_THRESHOLD:
            candidates.append(
                SearchResult(
                    document=entry.document,
                    text=entry.text,
                    chunk_index=entry.chunk_index,
                    score=similarity,
                )
            )

    candidates.sort(key=lambda result: result.score, reverse=True)
    return candidates[: max(limit, 0)]


class Searcher:
    """Owns the current corpus snapshot and answers queries against it."""

    def __init__(self, documents: Iterable[Document] | None = None) -> None:
        self._snapshot = EMPTY_SNAPSHOT
        self._install_lock = threading.Lock()
        if documents is not None:
            self.install(documents)

    @property
    def snapshot(self) -> CorpusSnapshot:
        return self._snapshot

    def install(self, documents: Iterable[Document]) -> CorpusSnapshot:
        """Replace the current snapshot with one built from ``documents``.

        ``documents`` must be the complete document set. Concurrent installs
        are serialized; searches already running keep the snapshot they
        started with.
        """
        return self.refresh(lambda: documents)

    def refresh(self, load: Callable[[], Iterable[Document]]) -> CorpusSnapshot:
        """Install the document set returned by ``load``.

        ``load`` runs under the install lock, so the set read last is the
        set installed last.
        """
        with self._install_lock:
            snapshot = build_snapshot(load(), version=self._snapshot.version + 1)
            self._snapshot = snapshot

        LOGGER.info(
            "Search index updated with %d documents (%d chunks)",
            len(snapshot.documents),
            snapshot.chunk_count,
        )
        for document in snapshot.documents:
            LOGGER.debug("Document: %s, chunks: %d", document.name, len(document.chunks))
        return snapshot

    def search(self, query: str, *, limit: int = 5) -> List[SearchResult]:
        snapshot = self._snapshot
        results = search(snapshot, query, limit=limit)
        LOGGER.info(
            "Search for %r returned %d matches (snapshot v%d)",
            query,
            len(results),
            snapshot.version,
        )
        return results
