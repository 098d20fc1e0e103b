"""Text helpers: term extraction and sentence-aligned chunking."""

from __future__ import annotations

import re
from typing import Iterable, List

STOP_WORDS = frozenset(
    {
        "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of",
        "with", "by", "is", "are", "was", "were", "be", "been", "being", "have",
        "has", "had", "do", "does", "did", "will", "would", "could", "should",
        "may", "might", "must", "can", "this", "that", "these", "those",
    }
)

_NON_WORD_RE = re.compile(r"[^\w\s]")
_SENTENCE_END_RE = re.compile(r"[.!?]+")


def tokenize(text: str) -> List[str]:
    """Return the index terms of ``text`` in their original order.

    Punctuation becomes whitespace, single-character terms and stopwords are
    dropped. Duplicates are kept since term frequency matters for scoring.
    """
    cleaned = _NON_WORD_RE.sub(" ", text.lower())
    return [term for term in cleaned.split() if len(term) > 1 and term not in STOP_WORDS]


def split_sentences(text: str) -> List[str]:
    """Split text on runs of sentence terminators, dropping empty fragments."""
    sentences = (fragment.strip() for fragment in _SENTENCE_END_RE.split(text))
    return [sentence for sentence in sentences if sentence]


def chunk_text(text: str, *, max_chars: int = 1000) -> List[str]:
    """Group whole sentences into chunks of at most ``max_chars`` characters.

    Sentences are rejoined with ``". "`` and every chunk ends with a period.
    A sentence longer than ``max_chars`` becomes a chunk of its own; the limit
    never cuts a sentence. Chunks do not overlap.
    """
    chunks: List[str] = []
    current = ""
    for sentence in split_sentences(text):
        candidate = f"{current}. {sentence}" if current else sentence
        if len(candidate) <= max_chars:
            current = candidate
            continue
        if current:
            chunks.append(current + ".")
        current = sentence

    if current:
        chunks.append(current + ".")
    return chunks


def normalize_whitespace(lines: Iterable[str]) -> str:
    """Collapse whitespace and join lines."""
    return "\n".join(line.strip() for line in lines if line.strip())
