"""Lexical relevance scoring between a query and a single chunk."""

from __future__ import annotations

import math
from collections import Counter
from typing import Sequence


def score(query_terms: Sequence[str], chunk_terms: Sequence[str]) -> float:
    """Score how strongly ``chunk_terms`` match ``query_terms``.

    Every query term found in the chunk contributes ``tf * ln(1 + 1/c)``,
    where ``c`` is its count in the chunk and ``tf = c / len(chunk_terms)``.
    The weight only dampens repetition inside this chunk; it is not a
    corpus-wide inverse document frequency. The sum is averaged over the
    query terms, repeats included.
    """
    if not query_terms or not chunk_terms:
        return 0.0

    counts = Counter(chunk_terms)
    total = len(chunk_terms)
    result = 0.0
    for term in query_terms:
        count = counts.get(term, 0)
        if count > 0:
            tf = count / total
            idf = math.log(1 + 1 / max(1, count))
            result += tf * idf

    return result / len(query_terms)
