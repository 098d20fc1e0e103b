"""Shared fixtures."""

from __future__ import annotations

import itertools
from datetime import datetime, timezone
from typing import Callable, Sequence

import pytest

from docchat.models import Document


@pytest.fixture
def make_document() -> Callable[..., Document]:
    """Build in-memory documents with sequential ids."""
    ids = itertools.count(1)

    def _make(name: str, chunks: Sequence[str], *, content: str | None = None) -> Document:
        return Document(
            id=next(ids),
            name=name,
            original_name=f"{name}.txt",
            mime_type="text/plain",
            size=len(content or " ".join(chunks)),
            content=content if content is not None else " ".join(chunks),
            chunks=tuple(chunks),
            uploaded_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )

    return _make
