"""Core docchat data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Tuple


@dataclass(slots=True, frozen=True)
class Document:
    """An ingested document together with its derived chunks."""

    id: int
    name: str
    original_name: str
    mime_type: str
    size: int
    content: str
    chunks: Tuple[str, ...]
    uploaded_at: datetime


@dataclass(slots=True)
class Conversation:
    id: int
    title: str
    created_at: datetime
    updated_at: datetime


@dataclass(slots=True)
class Message:
    """Single chat turn stored for a conversation."""

    id: int
    conversation_id: int
    role: str
    content: str
    created_at: datetime
    sources: List[str] = field(default_factory=list)
