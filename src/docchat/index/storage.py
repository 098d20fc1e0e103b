"""SQLite persistence for documents, conversations and messages."""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Sequence

from docchat.models import Conversation, Document, Message


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SQLiteStore:
    """Authoritative record store; the search index is rebuilt from it."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self._conn = sqlite3.connect(self.db_path)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL;")
        self._conn.execute("PRAGMA synchronous=NORMAL;")
        self._ensure_schema()

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "SQLiteStore":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        try:
            yield self._conn
            self._conn.commit()
        except Exception:
            self._conn.rollback()
            raise

    def _ensure_schema(self) -> None:
        with self.transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS documents (
                    id INTEGER PRIMARY KEY,
                    name TEXT NOT NULL,
                    original_name TEXT NOT NULL,
                    mime_type TEXT NOT NULL,
                    size INTEGER NOT NULL,
                    content TEXT NOT NULL,
                    uploaded_at TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS chunks (
                    id INTEGER PRIMARY KEY,
                    document_id INTEGER NOT NULL,
                    chunk_index INTEGER NOT NULL,
                    text TEXT NOT NULL,
                    FOREIGN KEY(document_id) REFERENCES documents(id) ON DELETE CASCADE
                )
                """
            )
            conn.execute(
                """CREATE INDEX IF NOT EXISTS idx_chunks_document_id
                    ON chunks(document_id)
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS conversations (
                    id INTEGER PRIMARY KEY,
                    title TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS messages (
                    id INTEGER PRIMARY KEY,
                    conversation_id INTEGER NOT NULL,
                    role TEXT NOT NULL,
                    content TEXT NOT NULL,
                    sources TEXT,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY(conversation_id) REFERENCES conversations(id) ON DELETE CASCADE
                )
                """
            )
            conn.execute(
                """CREATE INDEX IF NOT EXISTS idx_messages_conversation_id
                    ON messages(conversation_id)
                """
            )

    # Documents

    def create_document(
        self,
        *,
        name: str,
        original_name: str,
        mime_type: str,
        size: int,
        content: str,
        chunks: Sequence[str],
    ) -> Document:
        """Persist a document and its chunks in a single transaction."""
        uploaded_at = _now()
        with self.transaction() as conn:
            doc_id = conn.execute(
                """
                INSERT INTO documents(name, original_name, mime_type, size, content, uploaded_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (name, original_name, mime_type, size, content, uploaded_at),
            ).lastrowid
            conn.executemany(
                "INSERT INTO chunks(document_id, chunk_index, text) VALUES (?, ?, ?)",
                [(doc_id, index, text) for index, text in enumerate(chunks)],
            )

        return Document(
            id=int(doc_id),
            name=name,
            original_name=original_name,
            mime_type=mime_type,
            size=size,
            content=content,
            chunks=tuple(chunks),
            uploaded_at=datetime.fromisoformat(uploaded_at),
        )

    def get_document(self, doc_id: int) -> Document | None:
        row = self._conn.execute("SELECT * FROM documents WHERE id = ?", (doc_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_document(row, self._load_chunks([row["id"]]).get(row["id"], ()))

    def list_documents(self) -> List[Document]:
        """Return every document, most recently uploaded first."""
        rows = self._conn.execute(
            "SELECT * FROM documents ORDER BY uploaded_at DESC, id DESC"
        ).fetchall()
        chunks = self._load_chunks([row["id"] for row in rows])
        return [self._row_to_document(row, chunks.get(row["id"], ())) for row in rows]

    def delete_document(self, doc_id: int) -> bool:
        with self.transaction() as conn:
            conn.execute("DELETE FROM chunks WHERE document_id = ?", (doc_id,))
            cursor = conn.execute("DELETE FROM documents WHERE id = ?", (doc_id,))
        return cursor.rowcount > 0

    def get_stats(self) -> Dict[str, int]:
        row = self._conn.execute(
            """
            SELECT
                (SELECT COUNT(*) FROM documents) AS document_count,
                (SELECT COUNT(*) FROM chunks) AS chunk_count,
                (SELECT COALESCE(SUM(size), 0) FROM documents) AS total_size_bytes,
                (SELECT COUNT(*) FROM conversations) AS conversation_count
            """
        ).fetchone()
        return {key: int(row[key]) for key in row.keys()}

    def _load_chunks(self, doc_ids: Sequence[int]) -> Dict[int, tuple[str, ...]]:
        if not doc_ids:
            return {}
        placeholders = ", ".join("?" for _ in doc_ids)
        rows = self._conn.execute(
            f"""
            SELECT document_id, text FROM chunks
            WHERE document_id IN ({placeholders})
            ORDER BY document_id, chunk_index
            """,
            list(doc_ids),
        ).fetchall()
        grouped: Dict[int, List[str]] = {}
        for row in rows:
            grouped.setdefault(row["document_id"], []).append(row["text"])
        return {doc_id: tuple(texts) for doc_id, texts in grouped.items()}

    @staticmethod
    def _row_to_document(row: sqlite3.Row, chunks: tuple[str, ...]) -> Document:
        return Document(
            id=row["id"],
            name=row["name"],
            original_name=row["original_name"],
            mime_type=row["mime_type"],
            size=row["size"],
            content=row["content"],
            chunks=chunks,
            uploaded_at=datetime.fromisoformat(row["uploaded_at"]),
        )

    # Conversations

    def create_conversation(self, title: str) -> Conversation:
        now = _now()
        with self.transaction() as conn:
            conv_id = conn.execute(
                "INSERT INTO conversations(title, created_at, updated_at) VALUES (?, ?, ?)",
                (title, now, now),
            ).lastrowid
        stamp = datetime.fromisoformat(now)
        return Conversation(id=int(conv_id), title=title, created_at=stamp, updated_at=stamp)

    def get_conversation(self, conversation_id: int) -> Conversation | None:
        row = self._conn.execute(
            "SELECT * FROM conversations WHERE id = ?", (conversation_id,)
        ).fetchone()
        return self._row_to_conversation(row) if row is not None else None

    def list_conversations(self) -> List[Conversation]:
        """Return conversations, most recently updated first."""
        rows = self._conn.execute(
            "SELECT * FROM conversations ORDER BY updated_at DESC, id DESC"
        ).fetchall()
        return [self._row_to_conversation(row) for row in rows]

    def touch_conversation(self, conversation_id: int) -> Conversation | None:
        with self.transaction() as conn:
            conn.execute(
                "UPDATE conversations SET updated_at = ? WHERE id = ?",
                (_now(), conversation_id),
            )
        return self.get_conversation(conversation_id)

    def delete_conversation(self, conversation_id: int) -> bool:
        with self.transaction() as conn:
            conn.execute("DELETE FROM messages WHERE conversation_id = ?", (conversation_id,))
            cursor = conn.execute("DELETE FROM conversations WHERE id = ?", (conversation_id,))
        return cursor.rowcount > 0

    @staticmethod
    def _row_to_conversation(row: sqlite3.Row) -> Conversation:
        return Conversation(
            id=row["id"],
            title=row["title"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    # Messages

    def create_message(
        self,
        conversation_id: int,
        *,
        role: str,
        content: str,
        sources: Sequence[str] = (),
    ) -> Message:
        now = _now()
        with self.transaction() as conn:
            msg_id = conn.execute(
                """
                INSERT INTO messages(conversation_id, role, content, sources, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (conversation_id, role, content, json.dumps(list(sources)), now),
            ).lastrowid
        return Message(
            id=int(msg_id),
            conversation_id=conversation_id,
            role=role,
            content=content,
            created_at=datetime.fromisoformat(now),
            sources=list(sources),
        )

    def list_messages(self, conversation_id: int) -> List[Message]:
        """Return the messages of a conversation, oldest first."""
        rows = self._conn.execute(
            """
            SELECT * FROM messages
            WHERE conversation_id = ?
            ORDER BY created_at, id
            """,
            (conversation_id,),
        ).fetchall()
        return [
            Message(
                id=row["id"],
                conversation_id=row["conversation_id"],
                role=row["role"],
                content=row["content"],
                created_at=datetime.fromisoformat(row["created_at"]),
                sources=json.loads(row["sources"]) if row["sources"] else [],
            )
            for row in rows
        ]
