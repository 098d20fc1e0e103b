"""Tests for SQLiteStore."""

import sqlite3

import pytest

from docchat.index.storage import SQLiteStore


@pytest.fixture
def temp_db(tmp_path):
    """Create a temporary database for testing."""
    store = SQLiteStore(tmp_path / "test.db")
    yield store
    store.close()


def _add_document(store, name="doc", chunks=("First chunk.", "Second chunk."), size=100):
    return store.create_document(
        name=name,
        original_name=f"{name}.txt",
        mime_type="text/plain",
        size=size,
        content=" ".join(chunks),
        chunks=list(chunks),
    )


class TestSQLiteStore:
    """Test SQLiteStore initialization and schema."""

    def test_init_creates_database(self, tmp_path):
        db_path = tmp_path / "new.db"
        assert not db_path.exists()

        store = SQLiteStore(db_path)

        assert db_path.exists()
        assert store.db_path == db_path
        store.close()

    def test_schema_creation(self, temp_db):
        """Test that all tables are created."""
        conn = temp_db.connection
        tables = {
            row["name"]
            for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
        }

        assert {"documents", "chunks", "conversations", "messages"} <= tables

    def test_pragma_settings(self, temp_db):
        """Test that WAL mode is enabled."""
        result = temp_db.connection.execute("PRAGMA journal_mode").fetchone()
        assert result[0].lower() == "wal"

    def test_context_manager_closes(self, tmp_path):
        """Test that leaving the with block closes the connection."""
        with SQLiteStore(tmp_path / "ctx.db") as store:
            conn = store.connection

        with pytest.raises(sqlite3.ProgrammingError):
            conn.execute("SELECT 1")


class TestTransaction:
    """Test transaction context manager."""

    def test_rollback_on_exception(self, temp_db):
        """Test that transaction rolls back on exception."""
        with pytest.raises(ValueError):
            with temp_db.transaction() as conn:
                conn.execute(
                    "INSERT INTO conversations(title, created_at, updated_at) VALUES (?, ?, ?)",
                    ("t", "2024-01-01T00:00:00+00:00", "2024-01-01T00:00:00+00:00"),
                )
                raise ValueError("Test error")

        count = temp_db.connection.execute("SELECT COUNT(*) FROM conversations").fetchone()[0]
        assert count == 0


class TestDocuments:
    """Test document records."""

    def test_create_and_get(self, temp_db):
        document = _add_document(temp_db, name="guide")

        loaded = temp_db.get_document(document.id)

        assert loaded == document
        assert loaded.chunks == ("First chunk.", "Second chunk.")
        assert loaded.original_name == "guide.txt"

    def test_get_missing(self, temp_db):
        assert temp_db.get_document(42) is None

    def test_list_newest_first(self, temp_db):
        """Test that documents come back most recent upload first."""
        first = _add_document(temp_db, name="first")
        second = _add_document(temp_db, name="second")

        assert [doc.id for doc in temp_db.list_documents()] == [second.id, first.id]

    def test_chunk_order_preserved(self, temp_db):
        chunks = [f"Chunk {i}." for i in range(12)]
        document = _add_document(temp_db, chunks=chunks)

        assert temp_db.get_document(document.id).chunks == tuple(chunks)

    def test_document_without_chunks(self, temp_db):
        document = _add_document(temp_db, chunks=())

        assert temp_db.list_documents()[0].chunks == ()
        assert document.chunks == ()

    def test_delete(self, temp_db):
        document = _add_document(temp_db)

        assert temp_db.delete_document(document.id) is True
        assert temp_db.get_document(document.id) is None
        remaining = temp_db.connection.execute("SELECT COUNT(*) FROM chunks").fetchone()[0]
        assert remaining == 0

    def test_delete_missing(self, temp_db):
        assert temp_db.delete_document(999) is False

    def test_stats(self, temp_db):
        _add_document(temp_db, size=100)
        _add_document(temp_db, size=50, chunks=("Only.",))
        temp_db.create_conversation("chat")

        assert temp_db.get_stats() == {
            "document_count": 2,
            "chunk_count": 3,
            "total_size_bytes": 150,
            "conversation_count": 1,
        }

    def test_stats_empty(self, temp_db):
        stats = temp_db.get_stats()

        assert stats["document_count"] == 0
        assert stats["total_size_bytes"] == 0


class TestConversations:
    """Test conversation and message records."""

    def test_create_and_get(self, temp_db):
        conversation = temp_db.create_conversation("Questions")

        assert temp_db.get_conversation(conversation.id) == conversation

    def test_touch_moves_to_front(self, temp_db):
        older = temp_db.create_conversation("older")
        newer = temp_db.create_conversation("newer")

        temp_db.touch_conversation(older.id)

        assert [c.id for c in temp_db.list_conversations()] == [older.id, newer.id]

    def test_touch_missing(self, temp_db):
        assert temp_db.touch_conversation(7) is None

    def test_messages_oldest_first(self, temp_db):
        conversation = temp_db.create_conversation("chat")
        temp_db.create_message(conversation.id, role="user", content="hi")
        temp_db.create_message(
            conversation.id, role="assistant", content="hello", sources=["doc", "other"]
        )

        messages = temp_db.list_messages(conversation.id)

        assert [m.role for m in messages] == ["user", "assistant"]
        assert messages[0].sources == []
        assert messages[1].sources == ["doc", "other"]

    def test_delete_removes_messages(self, temp_db):
        conversation = temp_db.create_conversation("chat")
        temp_db.create_message(conversation.id, role="user", content="hi")

        assert temp_db.delete_conversation(conversation.id) is True
        assert temp_db.list_messages(conversation.id) == []
        assert temp_db.delete_conversation(conversation.id) is False
