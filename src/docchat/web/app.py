"""FastAPI application backing the docchat HTTP API."""

from __future__ import annotations

import asyncio
import logging
import tempfile
import threading
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, Tuple

from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from docchat import __version__
from docchat.chat.answer import AnswerGenerationError, AnswerGenerator, ChatResponse
from docchat.config import AppConfig
from docchat.index.indexer import Indexer
from docchat.index.search import SearchResult, Searcher
from docchat.index.storage import SQLiteStore
from docchat.ingestion.extractors import (
    ACCEPTED_MIME_TYPES,
    ExtractionFailed,
    UnsupportedFormat,
    guess_mime_type,
)
from docchat.models import Document, Message

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="docchat", version=__version__)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)
app.state.config = AppConfig()
app.state.searcher = None
app.state.answer_generator = None

_state_lock = threading.Lock()


class SearchPayload(BaseModel):
    query: str
    limit: int = 5


class ConversationPayload(BaseModel):
    title: str = "New conversation"


class MessagePayload(BaseModel):
    content: str = ""


def configure(config: AppConfig) -> None:
    """Point the app at ``config`` and drop any state built for the previous one."""
    with _state_lock:
        app.state.config = config
        app.state.searcher = None
        app.state.answer_generator = None


def _resolve_db_path() -> Path:
    return app.state.config.resolve_db_path(Path.cwd())


def _ensure_db_parent(db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)


def _open_store() -> SQLiteStore:
    resolved_db = _resolve_db_path()
    _ensure_db_parent(resolved_db)
    return SQLiteStore(resolved_db)


def get_searcher() -> Searcher:
    """Return the process-wide searcher, seeding it from the store on first use."""
    with _state_lock:
        searcher = app.state.searcher
        if searcher is None:
            with _open_store() as store:
                searcher = Searcher(store.list_documents())
            app.state.searcher = searcher
    return searcher


def get_answer_generator() -> AnswerGenerator:
    with _state_lock:
        generator = app.state.answer_generator
        if generator is None:
            config: AppConfig = app.state.config
            generator = AnswerGenerator(
                model=config.chat_model,
                history_limit=config.history_messages,
            )
            app.state.answer_generator = generator
    return generator


def _document_to_dict(document: Document) -> Dict[str, Any]:
    return {
        "id": document.id,
        "name": document.name,
        "original_name": document.original_name,
        "mime_type": document.mime_type,
        "size": document.size,
        "chunk_count": len(document.chunks),
        "uploaded_at": document.uploaded_at.isoformat(),
    }


def _result_to_dict(result: SearchResult) -> Dict[str, Any]:
    return {
        "document_id": result.document.id,
        "document_name": result.document.name,
        "chunk_index": result.chunk_index,
        "score": result.score,
        "text": result.text,
    }


def _resolve_upload_mime_type(content_type: str | None, filename: str) -> str | None:
    if content_type in ACCEPTED_MIME_TYPES:
        return content_type
    return guess_mime_type(Path(filename))


@app.on_event("startup")
async def startup_event() -> None:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")


@app.get("/api/documents")
async def list_documents() -> dict[str, List[Dict[str, Any]]]:
    with _open_store() as store:
        documents = store.list_documents()
    return {"documents": [_document_to_dict(document) for document in documents]}


def _run_ingest_job(path: Path, mime_type: str, original_name: str, size: int) -> Document:
    config: AppConfig = app.state.config
    searcher = get_searcher()
    with _open_store() as store:
        indexer = Indexer(store, searcher, chunk_chars=config.chunk_chars)
        return indexer.ingest_file(
            path, mime_type=mime_type, original_name=original_name, size=size
        )


@app.post("/api/documents/upload", status_code=201)
async def upload_document(file: UploadFile | None = File(None)) -> Dict[str, Any]:
    if file is None or not file.filename:
        raise HTTPException(status_code=400, detail="No file uploaded")

    original_name = Path(file.filename).name
    if original_name in ("", ".", ".."):
        raise HTTPException(status_code=400, detail="Invalid file name")

    mime_type = _resolve_upload_mime_type(file.content_type, original_name)
    if mime_type not in ACCEPTED_MIME_TYPES:
        raise HTTPException(
            status_code=400,
            detail="Unsupported file type. Please upload .txt, .md, .pdf, or .docx files.",
        )

    data = await file.read()
    max_bytes = app.state.config.max_upload_bytes
    if len(data) > max_bytes:
        raise HTTPException(status_code=413, detail=f"File exceeds the {max_bytes} byte limit")

    with tempfile.TemporaryDirectory(prefix="docchat-") as tmp_dir:
        tmp_path = Path(tmp_dir) / f"upload{Path(original_name).suffix}"
        tmp_path.write_bytes(data)
        try:
            document = await asyncio.to_thread(
                _run_ingest_job, tmp_path, mime_type, original_name, len(data)
            )
        except UnsupportedFormat as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except ExtractionFailed as exc:
            LOGGER.error("Extraction failed for %s: %s", original_name, exc)
            raise HTTPException(status_code=422, detail=str(exc)) from exc

    return _document_to_dict(document)


def _run_delete_job(doc_id: int) -> bool:
    searcher = get_searcher()
    with _open_store() as store:
        return Indexer(store, searcher).delete(doc_id)


@app.delete("/api/documents/{doc_id}")
async def delete_document(doc_id: int) -> Dict[str, Any]:
    deleted = await asyncio.to_thread(_run_delete_job, doc_id)

    if not deleted:
        raise HTTPException(status_code=404, detail=f"Document with ID {doc_id} not found")

    return {"status": "ok", "deleted_id": doc_id}


@app.post("/api/search")
async def search_documents(payload: SearchPayload) -> dict[str, List[Dict[str, Any]]]:
    query = payload.query.strip()
    if not query:
        raise HTTPException(status_code=400, detail="Empty query")

    limit = max(1, min(payload.limit, 50))
    searcher = await asyncio.to_thread(get_searcher)
    results = await asyncio.to_thread(searcher.search, query, limit=limit)
    return {"results": [_result_to_dict(result) for result in results]}


@app.get("/api/conversations")
async def list_conversations() -> dict[str, List[Dict[str, Any]]]:
    with _open_store() as store:
        conversations = store.list_conversations()
    return {"conversations": [asdict(conversation) for conversation in conversations]}


@app.post("/api/conversations", status_code=201)
async def create_conversation(payload: ConversationPayload) -> Dict[str, Any]:
    title = payload.title.strip()
    if not title:
        raise HTTPException(status_code=400, detail="Conversation title is required")

    with _open_store() as store:
        conversation = store.create_conversation(title)
    return asdict(conversation)


@app.delete("/api/conversations/{conversation_id}")
async def delete_conversation(conversation_id: int) -> Dict[str, Any]:
    with _open_store() as store:
        deleted = store.delete_conversation(conversation_id)

    if not deleted:
        raise HTTPException(status_code=404, detail="Conversation not found")

    return {"status": "ok", "deleted_id": conversation_id}


@app.get("/api/conversations/{conversation_id}/messages")
async def list_messages(conversation_id: int) -> dict[str, List[Dict[str, Any]]]:
    with _open_store() as store:
        messages = store.list_messages(conversation_id)
    return {"messages": [asdict(message) for message in messages]}


def _prepare_turn(
    conversation_id: int, content: str
) -> Tuple[Message, List[SearchResult], List[Dict[str, str]]] | None:
    """Store the user message and collect context and history for the reply."""
    config: AppConfig = app.state.config
    searcher = get_searcher()
    with _open_store() as store:
        if store.get_conversation(conversation_id) is None:
            return None

        user_message = store.create_message(conversation_id, role="user", content=content)
        results = searcher.search(content, limit=config.top_k)

        # The last stored turn is the message just added; it goes in as the query.
        recent = store.list_messages(conversation_id)[-config.history_messages :][:-1]
    history = [{"role": message.role, "content": message.content} for message in recent]
    return user_message, results, history


def _record_reply(conversation_id: int, reply: ChatResponse) -> Message:
    with _open_store() as store:
        assistant_message = store.create_message(
            conversation_id,
            role="assistant",
            content=reply.content,
            sources=reply.sources,
        )
        store.touch_conversation(conversation_id)
    return assistant_message


@app.post("/api/conversations/{conversation_id}/messages")
async def send_message(conversation_id: int, payload: MessagePayload) -> Dict[str, Any]:
    content = payload.content.strip()
    if not content:
        raise HTTPException(status_code=400, detail="Message content is required")

    prepared = await asyncio.to_thread(_prepare_turn, conversation_id, content)
    if prepared is None:
        raise HTTPException(status_code=404, detail="Conversation not found")
    user_message, results, history = prepared

    generator = get_answer_generator()
    try:
        reply = await asyncio.to_thread(generator.generate, content, results, history)
    except AnswerGenerationError as exc:
        LOGGER.exception("Answer generation failed: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    assistant_message = await asyncio.to_thread(_record_reply, conversation_id, reply)
    return {
        "user_message": asdict(user_message),
        "assistant_message": asdict(assistant_message),
    }


@app.get("/api/status")
async def status() -> Dict[str, Any]:
    config: AppConfig = app.state.config
    snapshot = get_searcher().snapshot
    with _open_store() as store:
        stats = store.get_stats()

    return {
        "documents": stats["document_count"],
        "conversations": stats["conversation_count"],
        "storage": {
            "used": stats["total_size_bytes"],
            "limit": config.storage_limit_bytes,
        },
        "index": {
            "chunks": snapshot.chunk_count,
            "version": snapshot.version,
        },
    }
