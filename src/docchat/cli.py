"""Command line interface for docchat."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List

import typer
from rich.console import Console
from rich.table import Table

from docchat.chat.answer import AnswerGenerationError, AnswerGenerator
from docchat.config import AppConfig
from docchat.index.indexer import Indexer
from docchat.index.search import Searcher
from docchat.index.storage import SQLiteStore
from docchat.utils.files import iter_document_paths
from docchat.web.app import app as web_app
from docchat.web.app import configure as configure_web_app


console = Console()
app = typer.Typer(help="docchat - chat with your documents")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _ensure_db_parent(db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)


def _config_for(db: Path | None, **overrides) -> AppConfig:
    return AppConfig(db_path=db if db is not None else AppConfig().db_path, **overrides)


def _open_existing_store(config: AppConfig) -> SQLiteStore:
    resolved_db = config.resolve_db_path(Path.cwd())
    if not resolved_db.exists():
        raise typer.BadParameter(f"Database not found: {resolved_db}")
    return SQLiteStore(resolved_db)


@app.command()
def index(
    inputs: List[Path] = typer.Argument(
        ..., help="Files or folders with .txt, .md or .docx documents.", resolve_path=True
    ),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
    chunk_chars: int = typer.Option(AppConfig().chunk_chars, help="Maximum chunk size in characters"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Ingest documents into the chat knowledge base."""
    _setup_logging(verbose)
    config = _config_for(db, chunk_chars=chunk_chars)

    resolved_db = config.resolve_db_path(Path.cwd())
    _ensure_db_parent(resolved_db)

    doc_paths = list(iter_document_paths(inputs))
    if not doc_paths:
        console.print("[yellow]No supported documents found.[/yellow]")
        return

    console.print(f"Indexing into [bold]{resolved_db}[/bold]...")
    store = SQLiteStore(resolved_db)
    try:
        indexer = Indexer(store, Searcher(store.list_documents()), chunk_chars=config.chunk_chars)
        stats = indexer.index(doc_paths)
    finally:
        store.close()

    console.print(f"Inserted: {stats.inserted}, failed: {stats.failed}")


@app.command()
def search(
    query: str = typer.Argument(..., help="Query text"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
    limit: int = typer.Option(AppConfig().top_k, min=1, help="Number of results to display"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Rank document chunks against a query."""
    _setup_logging(verbose)
    store = _open_existing_store(_config_for(db))
    try:
        searcher = Searcher(store.list_documents())
    finally:
        store.close()

    results = searcher.search(query, limit=limit)
    if not results:
        console.print("[yellow]No matches found.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Score")
    table.add_column("Document")
    table.add_column("Chunk")
    table.add_column("Snippet")

    for result in results:
        snippet = result.text.replace("\n", " ")
        table.add_row(
            f"{result.score:.4f}", result.document.name, str(result.chunk_index), snippet[:180]
        )

    console.print(table)


@app.command()
def ask(
    question: str = typer.Argument(..., help="Question about the indexed documents"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
    limit: int = typer.Option(AppConfig().top_k, min=1, help="Number of chunks used as context"),
    model: str = typer.Option(AppConfig().chat_model, help="OpenAI chat model"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Answer a question grounded in the indexed documents."""
    _setup_logging(verbose)
    store = _open_existing_store(_config_for(db))
    try:
        searcher = Searcher(store.list_documents())
    finally:
        store.close()

    results = searcher.search(question, limit=limit)
    try:
        reply = AnswerGenerator(model=model).generate(question, results)
    except AnswerGenerationError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc

    console.print(reply.content)
    if reply.sources:
        console.print(f"\n[bold]Sources:[/bold] {', '.join(reply.sources)}")


@app.command()
def documents(
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """List ingested documents."""
    config = _config_for(db)
    resolved_db = config.resolve_db_path(Path.cwd())
    if not resolved_db.exists():
        console.print("[yellow]Database not found, no documents.[/yellow]")
        return

    store = SQLiteStore(resolved_db)
    try:
        docs = store.list_documents()
    finally:
        store.close()

    if not docs:
        console.print("[yellow]No documents ingested.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("Size")
    table.add_column("Chunks")
    table.add_column("Uploaded")
    for doc in docs:
        table.add_row(
            str(doc.id),
            doc.name,
            doc.mime_type,
            str(doc.size),
            str(len(doc.chunks)),
            doc.uploaded_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


@app.command()
def delete(
    doc_id: int = typer.Argument(..., help="ID of the document to delete"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """Delete a document from the knowledge base."""
    store = _open_existing_store(_config_for(db))
    try:
        deleted = Indexer(store, Searcher()).delete(doc_id)
    finally:
        store.close()

    if not deleted:
        console.print(f"[red]Document {doc_id} not found.[/red]")
        raise typer.Exit(code=1)
    console.print(f"Deleted document {doc_id}.")


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", help="Host interface"),
    port: int = typer.Option(8000, help="Server port"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """Start the HTTP API."""
    try:
        import uvicorn
    except ImportError as exc:  # pragma: no cover
        raise typer.BadParameter(
            "uvicorn is not installed. Install it with \"python -m pip install uvicorn\""
        ) from exc

    config = _config_for(db)
    resolved_db = config.resolve_db_path(Path.cwd())
    if not resolved_db.exists():
        console.print("[yellow]Warning: database not found, starting with no documents.[/yellow]")
    configure_web_app(config)

    console.print(f"Starting web API on http://{host}:{port} (database: {resolved_db})")
    uvicorn.run(
        web_app,
        host=host,
        port=port,
        reload=False,
        log_level="info",
    )


if __name__ == "__main__":  # pragma: no cover
    app()
