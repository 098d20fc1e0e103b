"""Application configuration defaults."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from docchat.chat.answer import DEFAULT_CHAT_MODEL


def _get_default_db_path() -> Path:
    """Get the default database path for the current working context."""
    # When running from a checkout, prefer local data/ if it exists
    local_db = Path("data/docchat.db")
    if local_db.exists():
        return local_db

    return Path.home() / ".docchat" / "docchat.db"


@dataclass(slots=True)
class AppConfig:
    db_path: Path | None = None
    chunk_chars: int = 1000
    top_k: int = 5
    chat_model: str = DEFAULT_CHAT_MODEL
    history_messages: int = 6
    max_upload_bytes: int = 50 * 1024 * 1024
    storage_limit_bytes: int = 500 * 1024 * 1024

    def __post_init__(self) -> None:
        if self.db_path is None:
            self.db_path = _get_default_db_path()

    def resolve_db_path(self, base_dir: Path | None = None) -> Path:
        if self.db_path is None:
            self.db_path = _get_default_db_path()
        if Path(self.db_path).is_absolute() or base_dir is None:
            return Path(self.db_path)
        return base_dir / self.db_path
