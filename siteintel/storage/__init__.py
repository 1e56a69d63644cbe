"""Session repositories."""

from siteintel.config import StorageConfig
from siteintel.storage.base import ScraperRun, Session, SessionLock, SessionRepository
from siteintel.storage.memory import InMemoryRepository
from siteintel.storage.sqlite import SQLiteRepository


def create_repository(config: StorageConfig) -> SessionRepository:
    """Build the repository selected by ``config.type``."""
    if config.type == "memory":
        return InMemoryRepository()
    return SQLiteRepository(config.sqlite_path)


__all__ = [
    "InMemoryRepository",
    "SQLiteRepository",
    "ScraperRun",
    "Session",
    "SessionLock",
    "SessionRepository",
    "create_repository",
]
