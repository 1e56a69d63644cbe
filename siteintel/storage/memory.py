"""In-memory session repository for tests and one-off runs."""

import copy
import threading
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from siteintel.core.errors import StorageError
from siteintel.storage.base import (
    DEFAULT_LOCK_TTL_SECONDS,
    UPDATABLE_FIELDS,
    ScraperRun,
    Session,
    SessionLock,
    SessionRepository,
)


def _utc_now() -> datetime:
    """Return current UTC time (timezone-aware)."""
    return datetime.now(timezone.utc)


class InMemoryRepository(SessionRepository):
    """Dict-backed repository.

    Returned sessions are copies, so callers cannot mutate stored state
    without going through ``update_session``.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._sessions: Dict[str, Session] = {}
        self._locks: Dict[str, SessionLock] = {}
        self._runs: Dict[str, List[ScraperRun]] = {}
        self._mutex = threading.Lock()
        self._clock = clock or _utc_now

    async def create_session(self, domain: str, session_id: Optional[str] = None) -> Session:
        session = Session.new(domain)
        now = self._clock()
        session.created_at = now
        session.updated_at = now
        if session_id:
            session.id = session_id
        with self._mutex:
            if session.id in self._sessions:
                raise StorageError(f"Session already exists: {session.id}")
            self._sessions[session.id] = session
        return copy.copy(session)

    async def get_session(self, session_id: str) -> Optional[Session]:
        with self._mutex:
            session = self._sessions.get(session_id)
            return copy.copy(session) if session else None

    async def update_session(self, session_id: str, **fields: Any) -> Optional[Session]:
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise StorageError(f"Cannot update session fields: {sorted(unknown)}")

        with self._mutex:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            updated = replace(session, updated_at=self._clock(), **fields)
            self._sessions[session_id] = updated
            return copy.copy(updated)

    async def acquire_lock(
        self,
        session_id: str,
        token: str,
        ttl_seconds: int = DEFAULT_LOCK_TTL_SECONDS,
    ) -> bool:
        now = self._clock()
        with self._mutex:
            current = self._locks.get(session_id)
            if current is not None and current.token != token and not current.is_expired(now):
                return False
            self._locks[session_id] = SessionLock(
                session_id=session_id,
                token=token,
                expires_at=now + timedelta(seconds=ttl_seconds),
            )
            session = self._sessions.get(session_id)
            if session is not None:
                self._sessions[session_id] = replace(session, last_lock_token=token)
            return True

    async def release_lock(self, session_id: str, token: str) -> bool:
        with self._mutex:
            current = self._locks.get(session_id)
            if current is None or current.token != token:
                return False
            del self._locks[session_id]
            return True

    async def get_lock(self, session_id: str) -> Optional[SessionLock]:
        with self._mutex:
            lock = self._locks.get(session_id)
            return copy.copy(lock) if lock else None

    async def get_scraping_history(self, session_id: str) -> List[ScraperRun]:
        with self._mutex:
            return [copy.copy(run) for run in self._runs.get(session_id, [])]

    async def add_scraper_run(self, run: ScraperRun) -> str:
        with self._mutex:
            self._runs.setdefault(run.session_id, []).append(copy.copy(run))
        return run.id
