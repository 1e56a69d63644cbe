"""SQLite-backed session repository for local persistence."""

import asyncio
import json
import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from siteintel.core.errors import StorageError
from siteintel.core.merged_data import MergedData
from siteintel.core.types import CostBreakdown, ScraperType, SessionStatus
from siteintel.storage.base import (
    DEFAULT_LOCK_TTL_SECONDS,
    UPDATABLE_FIELDS,
    ScraperRun,
    Session,
    SessionLock,
    SessionRepository,
)

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    """Return current UTC time (timezone-aware)."""
    return datetime.now(timezone.utc)


class SQLiteRepository(SessionRepository):
    """SQLite repository; blocking calls run in worker threads.

    The lock table is updated with a single conditional upsert, so two
    processes sharing the database file cannot both hold a live lock.
    """

    def __init__(
        self,
        db_path: str = "data/siteintel.db",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize SQLite repository.

        Args:
            db_path: Path to SQLite database file
            clock: Time source (UTC), injectable for lock expiry tests
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._clock = clock or _utc_now
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=30)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self):
        """Initialize database schema."""
        conn = self._connect()
        try:
            cursor = conn.cursor()
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS sessions (
                    id TEXT PRIMARY KEY,
                    domain TEXT NOT NULL,
                    phase INTEGER DEFAULT 0,
                    status TEXT NOT NULL,
                    merged_data TEXT,  -- JSON object
                    cost_breakdown TEXT,  -- JSON object
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    last_lock_token TEXT
                )
            """)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS session_locks (
                    session_id TEXT PRIMARY KEY,
                    token TEXT NOT NULL,
                    expires_at REAL NOT NULL  -- epoch seconds
                )
            """)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS scraper_runs (
                    id TEXT PRIMARY KEY,
                    session_id TEXT NOT NULL,
                    scraper_type TEXT NOT NULL,
                    timestamp TEXT NOT NULL,
                    pages_scraped INTEGER DEFAULT 0,
                    data_points INTEGER DEFAULT 0,
                    cost REAL DEFAULT 0,
                    quality_contribution INTEGER DEFAULT 0,
                    success INTEGER DEFAULT 1
                )
            """)
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_runs_session
                ON scraper_runs(session_id, timestamp ASC)
            """)
            conn.commit()
        finally:
            conn.close()

    def _session_to_row(self, session: Session) -> Dict[str, Any]:
        """Convert session to dictionary for storage."""
        return {
            "id": session.id,
            "domain": session.domain,
            "phase": session.phase,
            "status": session.status.value,
            "merged_data": json.dumps(session.merged_data.to_dict(), default=str) if session.merged_data else None,
            "cost_breakdown": json.dumps(session.cost_breakdown.to_dict(), default=str),
            "created_at": session.created_at.isoformat(),
            "updated_at": session.updated_at.isoformat(),
            "last_lock_token": session.last_lock_token,
        }

    def _row_to_session(self, row: Dict[str, Any]) -> Session:
        """Convert database row to session object."""
        return Session(
            id=row["id"],
            domain=row["domain"],
            phase=row["phase"],
            status=SessionStatus(row["status"]),
            merged_data=MergedData.from_dict(json.loads(row["merged_data"])) if row["merged_data"] else None,
            cost_breakdown=CostBreakdown.from_dict(
                json.loads(row["cost_breakdown"]) if row["cost_breakdown"] else None
            ),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            last_lock_token=row["last_lock_token"],
        )

    def _row_to_run(self, row: Dict[str, Any]) -> ScraperRun:
        return ScraperRun(
            id=row["id"],
            session_id=row["session_id"],
            scraper_type=ScraperType(row["scraper_type"]),
            timestamp=datetime.fromisoformat(row["timestamp"]),
            pages_scraped=row["pages_scraped"],
            data_points=row["data_points"],
            cost=row["cost"],
            quality_contribution=row["quality_contribution"],
            success=bool(row["success"]),
        )

    async def create_session(self, domain: str, session_id: Optional[str] = None) -> Session:
        """Insert a new session."""
        return await asyncio.to_thread(self._create_session_sync, domain, session_id)

    def _create_session_sync(self, domain: str, session_id: Optional[str]) -> Session:
        now = self._clock()
        session = Session(id=session_id or str(uuid.uuid4()), domain=domain, created_at=now, updated_at=now)
        row = self._session_to_row(session)
        columns = ", ".join(row.keys())
        placeholders = ", ".join("?" * len(row))

        conn = self._connect()
        try:
            conn.execute(f"INSERT INTO sessions ({columns}) VALUES ({placeholders})", tuple(row.values()))
            conn.commit()
        except sqlite3.IntegrityError as e:
            raise StorageError(f"Session already exists: {session.id}") from e
        finally:
            conn.close()
        return session

    async def get_session(self, session_id: str) -> Optional[Session]:
        """Get session by ID."""
        return await asyncio.to_thread(self._get_session_sync, session_id)

    def _get_session_sync(self, session_id: str) -> Optional[Session]:
        conn = self._connect()
        try:
            row = conn.execute("SELECT * FROM sessions WHERE id = ?", (session_id,)).fetchone()
        finally:
            conn.close()
        return self._row_to_session(dict(row)) if row else None

    async def update_session(self, session_id: str, **fields: Any) -> Optional[Session]:
        """Apply a partial update in one statement."""
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise StorageError(f"Cannot update session fields: {sorted(unknown)}")
        return await asyncio.to_thread(self._update_session_sync, session_id, fields)

    def _update_session_sync(self, session_id: str, fields: Dict[str, Any]) -> Optional[Session]:
        updates = ["updated_at = ?"]
        values: List[Any] = [self._clock().isoformat()]

        for name, value in fields.items():
            if name == "merged_data":
                value = json.dumps(value.to_dict(), default=str) if value is not None else None
            elif name == "cost_breakdown":
                value = json.dumps(value.to_dict(), default=str)
            elif name == "status":
                value = SessionStatus(value).value
            updates.append(f"{name} = ?")
            values.append(value)

        values.append(session_id)

        conn = self._connect()
        try:
            cursor = conn.execute(f"UPDATE sessions SET {', '.join(updates)} WHERE id = ?", values)
            conn.commit()
            if cursor.rowcount == 0:
                return None
            row = conn.execute("SELECT * FROM sessions WHERE id = ?", (session_id,)).fetchone()
        finally:
            conn.close()
        return self._row_to_session(dict(row)) if row else None

    async def acquire_lock(
        self,
        session_id: str,
        token: str,
        ttl_seconds: int = DEFAULT_LOCK_TTL_SECONDS,
    ) -> bool:
        """Take the lock unless a different live token holds it."""
        return await asyncio.to_thread(self._acquire_lock_sync, session_id, token, ttl_seconds)

    def _acquire_lock_sync(self, session_id: str, token: str, ttl_seconds: int) -> bool:
        now = self._clock().timestamp()
        conn = self._connect()
        try:
            # Conditional upsert: replaces only our own or an expired lock
            cursor = conn.execute("""
                INSERT INTO session_locks (session_id, token, expires_at)
                VALUES (?, ?, ?)
                ON CONFLICT(session_id) DO UPDATE
                SET token = excluded.token, expires_at = excluded.expires_at
                WHERE session_locks.token = excluded.token
                   OR session_locks.expires_at <= ?
            """, (session_id, token, now + ttl_seconds, now))

            if cursor.rowcount == 0:
                conn.rollback()
                return False

            conn.execute(
                "UPDATE sessions SET last_lock_token = ? WHERE id = ?",
                (token, session_id),
            )
            conn.commit()
            return True
        finally:
            conn.close()

    async def release_lock(self, session_id: str, token: str) -> bool:
        """Delete the lock row if ``token`` owns it."""
        return await asyncio.to_thread(self._release_lock_sync, session_id, token)

    def _release_lock_sync(self, session_id: str, token: str) -> bool:
        conn = self._connect()
        try:
            cursor = conn.execute(
                "DELETE FROM session_locks WHERE session_id = ? AND token = ?",
                (session_id, token),
            )
            conn.commit()
            return cursor.rowcount > 0
        finally:
            conn.close()

    async def get_lock(self, session_id: str) -> Optional[SessionLock]:
        return await asyncio.to_thread(self._get_lock_sync, session_id)

    def _get_lock_sync(self, session_id: str) -> Optional[SessionLock]:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT * FROM session_locks WHERE session_id = ?", (session_id,)
            ).fetchone()
        finally:
            conn.close()
        if not row:
            return None
        return SessionLock(
            session_id=row["session_id"],
            token=row["token"],
            expires_at=datetime.fromtimestamp(row["expires_at"], tz=timezone.utc),
        )

    async def get_scraping_history(self, session_id: str) -> List[ScraperRun]:
        """Get runs for a session, oldest first."""
        return await asyncio.to_thread(self._get_history_sync, session_id)

    def _get_history_sync(self, session_id: str) -> List[ScraperRun]:
        conn = self._connect()
        try:
            rows = conn.execute(
                "SELECT * FROM scraper_runs WHERE session_id = ? ORDER BY timestamp ASC, rowid ASC",
                (session_id,),
            ).fetchall()
        finally:
            conn.close()
        return [self._row_to_run(dict(row)) for row in rows]

    async def add_scraper_run(self, run: ScraperRun) -> str:
        """Append a run to history."""
        await asyncio.to_thread(self._add_run_sync, run)
        return run.id

    def _add_run_sync(self, run: ScraperRun):
        conn = self._connect()
        try:
            conn.execute("""
                INSERT INTO scraper_runs (
                    id, session_id, scraper_type, timestamp, pages_scraped,
                    data_points, cost, quality_contribution, success
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                run.id,
                run.session_id,
                run.scraper_type.value,
                run.timestamp.isoformat(),
                run.pages_scraped,
                run.data_points,
                run.cost,
                run.quality_contribution,
                1 if run.success else 0,
            ))
            conn.commit()
        finally:
            conn.close()
        logger.debug("Recorded %s run for session %s", run.scraper_type.value, run.session_id)
