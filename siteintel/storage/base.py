"""Abstract base classes for session repositories."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import uuid

from siteintel.core.merged_data import MergedData
from siteintel.core.types import CostBreakdown, ScraperType, SessionStatus


def _utc_now() -> datetime:
    """Return current UTC time (timezone-aware)."""
    return datetime.now(timezone.utc)


DEFAULT_LOCK_TTL_SECONDS = 300

# Fields update_session accepts
UPDATABLE_FIELDS = frozenset(
    {"domain", "phase", "status", "merged_data", "cost_breakdown", "last_lock_token"}
)


@dataclass
class Session:
    """One bounded intelligence-gathering run for a domain."""

    id: str
    domain: str
    phase: int = 0
    status: SessionStatus = SessionStatus.PENDING
    merged_data: Optional[MergedData] = None
    cost_breakdown: CostBreakdown = field(default_factory=CostBreakdown)

    # Timestamps
    created_at: datetime = field(default_factory=_utc_now)
    updated_at: datetime = field(default_factory=_utc_now)

    last_lock_token: Optional[str] = None

    @classmethod
    def new(cls, domain: str) -> "Session":
        return cls(id=str(uuid.uuid4()), domain=domain)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "domain": self.domain,
            "phase": self.phase,
            "status": self.status.value,
            "merged_data": self.merged_data.to_dict() if self.merged_data else None,
            "cost_breakdown": self.cost_breakdown.to_dict(),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "last_lock_token": self.last_lock_token,
        }


@dataclass
class ScraperRun:
    """Append-only audit entry for one executed scraper."""

    session_id: str
    scraper_type: ScraperType
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=_utc_now)
    pages_scraped: int = 0
    data_points: int = 0
    cost: float = 0.0
    quality_contribution: int = 0
    success: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "scraper_type": self.scraper_type.value,
            "timestamp": self.timestamp.isoformat(),
            "pages_scraped": self.pages_scraped,
            "data_points": self.data_points,
            "cost": self.cost,
            "quality_contribution": self.quality_contribution,
            "success": self.success,
        }


@dataclass
class SessionLock:
    """Exclusive execution lock held on a session."""

    session_id: str
    token: str
    expires_at: datetime

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or _utc_now()) >= self.expires_at


class SessionRepository(ABC):
    """
    Abstract base class for session persistence.

    Supports:
    - In-memory storage for tests and one-off runs
    - SQLite for local persistence

    Locking is a compare-and-swap: ``acquire_lock`` returns False when a
    live lock is held by another token and never blocks.
    """

    @abstractmethod
    async def create_session(self, domain: str, session_id: Optional[str] = None) -> Session:
        """
        Create a new session.

        Args:
            domain: Target domain
            session_id: Optional explicit ID (generated if not provided)

        Returns:
            Created session
        """
        pass

    @abstractmethod
    async def get_session(self, session_id: str) -> Optional[Session]:
        """
        Get session by ID.

        Args:
            session_id: Session identifier

        Returns:
            Session or None if not found
        """
        pass

    @abstractmethod
    async def update_session(self, session_id: str, **fields: Any) -> Optional[Session]:
        """
        Apply a partial update to a session.

        Args:
            session_id: Session identifier
            **fields: Subset of UPDATABLE_FIELDS

        Returns:
            Updated session, or None if not found

        Raises:
            StorageError: Unknown field names
        """
        pass

    @abstractmethod
    async def acquire_lock(
        self,
        session_id: str,
        token: str,
        ttl_seconds: int = DEFAULT_LOCK_TTL_SECONDS,
    ) -> bool:
        """
        Try to take the session's execution lock.

        Args:
            session_id: Session identifier
            token: Caller's unique lock token
            ttl_seconds: Seconds before the lock may be reclaimed

        Returns:
            True if acquired, False if held by another live token
        """
        pass

    @abstractmethod
    async def release_lock(self, session_id: str, token: str) -> bool:
        """
        Release the lock if ``token`` still holds it.

        Returns:
            True if a lock was released
        """
        pass

    @abstractmethod
    async def get_lock(self, session_id: str) -> Optional[SessionLock]:
        """Get the current lock record (expired locks included)."""
        pass

    @abstractmethod
    async def get_scraping_history(self, session_id: str) -> List[ScraperRun]:
        """
        Get executed scraper runs for a session, oldest first.

        Args:
            session_id: Session identifier

        Returns:
            List of runs (empty if none)
        """
        pass

    @abstractmethod
    async def add_scraper_run(self, run: ScraperRun) -> str:
        """
        Append a scraper run to the session's history.

        Returns:
            Run ID
        """
        pass
