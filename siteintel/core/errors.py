"""Core exception hierarchy for siteintel.

All siteintel exceptions inherit from SiteIntelError, so callers can catch
every library error with a single except clause or target one family.

Exception Hierarchy:
    SiteIntelError (base)
    ├── SessionError - Session lookup and URL resolution
    │   ├── SessionNotFoundError
    │   └── NoUrlsFoundError
    ├── ExecutionError - Execution cycle failures
    │   ├── LockContentionError
    │   ├── ScraperFailureError
    │   └── InvalidScraperError
    ├── RecommendationError - Router/optimizer internals
    ├── StorageError - Repository backend failures
    └── ConfigurationError
        └── InvalidConfigError
"""

from typing import Any, Dict, Optional


class SiteIntelError(Exception):
    """Base exception for all siteintel errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code (e.g., "SESSION_NOT_FOUND")
        details: Optional dict with additional context
    """

    error_code: str = "SITEINTEL_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        if error_code:
            self.error_code = error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dict for API responses."""
        return {
            "error": True,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }


# Session Errors
class SessionError(SiteIntelError):
    """Base class for session errors."""

    error_code = "SESSION_ERROR"


class SessionNotFoundError(SessionError):
    """Requested session does not exist."""

    error_code = "SESSION_NOT_FOUND"

    def __init__(self, session_id: str):
        super().__init__(
            f"Session not found: {session_id}",
            details={"session_id": session_id},
        )


class NoUrlsFoundError(SessionError):
    """No URLs could be resolved for a session."""

    error_code = "NO_URLS_FOUND"

    def __init__(self, session_id: str, domain: Optional[str] = None):
        super().__init__(
            "No URLs found to scrape",
            details={"session_id": session_id, "domain": domain},
        )


# Execution Errors
class ExecutionError(SiteIntelError):
    """Base class for execution cycle errors."""

    error_code = "EXECUTION_ERROR"


class LockContentionError(ExecutionError):
    """Another cycle holds the session lock."""

    error_code = "LOCK_CONTENTION"

    def __init__(self, session_id: str):
        super().__init__(
            "Could not acquire execution lock - another operation in progress",
            details={"session_id": session_id},
        )


class ScraperFailureError(ExecutionError):
    """The scraper layer failed while fetching."""

    error_code = "SCRAPER_FAILURE"

    def __init__(self, scraper: str, reason: str):
        super().__init__(
            f"Scraper '{scraper}' failed: {reason}",
            details={"scraper": scraper, "reason": reason},
        )


class InvalidScraperError(ExecutionError):
    """Scraper identifier is not a known scraper type."""

    error_code = "INVALID_SCRAPER"

    def __init__(self, scraper_id: str):
        super().__init__(
            f"Unknown scraper type: {scraper_id}",
            details={"scraper_id": scraper_id},
        )


# Advisory Errors
class RecommendationError(SiteIntelError):
    """Router or optimizer could not produce a recommendation."""

    error_code = "RECOMMENDATION_ERROR"


# Storage Errors
class StorageError(SiteIntelError):
    """Repository backend failure."""

    error_code = "STORAGE_ERROR"


# Configuration Errors
class ConfigurationError(SiteIntelError):
    """Base class for configuration errors."""

    error_code = "CONFIG_ERROR"


class InvalidConfigError(ConfigurationError):
    """Configuration value is invalid."""

    error_code = "INVALID_CONFIG"

    def __init__(self, config_key: str, value: Any, reason: str):
        super().__init__(
            f"Invalid value for '{config_key}': {reason}",
            details={"config_key": config_key, "value": str(value), "reason": reason},
        )
