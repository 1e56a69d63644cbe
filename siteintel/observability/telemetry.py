"""Fire-and-forget telemetry for execution cycles.

Telemetry writes breadcrumbs, info events, errors and timings to the
standard logging system and keeps a bounded in-memory trail of recent
events for inspection. No method raises: telemetry never affects control
flow.

Usage:
    telemetry = Telemetry()
    telemetry.breadcrumb("EXECUTOR", "Lock acquired", {"session_id": sid})

    with telemetry.span("scrape") as span:
        span.set_attribute("urls", 12)
        ...
"""

import json
import logging
import time
import uuid
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Deque, Dict, Iterator, List, Optional

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    """Return current UTC time (timezone-aware)."""
    return datetime.now(timezone.utc)


class EventKind(Enum):
    """Kind of telemetry event."""
    BREADCRUMB = "breadcrumb"
    INFO = "info"
    ERROR = "error"
    TIMING = "timing"


@dataclass
class TelemetryEvent:
    """A single recorded telemetry event."""
    kind: EventKind
    category: str
    message: str
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=_utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "category": self.category,
            "message": self.message,
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class TimingSpan:
    """A timed unit of work.

    Attributes:
        span_id: Unique identifier for this span
        name: Operation name
        attributes: Key-value metadata about the operation
        duration_ms: Set when the span closes
        failed: True when the wrapped block raised
    """
    span_id: str
    name: str
    attributes: Dict[str, Any] = field(default_factory=dict)
    duration_ms: Optional[float] = None
    failed: bool = False

    def set_attribute(self, key: str, value: Any):
        self.attributes[key] = value


def _render(data: Optional[Dict[str, Any]]) -> str:
    if not data:
        return ""
    try:
        return json.dumps(data, default=str, sort_keys=True)
    except (TypeError, ValueError):
        return repr(data)


class Telemetry:
    """Breadcrumb/info/error/timing sink backed by ``logging``.

    Attributes:
        events: Most recent events, oldest first (bounded by ``max_events``)
    """

    def __init__(self, name: str = "siteintel", max_events: int = 500):
        self._logger = logging.getLogger(f"{name}.telemetry")
        self.events: Deque[TelemetryEvent] = deque(maxlen=max_events)

    def _emit(
        self,
        kind: EventKind,
        level: int,
        category: str,
        message: str,
        data: Optional[Dict[str, Any]] = None,
        exc_info: Any = None,
    ):
        try:
            self.events.append(TelemetryEvent(kind, category, message, dict(data or {})))
            self._logger.log(level, "[%s] %s %s", category, message, _render(data), exc_info=exc_info)
        except Exception:
            logger.debug("Telemetry emit failed for %s/%s", category, message, exc_info=True)

    def breadcrumb(self, category: str, message: str, data: Optional[Dict[str, Any]] = None):
        """Record a low-level step marker (DEBUG)."""
        self._emit(EventKind.BREADCRUMB, logging.DEBUG, category, message, data)

    def info(self, category: str, message: str, data: Optional[Dict[str, Any]] = None):
        """Record a notable event (INFO)."""
        self._emit(EventKind.INFO, logging.INFO, category, message, data)

    def error(
        self,
        category: str,
        message: str,
        error: Optional[BaseException] = None,
        data: Optional[Dict[str, Any]] = None,
    ):
        """Record a failure (ERROR) with the exception attached."""
        payload = dict(data or {})
        if error is not None:
            payload.setdefault("error", str(error))
            payload.setdefault("error_type", type(error).__name__)
        exc_info = (type(error), error, error.__traceback__) if error is not None else None
        self._emit(EventKind.ERROR, logging.ERROR, category, message, payload, exc_info=exc_info)

    def timing(self, name: str, duration_ms: float, data: Optional[Dict[str, Any]] = None):
        """Record how long an operation took (DEBUG)."""
        payload = dict(data or {})
        payload["duration_ms"] = round(float(duration_ms), 3)
        self._emit(EventKind.TIMING, logging.DEBUG, "TIMING", name, payload)

    @contextmanager
    def span(self, name: str, **attributes) -> Iterator[TimingSpan]:
        """Time a block and record the result as a timing event.

        Exceptions raised inside the block propagate unchanged.
        """
        span = TimingSpan(span_id=uuid.uuid4().hex[:16], name=name, attributes=dict(attributes))
        started = time.perf_counter()
        try:
            yield span
        except BaseException:
            span.failed = True
            raise
        finally:
            span.duration_ms = (time.perf_counter() - started) * 1000
            data = dict(span.attributes)
            if span.failed:
                data["failed"] = True
            self.timing(name, span.duration_ms, data)

    def recent(self, kind: Optional[EventKind] = None, category: Optional[str] = None) -> List[TelemetryEvent]:
        """Get recorded events, optionally filtered."""
        return [
            e
            for e in self.events
            if (kind is None or e.kind == kind) and (category is None or e.category == category)
        ]


class NullTelemetry(Telemetry):
    """Telemetry that records nothing."""

    def _emit(self, kind, level, category, message, data=None, exc_info=None):
        return None
