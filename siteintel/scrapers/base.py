"""Abstract base class for the scraper layer.

Concrete fetchers (static HTML, headless browser, SPA, API, AI-powered) live
outside this package and plug in by implementing ScraperLayer.
"""

import inspect
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from siteintel.core.types import ScraperType

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    """Return current UTC time (timezone-aware)."""
    return datetime.now(timezone.utc)


@dataclass
class ProgressEvent:
    """Progress notification emitted during an execution cycle.

    Attributes:
        session_id: Session being scraped
        stage: Short machine-readable stage name (e.g. "scraping", "page")
        message: Human-readable description
        progress: Completion percentage (0-100), if known
        data: Extra context (URL, counts, scraper type)
    """

    session_id: str
    stage: str
    message: str
    progress: Optional[float] = None
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=_utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "stage": self.stage,
            "message": self.message,
            "progress": self.progress,
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
        }


ProgressCallback = Callable[[ProgressEvent], Union[None, Awaitable[None]]]


async def emit_progress(callback: Optional[ProgressCallback], event: ProgressEvent) -> None:
    """Deliver ``event`` to a sync or async callback.

    Callback errors are logged and ignored.
    """
    if callback is None:
        return
    try:
        result = callback(event)
        if inspect.isawaitable(result):
            await result
    except Exception as e:
        logger.warning("Progress callback failed at %s: %s", event.stage, e)


@dataclass
class ScrapeOptions:
    """Per-call options handed to the scraper layer."""

    session_id: str
    scraper_type: ScraperType = ScraperType.STATIC
    options: Dict[str, Any] = field(default_factory=dict)
    progress_callback: Optional[ProgressCallback] = None


@dataclass
class ScrapeResult:
    """Output of one scraper-layer call.

    Attributes:
        pages: Scraped pages (dicts with at least a ``url``)
        extracted_data: Business fields for the scraper's data layer
        site_analysis: Sitemap pages, technologies and other site metadata
        enrichment: LLM-derived insights
        discovered_urls: New URLs found while scraping
        cost: Actual cost in USD, if the layer reports one
    """

    pages: List[Dict[str, Any]] = field(default_factory=list)
    extracted_data: Dict[str, Any] = field(default_factory=dict)
    site_analysis: Dict[str, Any] = field(default_factory=dict)
    enrichment: Dict[str, Any] = field(default_factory=dict)
    discovered_urls: List[str] = field(default_factory=list)
    cost: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pages": self.pages,
            "extracted_data": self.extracted_data,
            "site_analysis": self.site_analysis,
            "enrichment": self.enrichment,
            "discovered_urls": self.discovered_urls,
            "cost": self.cost,
        }


class ScraperLayer(ABC):
    """
    Abstract base class for the scraper layer.

    Implementations dispatch on ``options.scraper_type`` and must make
    ``initialize`` safe to call more than once.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """
        Prepare clients, browsers or pools. Idempotent.
        """
        pass

    @abstractmethod
    async def execute(self, urls: List[str], options: ScrapeOptions) -> ScrapeResult:
        """
        Scrape ``urls`` with the requested scraper type.

        Args:
            urls: Resolved target URLs
            options: Session, scraper type, extra options and progress callback

        Returns:
            ScrapeResult with pages and extracted data

        Raises:
            Exception: Any fetch failure; the executor converts it to a result
        """
        pass
