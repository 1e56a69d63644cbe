"""
Progressive Executor Service

Runs one intelligence-gathering cycle for a session:

1. Load the session and resolve target URLs
2. Acquire the session's execution lock
3. Delegate fetching to the scraper layer
4. Aggregate results into the layered session data
5. Persist data, phase, status and cost in a single write
6. Release the lock on every exit path
7. Score the new state and propose the next scraper (advisory)

``execute`` never raises: every failure becomes an ExecutionResult with
``success=False`` and the error's code.
"""

import logging
import math
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from siteintel.config import ExecutorConfig, PricingConfig
from siteintel.core.aggregator import DataAggregator
from siteintel.core.errors import (
    ConfigurationError,
    InvalidScraperError,
    LockContentionError,
    NoUrlsFoundError,
    ScraperFailureError,
    SessionNotFoundError,
    SiteIntelError,
)
from siteintel.core.types import (
    BudgetStatus,
    DataLayer,
    OptimizationResult,
    QualityMetrics,
    RoutingDecision,
    ScraperType,
    SessionStatus,
    layer_for_scraper,
)
from siteintel.observability.cost_optimizer import CostOptimizer
from siteintel.observability.quality_assessor import QualityAssessor
from siteintel.observability.telemetry import Telemetry
from siteintel.routing.smart_router import SmartRouter, used_scraper_types
from siteintel.scrapers.base import (
    ProgressCallback,
    ProgressEvent,
    ScrapeOptions,
    ScraperLayer,
    emit_progress,
)
from siteintel.storage.base import ScraperRun, Session, SessionRepository

logger = logging.getLogger(__name__)

# Error code for failures that are not SiteIntelErrors
UNEXPECTED_ERROR_CODE = "EXECUTION_ERROR"


@dataclass
class DataCounts:
    """Page and data-point counts."""

    pages: int = 0
    data_points: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {"pages": self.pages, "data_points": self.data_points}


@dataclass
class NextAction:
    """Advisory output computed after a cycle.

    Attributes:
        quality: Current quality assessment
        routing: Router recommendation (None when every scraper has run)
        optimization: Cost-optimized selection
        budget: Spend against the session budget
    """

    quality: QualityMetrics
    routing: Optional[RoutingDecision]
    optimization: Optional[OptimizationResult]
    budget: Optional[BudgetStatus]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "quality": self.quality.to_dict(),
            "routing": self.routing.to_dict() if self.routing else None,
            "optimization": self.optimization.to_dict() if self.optimization else None,
            "budget": self.budget.to_dict() if self.budget else None,
        }


@dataclass
class ExecutionResult:
    """Structured outcome of one execution cycle."""

    success: bool
    session_id: str
    scraper_type: Optional[ScraperType] = None
    new_data: DataCounts = field(default_factory=DataCounts)
    total_data: DataCounts = field(default_factory=DataCounts)
    duration_ms: float = 0.0
    error: Optional[str] = None
    error_code: Optional[str] = None
    phase: Optional[int] = None
    status: Optional[SessionStatus] = None
    cost: float = 0.0
    quality: Optional[QualityMetrics] = None
    next_action: Optional[NextAction] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "session_id": self.session_id,
            "scraper_type": self.scraper_type.value if self.scraper_type else None,
            "new_data": self.new_data.to_dict(),
            "total_data": self.total_data.to_dict(),
            "duration_ms": round(self.duration_ms, 3),
            "error": self.error,
            "error_code": self.error_code,
            "phase": self.phase,
            "status": self.status.value if self.status else None,
            "cost": self.cost,
            "quality": self.quality.to_dict() if self.quality else None,
            "next_action": self.next_action.to_dict() if self.next_action else None,
        }


@dataclass
class SessionStatusReport:
    """Read-only snapshot of a session's progress."""

    id: str
    status: str
    phase: int = 0
    max_phase: int = 0
    progress: int = 0
    total_data_points: int = 0
    total_pages: int = 0
    used_scrapers: List[str] = field(default_factory=list)
    available_scrapers: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status,
            "phase": self.phase,
            "max_phase": self.max_phase,
            "progress": self.progress,
            "total_data_points": self.total_data_points,
            "total_pages": self.total_pages,
            "used_scrapers": list(self.used_scrapers),
            "available_scrapers": list(self.available_scrapers),
            "suggestions": list(self.suggestions),
        }


def _page_url(page: Any) -> Optional[str]:
    if isinstance(page, str):
        return page.strip() or None
    if isinstance(page, dict):
        url = page.get("url")
        return url.strip() or None if isinstance(url, str) else None
    return None


def _dedupe(urls: Sequence[Optional[str]]) -> List[str]:
    return list(dict.fromkeys(u for u in urls if u))


def resolve_urls(
    session: Session,
    urls: Optional[Sequence[str]] = None,
    domain: Optional[str] = None,
) -> List[str]:
    """Resolve the URL set for a cycle.

    Explicit ``urls`` win; otherwise sitemap pages from site analysis;
    otherwise the bare domain. Order-preserving and de-duplicated, so the
    result only changes when the session does.
    """
    if urls:
        return _dedupe([_page_url(u) for u in urls])

    if session.merged_data is not None:
        sitemap = session.merged_data.layer(DataLayer.SITE_ANALYSIS).get("sitemap_pages") or []
        resolved = _dedupe([_page_url(p) for p in sitemap])
        if resolved:
            return resolved

    target = (domain or session.domain or "").strip()
    if not target:
        return []
    return [target if "://" in target else f"https://{target}"]


def generate_suggestions(session: Session) -> List[str]:
    """Threshold-driven next steps for a session."""
    if session.merged_data is None:
        return ["Start scraping to collect data"]

    stats = session.merged_data.stats
    suggestions = []
    if stats.total_pages < 5:
        suggestions.append("Consider adding more URLs to scrape")
    if stats.data_points < 50:
        suggestions.append("Try different scrapers to extract more data")
    if stats.total_pages > 10 and stats.data_points > 100:
        suggestions.append("Good amount of data collected, ready for analysis")
    return suggestions


class ProgressiveExecutor:
    """Executes locked scrape → aggregate → persist cycles for sessions."""

    def __init__(
        self,
        repository: SessionRepository,
        scraper_layer: Optional[ScraperLayer] = None,
        aggregator: Optional[DataAggregator] = None,
        assessor: Optional[QualityAssessor] = None,
        router: Optional[SmartRouter] = None,
        cost_optimizer: Optional[CostOptimizer] = None,
        telemetry: Optional[Telemetry] = None,
        config: Optional[ExecutorConfig] = None,
        pricing: Optional[PricingConfig] = None,
    ):
        """Initialize executor with its collaborators.

        Collaborators not supplied are built with defaults around ``repository``.
        Without a ``scraper_layer`` only the read-only and advisory operations work.
        """
        self.config = config or ExecutorConfig()
        self.repository = repository
        self.scraper_layer = scraper_layer
        self.telemetry = telemetry or Telemetry()
        self.aggregator = aggregator or DataAggregator(telemetry=self.telemetry)
        self.assessor = assessor or QualityAssessor(repository)
        self.router = router or SmartRouter(enabled_scrapers=self.config.enabled_types())
        self.cost_optimizer = cost_optimizer or CostOptimizer(repository, pricing)
        self._scraper_initialized = False

    async def execute(
        self,
        session_id: str,
        domain: Optional[str] = None,
        scraper_id: Optional[str] = None,
        urls: Optional[Sequence[str]] = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> ExecutionResult:
        """
        Run one execution cycle.

        Args:
            session_id: Session to advance
            domain: Domain override used when nothing else resolves URLs
            scraper_id: Scraper type to run (router fallback when omitted)
            urls: Explicit URLs, replacing sitemap resolution
            options: Passed through to the scraper layer

        Returns:
            ExecutionResult; never raises
        """
        return await self._run_cycle(session_id, domain, scraper_id, urls, options, None)

    async def execute_with_streaming(
        self,
        session_id: str,
        progress_callback: ProgressCallback,
        domain: Optional[str] = None,
        scraper_id: Optional[str] = None,
        urls: Optional[Sequence[str]] = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> ExecutionResult:
        """Same contract as ``execute``, with progress events sent to ``progress_callback``."""
        return await self._run_cycle(session_id, domain, scraper_id, urls, options, progress_callback)

    async def _run_cycle(
        self,
        session_id: str,
        domain: Optional[str],
        scraper_id: Optional[str],
        urls: Optional[Sequence[str]],
        options: Optional[Dict[str, Any]],
        progress_callback: Optional[ProgressCallback],
    ) -> ExecutionResult:
        started = time.perf_counter()
        scraper_type: Optional[ScraperType] = None
        session: Optional[Session] = None
        context = {"session_id": session_id, "scraper_id": scraper_id}

        self.telemetry.breadcrumb("EXECUTOR", "Execution requested", context)

        try:
            session = await self.repository.get_session(session_id)
            if session is None:
                raise SessionNotFoundError(session_id)

            target_urls = resolve_urls(session, urls, domain)
            if not target_urls:
                raise NoUrlsFoundError(session_id, domain or session.domain)

            scraper_type = await self._select_scraper(session_id, scraper_id)
            context["scraper_type"] = scraper_type.value

            token = f"exec_{uuid.uuid4().hex}"
            acquired = await self.repository.acquire_lock(session_id, token, self.config.lock_ttl_seconds)
            if not acquired:
                contention = LockContentionError(session_id)
                self.telemetry.info("EXECUTOR", contention.message, context)
                return self._failure(session_id, scraper_type, session, contention, started)

            self.telemetry.breadcrumb("EXECUTOR", "Lock acquired", context)
            try:
                result = await self._run_locked(
                    session, scraper_type, target_urls, options, progress_callback, started
                )
            finally:
                await self._release_lock(session_id, token)

        except SiteIntelError as e:
            self.telemetry.error("EXECUTOR", "Execution failed", e, dict(context, error_code=e.error_code))
            return self._failure(session_id, scraper_type, session, e, started)
        except Exception as e:
            self.telemetry.error("EXECUTOR", "Unexpected execution failure", e, context)
            return self._failure(session_id, scraper_type, session, e, started)

        result.next_action = await self.suggest_next_action(session_id)
        result.quality = result.next_action.quality if result.next_action else None
        result.duration_ms = (time.perf_counter() - started) * 1000

        self.telemetry.info(
            "EXECUTOR",
            "Execution completed",
            dict(
                context,
                new_pages=result.new_data.pages,
                total_pages=result.total_data.pages,
                data_points=result.total_data.data_points,
                duration_ms=round(result.duration_ms, 1),
            ),
        )
        return result

    async def _run_locked(
        self,
        session: Session,
        scraper_type: ScraperType,
        urls: List[str],
        options: Optional[Dict[str, Any]],
        progress_callback: Optional[ProgressCallback],
        started: float,
    ) -> ExecutionResult:
        session_id = session.id
        max_phase = self.config.max_phase
        next_phase = min(session.phase + 1, max_phase)
        phase_label = f"phase_{next_phase}"

        await self._ensure_scraper_initialized()
        await emit_progress(
            progress_callback,
            ProgressEvent(
                session_id=session_id,
                stage="scraping_started",
                message=f"Scraping {len(urls)} URLs with {scraper_type.value} scraper",
                progress=0,
                data={"scraper_type": scraper_type.value, "url_count": len(urls), "phase": phase_label},
            ),
        )

        scrape_options = ScrapeOptions(
            session_id=session_id,
            scraper_type=scraper_type,
            options=dict(options or {}),
            progress_callback=progress_callback,
        )
        with self.telemetry.span("scrape", session_id=session_id, scraper_type=scraper_type.value) as span:
            try:
                scrape_result = await self.scraper_layer.execute(urls, scrape_options)
            except Exception as e:
                raise ScraperFailureError(scraper_type.value, str(e) or type(e).__name__) from e
            span.set_attribute("pages", len(scrape_result.pages))

        merged = self.aggregator.aggregate_data(
            session.merged_data, scrape_result, phase_label, layer_for_scraper(scraper_type)
        )
        new_pages = len(scrape_result.pages)
        new_points = self.aggregator.calculate_data_points_from_pages(scrape_result.pages)

        cost = scrape_result.cost
        if cost is None:
            cost = self.cost_optimizer.project_cost(scraper_type, new_pages)
        cost = max(0.0, float(cost))

        projected_total = session.cost_breakdown.total + cost
        breakdown = session.cost_breakdown.with_charge(
            cost,
            scraper_type,
            phase_label,
            tier=self.cost_optimizer.get_cost_tier(projected_total),
            max_budget=self.config.default_max_budget,
        )
        status = SessionStatus.COMPLETED if next_phase >= max_phase else SessionStatus.ACTIVE

        # Single write per cycle
        updated = await self.repository.update_session(
            session_id,
            merged_data=merged,
            phase=next_phase,
            status=status,
            cost_breakdown=breakdown,
        )
        if updated is None:
            raise SessionNotFoundError(session_id)

        # Cycle already committed; history bookkeeping failures are only logged
        try:
            quality_before = self.assessor.assess(session.merged_data, session.updated_at)
            quality_after = self.assessor.assess(merged, updated.updated_at)
            await self.repository.add_scraper_run(
                ScraperRun(
                    session_id=session_id,
                    scraper_type=scraper_type,
                    pages_scraped=new_pages,
                    data_points=new_points,
                    cost=cost,
                    quality_contribution=max(0, quality_after.overall_score - quality_before.overall_score),
                    success=True,
                )
            )
        except Exception as e:
            self.telemetry.error(
                "EXECUTOR", "Scraper run record failed", e, {"session_id": session_id, "phase": phase_label}
            )
        await self.cost_optimizer.track_spending(session_id, scraper_type, new_pages, cost)

        await emit_progress(
            progress_callback,
            ProgressEvent(
                session_id=session_id,
                stage="scraping_completed",
                message=f"Scraped {new_pages} pages",
                progress=100,
                data={"new_pages": new_pages, "total_pages": merged.stats.total_pages, "phase": phase_label},
            ),
        )

        return ExecutionResult(
            success=True,
            session_id=session_id,
            scraper_type=scraper_type,
            new_data=DataCounts(pages=new_pages, data_points=new_points),
            total_data=DataCounts(pages=merged.stats.total_pages, data_points=merged.stats.data_points),
            duration_ms=(time.perf_counter() - started) * 1000,
            phase=next_phase,
            status=status,
            cost=cost,
        )

    async def _select_scraper(self, session_id: str, scraper_id: Optional[str]) -> ScraperType:
        if scraper_id:
            scraper_type = ScraperType.parse(scraper_id)
            if scraper_type is None:
                raise InvalidScraperError(scraper_id)
            return scraper_type

        history = await self.repository.get_scraping_history(session_id)
        return self.router.get_fallback_scraper(history) or ScraperType.STATIC

    async def _ensure_scraper_initialized(self):
        if self._scraper_initialized:
            return
        if self.scraper_layer is None:
            raise ConfigurationError("No scraper layer configured")
        await self.scraper_layer.initialize()
        self._scraper_initialized = True

    async def _release_lock(self, session_id: str, token: str):
        try:
            released = await self.repository.release_lock(session_id, token)
        except Exception as e:
            # Lock TTL lets the next cycle reclaim it
            self.telemetry.error("EXECUTOR", "Lock release failed", e, {"session_id": session_id})
            return
        if released:
            self.telemetry.breadcrumb("EXECUTOR", "Lock released", {"session_id": session_id})
        else:
            logger.warning("Lock for session %s was no longer held by this cycle", session_id)

    def _failure(
        self,
        session_id: str,
        scraper_type: Optional[ScraperType],
        session: Optional[Session],
        error: Exception,
        started: float,
    ) -> ExecutionResult:
        total = DataCounts()
        if session is not None and session.merged_data is not None:
            stats = session.merged_data.stats
            total = DataCounts(pages=stats.total_pages, data_points=stats.data_points)

        if isinstance(error, SiteIntelError):
            message, code = error.message, error.error_code
        else:
            message, code = str(error) or type(error).__name__, UNEXPECTED_ERROR_CODE

        return ExecutionResult(
            success=False,
            session_id=session_id,
            scraper_type=scraper_type,
            total_data=total,
            duration_ms=(time.perf_counter() - started) * 1000,
            error=message,
            error_code=code,
            phase=session.phase if session else None,
            status=session.status if session else None,
        )

    async def suggest_next_action(
        self,
        session_id: str,
        max_budget: Optional[float] = None,
        target_quality: Optional[float] = None,
    ) -> Optional[NextAction]:
        """Assess quality, check budget and propose the next scraper.

        Returns None when the assessment itself fails; routing and
        optimization failures degrade to None fields.
        """
        max_budget = self.config.default_max_budget if max_budget is None else max_budget
        target_quality = self.config.target_quality if target_quality is None else target_quality

        try:
            quality = await self.assessor.calculate_quality_score(session_id)
            session = await self.repository.get_session(session_id)
            if session is None:
                raise SessionNotFoundError(session_id)
            history = await self.repository.get_scraping_history(session_id)
        except Exception as e:
            logger.warning("Could not assess session %s: %s", session_id, e)
            return None

        budget: Optional[BudgetStatus] = None
        try:
            budget = await self.cost_optimizer.check_budget(session_id, max_budget)
        except Exception as e:
            logger.warning("Budget check failed for %s: %s", session_id, e)

        routing = self.router.get_recommendation(session.domain, quality, history, session.merged_data)

        remaining = budget.remaining if budget is not None else max(0.0, max_budget - session.cost_breakdown.total)
        optimization = await self.cost_optimizer.optimize_scraper_selection(
            session_id,
            remaining,
            target_quality,
            quality.overall_score,
            self.config.enabled_types(),
        )

        return NextAction(quality=quality, routing=routing, optimization=optimization, budget=budget)

    async def get_session_status(self, session_id: str) -> SessionStatusReport:
        """Read-only progress snapshot; never raises."""
        max_phase = self.config.max_phase
        enabled = [s.value for s in self.config.enabled_types()]

        try:
            session = await self.repository.get_session(session_id)
            if session is None:
                return SessionStatusReport(
                    id=session_id,
                    status="not_found",
                    max_phase=max_phase,
                    available_scrapers=enabled,
                    suggestions=["Session not found"],
                )

            history = await self.repository.get_scraping_history(session_id)
            used = used_scraper_types(history)
            used_in_order = list(dict.fromkeys(run.scraper_type.value for run in history))
            stats = session.merged_data.stats if session.merged_data is not None else None

            return SessionStatusReport(
                id=session.id,
                status=session.status.value,
                phase=session.phase,
                max_phase=max_phase,
                progress=int(math.floor(session.phase / max_phase * 100 + 0.5)),
                total_data_points=stats.data_points if stats else 0,
                total_pages=stats.total_pages if stats else 0,
                used_scrapers=used_in_order,
                available_scrapers=[s for s in enabled if ScraperType(s) not in used],
                suggestions=generate_suggestions(session),
            )
        except Exception as e:
            self.telemetry.error("EXECUTOR", "Session status lookup failed", e, {"session_id": session_id})
            return SessionStatusReport(
                id=session_id,
                status="error",
                max_phase=max_phase,
                suggestions=["Error retrieving session status"],
            )
