"""Cost tracking and cost-effective scraper selection.

Prices every scraper type per page, checks sessions against a budget,
classifies cumulative spend into tiers and ranks unused scrapers by
quality points per dollar.

Pricing and tier breakpoints come from PricingConfig; the defaults are:

    static      $0.001 / page
    api         $0.002 / page
    dynamic     $0.010 / page
    spa         $0.015 / page
    ai_powered  $0.050 / page
    overhead    $0.0001 / operation
"""

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Sequence

from siteintel.config import PricingConfig
from siteintel.core.errors import SessionNotFoundError
from siteintel.core.types import (
    BudgetStatus,
    CostBreakdown,
    CostTier,
    OptimizationOutcome,
    OptimizationResult,
    ScraperType,
)
from siteintel.routing.smart_router import used_scraper_types
from siteintel.storage.base import SessionRepository

logger = logging.getLogger(__name__)

# Sentinel ROI for free operations
MAX_ROI = 1000.0

# Conservative page estimates per run
ESTIMATED_PAGES: Dict[ScraperType, int] = {
    ScraperType.STATIC: 15,
    ScraperType.DYNAMIC: 10,
    ScraperType.SPA: 8,
    ScraperType.API: 5,
    ScraperType.AI_POWERED: 5,
}

# Most quality points one run of each type is expected to add
MAX_GAIN_PER_SCRAPER: Dict[ScraperType, float] = {
    ScraperType.STATIC: 20,
    ScraperType.DYNAMIC: 25,
    ScraperType.SPA: 25,
    ScraperType.API: 15,
    ScraperType.AI_POWERED: 30,
}

# Hard cap on expected gain from any single run
MAX_GAIN_PER_RUN = 30

_REASON_TEMPLATES: Dict[ScraperType, str] = {
    ScraperType.STATIC: "Most cost-effective at {cost} for {gain}. Best for static HTML content.",
    ScraperType.DYNAMIC: "Good value at {cost} for {gain}. Handles JavaScript-rendered content.",
    ScraperType.SPA: "Moderate cost at {cost} for {gain}. Optimized for single-page applications.",
    ScraperType.API: "Efficient at {cost} for {gain}. Direct API access when available.",
    ScraperType.AI_POWERED: "Premium option at {cost} for {gain}. AI-powered extraction for complex data.",
}


@dataclass
class ScraperOption:
    """A candidate scraper with its projected economics."""

    scraper: ScraperType
    estimated_cost: float
    estimated_quality_gain: float
    cost_effectiveness: float
    reason: str


@dataclass
class CostSummary:
    """Spending summary for reporting."""

    total_spent: float
    average_cost_per_scraper: float
    most_expensive_scraper: Optional[ScraperType]
    cheapest_scraper: Optional[ScraperType]
    tier: CostTier

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_spent": self.total_spent,
            "average_cost_per_scraper": self.average_cost_per_scraper,
            "most_expensive_scraper": self.most_expensive_scraper.value if self.most_expensive_scraper else None,
            "cheapest_scraper": self.cheapest_scraper.value if self.cheapest_scraper else None,
            "tier": self.tier.value,
        }


def _format_points(value: float) -> str:
    return f"{value:g}"


class CostOptimizer:
    """Budget checks, cost projection and ROI ranking."""

    def __init__(self, repository: SessionRepository, pricing: Optional[PricingConfig] = None):
        self.repository = repository
        self.pricing = pricing or PricingConfig()

    async def check_budget(self, session_id: str, max_budget: float) -> BudgetStatus:
        """Compare persisted spend against ``max_budget``.

        Raises:
            SessionNotFoundError: Session does not exist
        """
        session = await self.repository.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)

        total_spent = session.cost_breakdown.total
        status = BudgetStatus(
            exceeded=total_spent >= max_budget,
            total_spent=total_spent,
            remaining=round(max(0.0, max_budget - total_spent), 6),
        )
        logger.info(
            "Budget check for %s: spent $%.4f of $%.4f (exceeded=%s)",
            session_id,
            total_spent,
            max_budget,
            status.exceeded,
        )
        return status

    def project_cost(self, scraper_type: ScraperType, url_count: int, include_overhead: bool = True) -> float:
        """Project the cost of scraping ``url_count`` pages, rounded to 4 dp."""
        page_cost = self.pricing.rate_for(scraper_type) * max(0, url_count)
        overhead = self.pricing.operation_overhead if include_overhead else 0.0
        return round(page_cost + overhead, 4)

    def get_cost_tier(self, total_cost: float) -> CostTier:
        """Classify cumulative spend."""
        if total_cost <= 0:
            return CostTier.FREE
        if total_cost < self.pricing.cheap_below:
            return CostTier.CHEAP
        if total_cost < self.pricing.moderate_below:
            return CostTier.MODERATE
        return CostTier.EXPENSIVE

    def calculate_roi(self, quality_improvement: float, cost: float) -> float:
        """Quality points per dollar."""
        if cost == 0:
            return MAX_ROI
        return round(quality_improvement / cost, 2)

    def is_within_budget(self, scraper_type: ScraperType, estimated_pages: int, remaining_budget: float) -> bool:
        return self.project_cost(scraper_type, estimated_pages) <= remaining_budget

    def estimate_pages(self, scraper_type: ScraperType) -> int:
        return ESTIMATED_PAGES.get(scraper_type, 10)

    def estimate_quality_gain(self, scraper_type: ScraperType, quality_gap: float) -> float:
        """Expected gain, capped by the gap and the per-type maximum."""
        cap = MAX_GAIN_PER_SCRAPER.get(scraper_type, 15)
        return max(0.0, min(quality_gap, MAX_GAIN_PER_RUN, cap))

    def rank_scrapers(
        self, scrapers: Sequence[ScraperType], quality_gap: float, budget: float
    ) -> List[ScraperOption]:
        """Rank affordable scrapers by cost-effectiveness, highest first."""
        options = []
        for scraper in scrapers:
            cost = self.project_cost(scraper, self.estimate_pages(scraper))
            if cost > budget:
                continue
            gain = self.estimate_quality_gain(scraper, quality_gap)
            options.append(
                ScraperOption(
                    scraper=scraper,
                    estimated_cost=cost,
                    estimated_quality_gain=gain,
                    cost_effectiveness=self.calculate_roi(gain, cost),
                    reason=_REASON_TEMPLATES[scraper].format(
                        cost=f"${cost:.4f}", gain=f"+{_format_points(gain)} quality points"
                    ),
                )
            )
        options.sort(key=lambda o: o.cost_effectiveness, reverse=True)
        return options

    async def optimize_scraper_selection(
        self,
        session_id: str,
        remaining_budget: float,
        target_quality: float,
        current_quality: float,
        available_scrapers: Sequence[ScraperType],
    ) -> OptimizationResult:
        """Pick the most cost-effective unused scraper within budget.

        Never raises: internal failures fall back to the static scraper.
        """
        if remaining_budget <= 0:
            return OptimizationResult(None, "Budget exhausted", 0.0, OptimizationOutcome.BUDGET_EXHAUSTED)

        try:
            history = await self.repository.get_scraping_history(session_id)
            used = used_scraper_types(history)
            unused = [s for s in available_scrapers if s not in used]

            if not unused:
                return OptimizationResult(
                    None,
                    "All available scrapers have been used",
                    0.0,
                    OptimizationOutcome.SCRAPERS_EXHAUSTED,
                )

            ranked = self.rank_scrapers(unused, target_quality - current_quality, remaining_budget)
            if not ranked:
                return OptimizationResult(
                    None, "No scrapers within budget", 0.0, OptimizationOutcome.NONE_WITHIN_BUDGET
                )

            best = ranked[0]
            logger.info(
                "Optimized selection for %s: %s at $%.4f (ROI %.2f)",
                session_id,
                best.scraper.value,
                best.estimated_cost,
                best.cost_effectiveness,
            )
            return OptimizationResult(best.scraper, best.reason, best.estimated_cost, OptimizationOutcome.RECOMMENDED)

        except Exception as e:
            logger.error("Scraper optimization failed for %s: %s", session_id, e, exc_info=True)
            return OptimizationResult(
                ScraperType.STATIC,
                "Defaulting to most cost-effective scraper",
                self.project_cost(ScraperType.STATIC, 10),
                OptimizationOutcome.FALLBACK,
            )

    async def track_spending(
        self,
        session_id: str,
        scraper_type: ScraperType,
        pages_scraped: int,
        actual_cost: Optional[float] = None,
    ) -> Optional[float]:
        """Log the cost of a completed run.

        Uses ``actual_cost`` when given, otherwise the projected cost.
        Never raises; returns None if the cost could not be determined.
        """
        try:
            cost = actual_cost if actual_cost else self.project_cost(scraper_type, pages_scraped)
            logger.info(
                "Tracking spending for %s: %s scraped %d pages for $%.4f",
                session_id,
                scraper_type.value,
                pages_scraped,
                cost,
            )
            return cost
        except Exception as e:
            logger.error("Failed to track spending for %s: %s", session_id, e, exc_info=True)
            return None

    async def get_spending_breakdown(self, session_id: str) -> CostBreakdown:
        """Get the persisted breakdown with its tier recomputed.

        Raises:
            SessionNotFoundError: Session does not exist
        """
        session = await self.repository.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        breakdown = session.cost_breakdown
        return replace(breakdown, tier=self.get_cost_tier(breakdown.total))

    async def get_cost_summary(self, session_id: str) -> CostSummary:
        """Summarize spend per scraper type."""
        breakdown = await self.get_spending_breakdown(session_id)
        by_scraper = {
            scraper: cost
            for scraper, cost in (
                (ScraperType.parse(key), value) for key, value in breakdown.by_scraper.items()
            )
            if scraper is not None
        }

        most_expensive = max(by_scraper, key=by_scraper.get) if by_scraper else None
        cheapest = min(by_scraper, key=by_scraper.get) if by_scraper else None
        average = breakdown.total / len(by_scraper) if by_scraper else 0.0

        return CostSummary(
            total_spent=breakdown.total,
            average_cost_per_scraper=round(average, 6),
            most_expensive_scraper=most_expensive,
            cheapest_scraper=cheapest,
            tier=breakdown.tier,
        )
