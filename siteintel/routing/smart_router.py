"""Smart scraper routing.

Recommends which scraper to run next for a session by scoring every unused
scraper type on three terms:

- technology fit: how well the scraper suits the detected stack
- quality potential: high while quality is low, shifting toward dynamic and
  specialised scrapers as quality rises
- historical performance: neutral for now

Decisions are advisory and recomputed on every call. Internal failures
degrade to the cheapest unused scraper instead of propagating.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from siteintel.core.errors import RecommendationError
from siteintel.core.merged_data import MergedData
from siteintel.core.types import (
    QualityMetrics,
    RoutingDecision,
    ScraperType,
    TechConfidence,
    Technology,
)
from siteintel.routing.technology import TechnologyDetector

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScraperCapabilities:
    """What a scraper handles well and badly."""

    good_for: Tuple[str, ...]
    bad_for: Tuple[str, ...] = ()
    technologies: Tuple[str, ...] = ()


SCRAPER_CAPABILITIES: Dict[ScraperType, ScraperCapabilities] = {
    ScraperType.STATIC: ScraperCapabilities(
        good_for=("static", "wordpress", "simple html", "blogs"),
        bad_for=("react", "angular", "vue", "heavy javascript"),
        technologies=("static", "wordpress"),
    ),
    ScraperType.DYNAMIC: ScraperCapabilities(
        good_for=("react", "angular", "vue", "nextjs", "javascript-heavy"),
        technologies=("react", "angular", "vue", "nextjs", "spa"),
    ),
    ScraperType.SPA: ScraperCapabilities(
        good_for=("react", "angular", "vue", "complex spas"),
        bad_for=("static",),
        technologies=("react", "angular", "vue"),
    ),
    ScraperType.API: ScraperCapabilities(
        good_for=("apis", "json", "structured data"),
        bad_for=("html scraping",),
        technologies=("api", "graphql", "rest"),
    ),
    ScraperType.AI_POWERED: ScraperCapabilities(
        good_for=("complex", "dynamic", "unstructured"),
        bad_for=("simple static",),
        technologies=("any",),
    ),
}

# Cheapest first
FALLBACK_ORDER: Tuple[ScraperType, ...] = (
    ScraperType.STATIC,
    ScraperType.DYNAMIC,
    ScraperType.SPA,
    ScraperType.API,
    ScraperType.AI_POWERED,
)

BASE_QUALITY_GAIN: Dict[ScraperType, float] = {
    ScraperType.STATIC: 15,
    ScraperType.DYNAMIC: 25,
    ScraperType.SPA: 20,
    ScraperType.API: 15,
    ScraperType.AI_POWERED: 30,
}

BASE_COST: Dict[ScraperType, float] = {
    ScraperType.STATIC: 0.01,
    ScraperType.DYNAMIC: 0.10,
    ScraperType.SPA: 0.15,
    ScraperType.API: 0.02,
    ScraperType.AI_POWERED: 0.50,
}

MAX_ALTERNATIVES = 3
MAX_REASONABLE_COST = 10.0


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass
class ScoredScraper:
    """A candidate with its routing score."""

    scraper: ScraperType
    score: float
    reason: str
    confidence: TechConfidence
    reasons: List[str] = field(default_factory=list)


def used_scraper_types(history: Iterable[Any]) -> Set[ScraperType]:
    """Collect scraper types from run history (runs, enums or strings)."""
    used: Set[ScraperType] = set()
    for entry in history or []:
        value = getattr(entry, "scraper_type", entry)
        scraper = ScraperType.parse(value)
        if scraper is not None:
            used.add(scraper)
    return used


class SmartRouter:
    """Rank unused scrapers for a session."""

    def __init__(
        self,
        enabled_scrapers: Optional[Sequence[ScraperType]] = None,
        detector: Optional[TechnologyDetector] = None,
    ):
        self.enabled_scrapers: Tuple[ScraperType, ...] = tuple(enabled_scrapers or FALLBACK_ORDER)
        self.detector = detector or TechnologyDetector()

    def detect_technology(self, merged_data: Optional[MergedData]) -> List[Technology]:
        """Detect the site's technology stack."""
        return self.detector.detect(merged_data)

    def get_recommendation(
        self,
        domain: str,
        current_quality: QualityMetrics,
        history: Sequence[Any],
        merged_data: Optional[MergedData],
    ) -> Optional[RoutingDecision]:
        """Recommend the next scraper.

        Args:
            domain: Target domain (for logging)
            current_quality: Latest quality assessment
            history: Scraper runs already executed for the session
            merged_data: Session's merged data, if any

        Returns:
            RoutingDecision, or None when every enabled scraper has been used
        """
        used = used_scraper_types(history)

        try:
            available = self.get_available_scrapers(used)
            if not available:
                logger.info("All scrapers have been used for %s", domain)
                return None

            technologies = self.detect_technology(merged_data)
            scored = self.score_scrapers(available, technologies, current_quality)
            best = scored[0]

            decision = RoutingDecision(
                recommended_scraper=best.scraper,
                reason=best.reason,
                alternative_scrapers=[s.scraper for s in scored[1 : 1 + MAX_ALTERNATIVES]],
                estimated_quality_gain=self.estimate_quality_gain(best.scraper, current_quality, technologies),
                estimated_cost=self.estimate_cost(best.scraper),
                confidence=best.confidence,
            )
            if not self.validate_decision(decision):
                raise RecommendationError(f"Rejected routing decision for {domain}")
        except Exception as e:
            logger.warning("Routing failed for %s, using fallback: %s", domain, e, exc_info=True)
            return self._fallback_decision(used)

        logger.info(
            "Routing decision for %s: %s (%s, %d alternatives)",
            domain,
            decision.recommended_scraper.value,
            decision.confidence.value,
            len(decision.alternative_scrapers),
        )
        return decision

    def get_available_scrapers(self, used: Set[ScraperType]) -> List[ScraperType]:
        return [s for s in self.enabled_scrapers if s not in used]

    def score_scrapers(
        self,
        scrapers: Sequence[ScraperType],
        technologies: Sequence[Technology],
        current_quality: QualityMetrics,
    ) -> List[ScoredScraper]:
        """Score candidates, highest first (stable for ties)."""
        scored = []
        for scraper in scrapers:
            reasons: List[str] = []

            tech_score, tech_reason = self.score_technology_fit(scraper, technologies)
            if tech_reason:
                reasons.append(tech_reason)

            quality_score, quality_reason = self.score_quality_potential(scraper, current_quality)
            if quality_reason:
                reasons.append(quality_reason)

            history_score = self.score_historical_performance(scraper)
            if history_score > 0:
                reasons.append("Good historical performance")

            score = tech_score + quality_score + history_score
            reason = ". ".join(reasons) if reasons else "Suitable for extracting additional data from the site"
            scored.append(
                ScoredScraper(
                    scraper=scraper,
                    score=score,
                    reason=reason,
                    confidence=self.determine_confidence(score, technologies),
                    reasons=reasons,
                )
            )

        scored.sort(key=lambda s: s.score, reverse=True)
        return scored

    def score_technology_fit(
        self, scraper: ScraperType, technologies: Sequence[Technology]
    ) -> Tuple[float, str]:
        """Reward good pairings, penalise bad ones; prefer static when nothing is known."""
        if not technologies:
            return (30.0 if scraper == ScraperType.STATIC else 20.0), ""

        capabilities = SCRAPER_CAPABILITIES[scraper]
        score = 0.0
        matched: List[str] = []

        for tech in technologies:
            name = tech.name.lower()

            if any(good in name for good in capabilities.good_for):
                score += 30 * (1.0 if tech.confidence == TechConfidence.CERTAIN else 0.7)
                matched.append(tech.name)

            if any(bad in name for bad in capabilities.bad_for):
                score -= 20

            if name in capabilities.technologies:
                score += 40
                matched.append(tech.name)

        reason = f"Optimized for {', '.join(dict.fromkeys(matched))}" if matched else ""
        return score, reason

    def score_quality_potential(
        self, scraper: ScraperType, current_quality: QualityMetrics
    ) -> Tuple[float, str]:
        """Diminishing returns: any scraper helps a thin dataset."""
        overall = current_quality.overall_score
        reason = ""

        if overall < 30:
            score = 40.0
            reason = "High potential for quality improvement"
        elif overall < 70:
            if scraper in (ScraperType.DYNAMIC, ScraperType.SPA):
                score = 30.0
                reason = "Can extract dynamic content to improve quality"
            else:
                score = 20.0
        else:
            if scraper in (ScraperType.AI_POWERED, ScraperType.API):
                score = 25.0
                reason = "Can extract specialized data for fine-tuning"
            else:
                score = 10.0

        if len(current_quality.missing_fields) > 5 and scraper == ScraperType.DYNAMIC:
            score += 15
            reason = "Can fill many missing fields"

        return score, reason

    def score_historical_performance(self, scraper: ScraperType) -> float:
        """History term of the score; reserved and neutral (0) for every scraper."""
        return 0.0

    def determine_confidence(self, score: float, technologies: Sequence[Technology]) -> TechConfidence:
        if score >= 70 and technologies:
            return TechConfidence.CERTAIN
        if score >= 50:
            return TechConfidence.PROBABLE
        if score >= 30:
            return TechConfidence.POSSIBLE
        return TechConfidence.UNCERTAIN

    def estimate_quality_gain(
        self,
        scraper: ScraperType,
        current_quality: QualityMetrics,
        technologies: Sequence[Technology],
    ) -> int:
        gain = BASE_QUALITY_GAIN[scraper]

        if current_quality.overall_score > 70:
            gain *= 0.5
        elif current_quality.overall_score > 50:
            gain *= 0.75

        direct = SCRAPER_CAPABILITIES[scraper].technologies
        if any(t.name.lower() in direct for t in technologies):
            gain *= 1.2

        return _round_half_up(gain)

    def estimate_cost(self, scraper: ScraperType) -> float:
        return BASE_COST.get(scraper, 0.10)

    def get_fallback_scraper(self, used: Iterable[Any]) -> Optional[ScraperType]:
        """Cheapest enabled scraper not yet used, or None."""
        used_types = used if isinstance(used, set) else used_scraper_types(used)
        for scraper in FALLBACK_ORDER:
            if scraper in self.enabled_scrapers and scraper not in used_types:
                logger.info("Using fallback scraper %s", scraper.value)
                return scraper
        return None

    def validate_decision(self, decision: RoutingDecision) -> bool:
        """Reject unknown scrapers and implausible cost or gain estimates."""
        if ScraperType.parse(decision.recommended_scraper) is None:
            logger.warning("Invalid scraper in decision: %s", decision.recommended_scraper)
            return False

        if decision.estimated_cost < 0 or decision.estimated_cost > MAX_REASONABLE_COST:
            logger.warning("Unreasonable cost estimate: %s", decision.estimated_cost)
            return False

        if decision.estimated_quality_gain < 0 or decision.estimated_quality_gain > 100:
            logger.warning("Unreasonable quality gain estimate: %s", decision.estimated_quality_gain)
            return False

        return True

    def _fallback_decision(self, used: Set[ScraperType]) -> Optional[RoutingDecision]:
        scraper = self.get_fallback_scraper(used)
        if scraper is None:
            return None
        return RoutingDecision(
            recommended_scraper=scraper,
            reason="Fallback to cheapest unused scraper",
            alternative_scrapers=[],
            estimated_quality_gain=_round_half_up(BASE_QUALITY_GAIN[scraper]),
            estimated_cost=self.estimate_cost(scraper),
            confidence=TechConfidence.UNCERTAIN,
        )
