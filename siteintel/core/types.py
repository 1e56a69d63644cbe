"""Shared enums and value types for the intelligence-gathering core."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class ScraperType(str, Enum):
    """Fetch/extract strategies with distinct cost and capability profiles."""

    STATIC = "static"
    API = "api"
    DYNAMIC = "dynamic"
    SPA = "spa"
    AI_POWERED = "ai_powered"

    @classmethod
    def parse(cls, value: Any) -> Optional["ScraperType"]:
        """Return the matching member or None for unrecognised values."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return None


class DataLayer(str, Enum):
    """Named partitions of merged session data."""

    SITE_ANALYSIS = "site_analysis"
    STATIC_CONTENT = "static_content"
    DYNAMIC_CONTENT = "dynamic_content"
    AI_EXTRACTED = "ai_extracted"
    LLM_ENRICHED = "llm_enriched"


# Which layer a scraper's extracted data lands in
SCRAPER_LAYERS: Dict[ScraperType, DataLayer] = {
    ScraperType.STATIC: DataLayer.STATIC_CONTENT,
    ScraperType.API: DataLayer.DYNAMIC_CONTENT,
    ScraperType.DYNAMIC: DataLayer.DYNAMIC_CONTENT,
    ScraperType.SPA: DataLayer.DYNAMIC_CONTENT,
    ScraperType.AI_POWERED: DataLayer.AI_EXTRACTED,
}


def layer_for_scraper(scraper_type: Optional[ScraperType]) -> DataLayer:
    """Get the data layer populated by a scraper type."""
    if scraper_type is None:
        return DataLayer.STATIC_CONTENT
    return SCRAPER_LAYERS.get(scraper_type, DataLayer.STATIC_CONTENT)


class QualityLevel(str, Enum):
    """Coarse classification of the composite quality score."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    EXCELLENT = "excellent"


class TechConfidence(str, Enum):
    """Confidence tier for technology detection and routing decisions."""

    UNCERTAIN = "uncertain"
    POSSIBLE = "possible"
    PROBABLE = "probable"
    CERTAIN = "certain"

    @property
    def rank(self) -> int:
        """Ordinal used when comparing tiers."""
        return _CONFIDENCE_RANK[self]


_CONFIDENCE_RANK = {
    TechConfidence.UNCERTAIN: 0,
    TechConfidence.POSSIBLE: 1,
    TechConfidence.PROBABLE: 2,
    TechConfidence.CERTAIN: 3,
}


class CostTier(str, Enum):
    """Coarse classification of cumulative session spend."""

    FREE = "free"
    CHEAP = "cheap"
    MODERATE = "moderate"
    EXPENSIVE = "expensive"


class Priority(str, Enum):
    """Recommendation priority."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


PRIORITY_ORDER = {Priority.HIGH: 0, Priority.MEDIUM: 1, Priority.LOW: 2}


class SessionStatus(str, Enum):
    """Lifecycle status of a scraping session."""

    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class Technology:
    """A detected technology with its confidence tier."""

    name: str
    confidence: TechConfidence = TechConfidence.UNCERTAIN
    detected_by: List[ScraperType] = field(default_factory=list)
    category: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "confidence": self.confidence.value,
            "detected_by": [s.value for s in self.detected_by],
            "category": self.category,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Technology":
        """Build from a dict or a bare technology name."""
        if isinstance(data, str):
            return cls(name=data, confidence=TechConfidence.PROBABLE)
        try:
            confidence = TechConfidence(data.get("confidence", TechConfidence.PROBABLE.value))
        except ValueError:
            confidence = TechConfidence.PROBABLE
        detected_by = [s for s in (ScraperType.parse(v) for v in data.get("detected_by", [])) if s]
        return cls(
            name=str(data.get("name", "")),
            confidence=confidence,
            detected_by=detected_by,
            category=data.get("category"),
        )


@dataclass
class QualityRecommendation:
    """Suggested scraper run to improve data quality."""

    scraper: ScraperType
    reason: str
    expected_improvement: int
    estimated_cost: float
    priority: Priority

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scraper": self.scraper.value,
            "reason": self.reason,
            "expected_improvement": self.expected_improvement,
            "estimated_cost": self.estimated_cost,
            "priority": self.priority.value,
        }


@dataclass
class QualityMetrics:
    """Composite quality assessment of a session's merged data.

    Attributes:
        field_coverage: Weighted percentage of business fields present (0-100)
        content_depth: Reward for volume of extracted content (0-100)
        data_freshness: Step score of hours since last update (0-100)
        source_quality: Reward for populated data layers (0-100)
        overall_score: Weighted composite (0-100)
        level: Classification of overall_score
        missing_fields: Required fields absent from every layer
        recommendations: Prioritised scraper suggestions
    """

    field_coverage: int
    content_depth: int
    data_freshness: int
    source_quality: int
    overall_score: int
    level: QualityLevel
    missing_fields: List[str] = field(default_factory=list)
    recommendations: List[QualityRecommendation] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field_coverage": self.field_coverage,
            "content_depth": self.content_depth,
            "data_freshness": self.data_freshness,
            "source_quality": self.source_quality,
            "overall_score": self.overall_score,
            "level": self.level.value,
            "missing_fields": list(self.missing_fields),
            "recommendations": [r.to_dict() for r in self.recommendations],
        }


@dataclass(frozen=True)
class CostBreakdown:
    """Cumulative spend for a session.

    ``total`` never decreases: every update goes through ``with_charge``,
    which clamps negative charges to zero and returns a new breakdown.
    """

    total: float = 0.0
    by_scraper: Dict[str, float] = field(default_factory=dict)
    by_phase: Dict[str, float] = field(default_factory=dict)
    projected_total: float = 0.0
    budget_remaining: float = 0.0
    tier: CostTier = CostTier.FREE

    def with_charge(
        self,
        amount: float,
        scraper: ScraperType,
        phase_label: str,
        tier: CostTier,
        max_budget: Optional[float] = None,
    ) -> "CostBreakdown":
        """Return a new breakdown with ``amount`` added."""
        amount = max(0.0, float(amount or 0.0))
        total = round(self.total + amount, 6)

        by_scraper = dict(self.by_scraper)
        by_scraper[scraper.value] = round(by_scraper.get(scraper.value, 0.0) + amount, 6)

        by_phase = dict(self.by_phase)
        by_phase[phase_label] = round(by_phase.get(phase_label, 0.0) + amount, 6)

        remaining = self.budget_remaining
        if max_budget is not None:
            remaining = round(max(0.0, max_budget - total), 6)

        return CostBreakdown(
            total=total,
            by_scraper=by_scraper,
            by_phase=by_phase,
            projected_total=max(self.projected_total, total),
            budget_remaining=remaining,
            tier=tier,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "by_scraper": dict(self.by_scraper),
            "by_phase": dict(self.by_phase),
            "projected_total": self.projected_total,
            "budget_remaining": self.budget_remaining,
            "tier": self.tier.value,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "CostBreakdown":
        if not data:
            return cls()
        return cls(
            total=float(data.get("total", 0.0) or 0.0),
            by_scraper=dict(data.get("by_scraper", {}) or {}),
            by_phase=dict(data.get("by_phase", {}) or {}),
            projected_total=float(data.get("projected_total", 0.0) or 0.0),
            budget_remaining=float(data.get("budget_remaining", 0.0) or 0.0),
            tier=CostTier(data.get("tier", CostTier.FREE.value)),
        )


@dataclass
class RoutingDecision:
    """Advisory recommendation of the next scraper to run.

    Recomputed fresh on every call; never persisted.
    """

    recommended_scraper: ScraperType
    reason: str
    alternative_scrapers: List[ScraperType]
    estimated_quality_gain: int
    estimated_cost: float
    confidence: TechConfidence

    def to_dict(self) -> Dict[str, Any]:
        return {
            "recommended_scraper": self.recommended_scraper.value,
            "reason": self.reason,
            "alternative_scrapers": [s.value for s in self.alternative_scrapers],
            "estimated_quality_gain": self.estimated_quality_gain,
            "estimated_cost": self.estimated_cost,
            "confidence": self.confidence.value,
        }


@dataclass
class BudgetStatus:
    """Result of a budget check against persisted spend."""

    exceeded: bool
    total_spent: float
    remaining: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "exceeded": self.exceeded,
            "total_spent": self.total_spent,
            "remaining": self.remaining,
        }


class OptimizationOutcome(str, Enum):
    """Why the optimizer did or did not recommend a scraper."""

    RECOMMENDED = "recommended"
    BUDGET_EXHAUSTED = "budget_exhausted"
    SCRAPERS_EXHAUSTED = "scrapers_exhausted"
    NONE_WITHIN_BUDGET = "none_within_budget"
    FALLBACK = "fallback"


@dataclass
class OptimizationResult:
    """Cost-optimized scraper selection."""

    recommended: Optional[ScraperType]
    reason: str
    projected_cost: float
    outcome: OptimizationOutcome

    def to_dict(self) -> Dict[str, Any]:
        return {
            "recommended": self.recommended.value if self.recommended else None,
            "reason": self.reason,
            "projected_cost": self.projected_cost,
            "outcome": self.outcome.value,
        }
