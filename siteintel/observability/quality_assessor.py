"""Data quality assessment for scraping sessions.

Scores a session's merged data on four dimensions and combines them into a
0-100 composite:

- Field coverage (40%): weighted share of key business fields present
- Content depth (25%): volume of paragraphs, images, contacts and tech entries
- Data freshness (15%): how recently the session was updated
- Source quality (20%): how many data layers are populated

Missing required fields and the scrapers already used drive a prioritised
list of recommendations.
"""

import logging
import math
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from siteintel.core.errors import SessionNotFoundError
from siteintel.core.merged_data import MergedData, get_path, is_populated
from siteintel.core.types import (
    PRIORITY_ORDER,
    DataLayer,
    Priority,
    QualityLevel,
    QualityMetrics,
    QualityRecommendation,
    ScraperType,
)
from siteintel.routing.smart_router import used_scraper_types
from siteintel.storage.base import SessionRepository

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    """Return current UTC time (timezone-aware)."""
    return datetime.now(timezone.utc)


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative scores."""
    return int(math.floor(value + 0.5))


# Relative importance of each business field
FIELD_WEIGHTS: Dict[str, float] = {
    "company.name": 1.0,
    "company.description": 0.9,
    "contact.email": 0.9,
    "contact.phone": 0.7,
    "address.formatted": 0.6,
    "technologies.frontend": 0.5,
    "technologies.backend": 0.5,
    "social.linkedin": 0.4,
    "social.twitter": 0.3,
    "company.industry": 0.8,
    "company.employee_count": 0.5,
    "company.founded_year": 0.4,
    "company.revenue": 0.6,
    "company.website": 0.8,
    "technologies.cms": 0.3,
    "technologies.analytics": 0.3,
}

REQUIRED_FIELDS: Tuple[str, ...] = (
    "company.name",
    "company.description",
    "contact.email",
    "contact.phone",
    "address.formatted",
    "technologies.frontend",
    "technologies.backend",
    "social.linkedin",
    "social.twitter",
    "company.industry",
    "company.employee_count",
    "company.founded_year",
)

# Fields each scraper type is expected to fill
STATIC_FIELDS = ("company.name", "company.description", "company.industry", "address.formatted", "company.website")
DYNAMIC_FIELDS = (
    "contact.email",
    "contact.phone",
    "technologies.frontend",
    "technologies.backend",
    "social.linkedin",
    "social.twitter",
)

# Layers searched for business fields, in order
FIELD_LAYERS = (
    DataLayer.STATIC_CONTENT,
    DataLayer.DYNAMIC_CONTENT,
    DataLayer.AI_EXTRACTED,
    DataLayer.LLM_ENRICHED,
)

LAYER_SOURCE_SCORES: Dict[DataLayer, int] = {
    DataLayer.SITE_ANALYSIS: 20,
    DataLayer.STATIC_CONTENT: 25,
    DataLayer.DYNAMIC_CONTENT: 30,
    DataLayer.AI_EXTRACTED: 15,
    DataLayer.LLM_ENRICHED: 10,
}

# (max hours, score); older than the last bound scores 10
FRESHNESS_STEPS: Tuple[Tuple[float, int], ...] = (
    (1, 100),
    (24, 90),
    (72, 70),
    (168, 50),
    (720, 30),
    (2160, 20),
)

SCORE_WEIGHTS = {
    "field_coverage": 0.40,
    "content_depth": 0.25,
    "data_freshness": 0.15,
    "source_quality": 0.20,
}

STATIC_IMPROVEMENT_CAP = 30
DYNAMIC_IMPROVEMENT_CAP = 40
AI_IMPROVEMENT = 25

RECOMMENDATION_COSTS = {
    ScraperType.STATIC: 0.001,
    ScraperType.DYNAMIC: 0.01,
    ScraperType.AI_POWERED: 0.05,
}


def _list_len(data: Any, *paths: str) -> int:
    for path in paths:
        value = get_path(data, path)
        if isinstance(value, list) and value:
            return len(value)
    return 0


class QualityAssessor:
    """Score session data quality and suggest improvements."""

    def __init__(
        self,
        repository: SessionRepository,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.repository = repository
        self._clock = clock or _utc_now

    async def calculate_quality_score(self, session_id: str) -> QualityMetrics:
        """Assess a stored session.

        Raises:
            SessionNotFoundError: Session does not exist
        """
        session = await self.repository.get_session(session_id)
        if session is None:
            logger.warning("Quality assessment requested for unknown session %s", session_id)
            raise SessionNotFoundError(session_id)

        try:
            history = await self.repository.get_scraping_history(session_id)
        except Exception as e:
            logger.error("Could not load scraping history for %s: %s", session_id, e, exc_info=True)
            history = []

        metrics = self.assess(session.merged_data, session.updated_at, history)
        logger.info(
            "Quality for %s: %d (%s), %d missing fields",
            session_id,
            metrics.overall_score,
            metrics.level.value,
            len(metrics.missing_fields),
        )
        return metrics

    def assess(
        self,
        merged_data: Optional[MergedData],
        updated_at: Optional[datetime],
        history: Sequence[Any] = (),
    ) -> QualityMetrics:
        """Score merged data; pure given the injected clock."""
        if merged_data is None or merged_data.is_empty():
            return self.empty_metrics()

        field_coverage = self.calculate_field_coverage(merged_data)
        content_depth = self.calculate_content_depth(merged_data)
        data_freshness = self.calculate_data_freshness(updated_at)
        source_quality = self.calculate_source_quality(merged_data)

        overall_score = self.calculate_overall_score(field_coverage, content_depth, data_freshness, source_quality)
        missing_fields = self.find_missing_fields(merged_data)

        return QualityMetrics(
            field_coverage=field_coverage,
            content_depth=content_depth,
            data_freshness=data_freshness,
            source_quality=source_quality,
            overall_score=overall_score,
            level=self.determine_quality_level(overall_score),
            missing_fields=missing_fields,
            recommendations=self.generate_recommendations(missing_fields, overall_score, history),
        )

    def has_field(self, merged_data: MergedData, field_path: str) -> bool:
        """True when ``field_path`` is populated in any extracted layer.

        Paths prefixed with ``site.`` are looked up in site analysis.
        """
        if field_path.startswith("site."):
            return is_populated(get_path(merged_data.layer(DataLayer.SITE_ANALYSIS), field_path[5:]))

        return any(is_populated(get_path(merged_data.layer(layer), field_path)) for layer in FIELD_LAYERS)

    def calculate_field_coverage(self, merged_data: MergedData) -> int:
        total = sum(FIELD_WEIGHTS.values())
        covered = sum(weight for name, weight in FIELD_WEIGHTS.items() if self.has_field(merged_data, name))
        return round_half_up(covered / total * 100) if total > 0 else 0

    def calculate_content_depth(self, merged_data: MergedData) -> int:
        static = merged_data.layer(DataLayer.STATIC_CONTENT)
        dynamic = merged_data.layer(DataLayer.DYNAMIC_CONTENT)

        score = 0
        score += min(_list_len(static, "content.paragraphs") * 2, 20)
        score += min(_list_len(static, "content.images") * 3, 15)
        score += min(_list_len(static, "content.headings.h1") * 5, 10)

        score += min(_list_len(dynamic, "contact.emails", "contactData.emails") * 10, 20)
        score += min(_list_len(dynamic, "contact.phones", "contactData.phones") * 8, 15)
        score += min(_list_len(dynamic, "technologies.frontend") * 3, 10)
        score += min(_list_len(dynamic, "technologies.backend") * 3, 10)

        return min(score, 100)

    def calculate_data_freshness(self, updated_at: Optional[datetime]) -> int:
        if updated_at is None:
            return 100
        if updated_at.tzinfo is None:
            updated_at = updated_at.replace(tzinfo=timezone.utc)

        hours_old = (self._clock() - updated_at).total_seconds() / 3600
        for max_hours, score in FRESHNESS_STEPS:
            if hours_old < max_hours:
                return score
        return 10

    def calculate_source_quality(self, merged_data: MergedData) -> int:
        populated = merged_data.populated_layers()
        score = sum(LAYER_SOURCE_SCORES[layer] for layer in populated)

        # Redundancy bonus
        if len(populated) >= 3:
            score += 20
        elif len(populated) >= 2:
            score += 10

        return min(score, 100)

    def calculate_overall_score(
        self, field_coverage: int, content_depth: int, data_freshness: int, source_quality: int
    ) -> int:
        weighted = (
            field_coverage * SCORE_WEIGHTS["field_coverage"]
            + content_depth * SCORE_WEIGHTS["content_depth"]
            + data_freshness * SCORE_WEIGHTS["data_freshness"]
            + source_quality * SCORE_WEIGHTS["source_quality"]
        )
        return round_half_up(weighted)

    def determine_quality_level(self, score: int) -> QualityLevel:
        if score >= 90:
            return QualityLevel.EXCELLENT
        if score >= 70:
            return QualityLevel.HIGH
        if score >= 50:
            return QualityLevel.MEDIUM
        return QualityLevel.LOW

    def find_missing_fields(self, merged_data: MergedData) -> List[str]:
        return [name for name in REQUIRED_FIELDS if not self.has_field(merged_data, name)]

    def generate_recommendations(
        self,
        missing_fields: Sequence[str],
        current_score: int,
        history: Sequence[Any] = (),
    ) -> List[QualityRecommendation]:
        """Suggest unused scrapers, highest priority first."""
        used = used_scraper_types(history)
        recommendations = []

        if ScraperType.STATIC not in used and current_score < 90:
            recommendations.append(
                QualityRecommendation(
                    scraper=ScraperType.STATIC,
                    reason="Fast extraction of basic HTML content, metadata, and static information",
                    expected_improvement=self.estimate_improvement(
                        missing_fields, STATIC_FIELDS, 10, STATIC_IMPROVEMENT_CAP
                    ),
                    estimated_cost=RECOMMENDATION_COSTS[ScraperType.STATIC],
                    priority=Priority.HIGH,
                )
            )

        if ScraperType.DYNAMIC not in used:
            needs_dynamic = any(
                marker in name for name in missing_fields for marker in ("contact", "technologies", "social")
            )
            if needs_dynamic or current_score < 70:
                contact_missing = any("contact" in name for name in missing_fields)
                recommendations.append(
                    QualityRecommendation(
                        scraper=ScraperType.DYNAMIC,
                        reason=(
                            "Extract JavaScript-rendered content including contact forms, "
                            "dynamic elements, and technology stack"
                        ),
                        expected_improvement=self.estimate_improvement(
                            missing_fields, DYNAMIC_FIELDS, 15, DYNAMIC_IMPROVEMENT_CAP
                        ),
                        estimated_cost=RECOMMENDATION_COSTS[ScraperType.DYNAMIC],
                        priority=Priority.HIGH if contact_missing else Priority.MEDIUM,
                    )
                )

        if current_score < 80 and ScraperType.AI_POWERED not in used:
            recommendations.append(
                QualityRecommendation(
                    scraper=ScraperType.AI_POWERED,
                    reason=(
                        "AI-powered extraction can identify complex patterns and extract "
                        "structured data from unstructured content"
                    ),
                    expected_improvement=AI_IMPROVEMENT,
                    estimated_cost=RECOMMENDATION_COSTS[ScraperType.AI_POWERED],
                    priority=Priority.LOW,
                )
            )

        recommendations.sort(key=lambda r: PRIORITY_ORDER[r.priority])
        return recommendations

    def estimate_improvement(
        self, missing_fields: Sequence[str], candidates: Sequence[str], multiplier: float, cap: int
    ) -> int:
        improvement = sum(FIELD_WEIGHTS[name] * multiplier for name in missing_fields if name in candidates)
        return min(round_half_up(improvement), cap)

    def empty_metrics(self) -> QualityMetrics:
        """Metrics for a session with no data yet."""
        return QualityMetrics(
            field_coverage=0,
            content_depth=0,
            data_freshness=100,
            source_quality=0,
            overall_score=0,
            level=QualityLevel.LOW,
            missing_fields=list(REQUIRED_FIELDS),
            recommendations=[
                QualityRecommendation(
                    scraper=ScraperType.STATIC,
                    reason="Start with basic static content extraction to establish baseline data",
                    expected_improvement=30,
                    estimated_cost=RECOMMENDATION_COSTS[ScraperType.STATIC],
                    priority=Priority.HIGH,
                )
            ],
        )
