"""Core types, errors and layered session data."""

from siteintel.core.errors import SiteIntelError
from siteintel.core.merged_data import AggregateStats, MergedData
from siteintel.core.types import (
    CostBreakdown,
    CostTier,
    DataLayer,
    QualityLevel,
    QualityMetrics,
    RoutingDecision,
    ScraperType,
    SessionStatus,
    TechConfidence,
    Technology,
)

__all__ = [
    "SiteIntelError",
    "AggregateStats",
    "MergedData",
    "CostBreakdown",
    "CostTier",
    "DataLayer",
    "QualityLevel",
    "QualityMetrics",
    "RoutingDecision",
    "ScraperType",
    "SessionStatus",
    "TechConfidence",
    "Technology",
]
