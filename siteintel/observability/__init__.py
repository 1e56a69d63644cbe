"""Observability module for siteintel.

Provides telemetry, quality scoring and cost tracking for scraping sessions.
"""

from siteintel.observability.cost_optimizer import CostOptimizer, CostSummary, ScraperOption
from siteintel.observability.quality_assessor import FIELD_WEIGHTS, REQUIRED_FIELDS, QualityAssessor
from siteintel.observability.telemetry import NullTelemetry, Telemetry, TelemetryEvent, TimingSpan

__all__ = [
    "CostOptimizer",
    "CostSummary",
    "ScraperOption",
    "QualityAssessor",
    "FIELD_WEIGHTS",
    "REQUIRED_FIELDS",
    "Telemetry",
    "NullTelemetry",
    "TelemetryEvent",
    "TimingSpan",
]
