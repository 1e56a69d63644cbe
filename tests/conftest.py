"""Pytest configuration and fixtures."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest

from siteintel.core.types import QualityLevel, QualityMetrics, ScraperType
from siteintel.scrapers.base import ScrapeOptions, ScrapeResult, ScraperLayer
from siteintel.storage.memory import InMemoryRepository

FIXED_NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class FakeScraperLayer(ScraperLayer):
    """Scraper layer returning canned results and recording calls."""

    def __init__(self, result: Optional[ScrapeResult] = None, error: Optional[Exception] = None):
        self.result = result or ScrapeResult(pages=[{"url": "https://example.com", "title": "Example"}])
        self.error = error
        self.initialize_calls = 0
        self.calls: List[Dict[str, Any]] = []
        self.on_execute = None

    async def initialize(self) -> None:
        self.initialize_calls += 1

    async def execute(self, urls: List[str], options: ScrapeOptions) -> ScrapeResult:
        self.calls.append({"urls": list(urls), "options": options})
        if self.on_execute is not None:
            await self.on_execute(urls, options)
        if self.error is not None:
            raise self.error
        return self.result


def make_quality(overall: int = 0, missing: int = 0) -> QualityMetrics:
    """Quality metrics with a given overall score and missing-field count."""
    return QualityMetrics(
        field_coverage=overall,
        content_depth=overall,
        data_freshness=100,
        source_quality=overall,
        overall_score=overall,
        level=QualityLevel.LOW,
        missing_fields=[f"field_{i}" for i in range(missing)],
    )


@pytest.fixture
def clock():
    """Fixed, manually advanced clock."""
    return FakeClock()


@pytest.fixture
def repository(clock):
    """In-memory repository on the fixed clock."""
    return InMemoryRepository(clock=clock)


@pytest.fixture
def scraper_layer():
    """Scraper layer returning one page."""
    return FakeScraperLayer()


@pytest.fixture
def all_scrapers():
    return list(ScraperType)


@pytest.fixture
def mock_env(monkeypatch):
    """Isolated SITEINTEL_* environment."""
    test_env = {
        "SITEINTEL_STORAGE": "memory",
        "SITEINTEL_MAX_BUDGET": "0.5",
        "SITEINTEL_LOG_LEVEL": "warning",
    }
    for key, value in test_env.items():
        monkeypatch.setenv(key, value)
    return test_env
