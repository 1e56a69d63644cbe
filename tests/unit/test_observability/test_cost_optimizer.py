"""Tests for cost projection, budgets and ROI-based selection."""

from unittest.mock import patch

import pytest
from hypothesis import given, strategies as st

from siteintel.config import PricingConfig
from siteintel.core.errors import SessionNotFoundError
from siteintel.core.types import CostBreakdown, CostTier, OptimizationOutcome, ScraperType
from siteintel.observability.cost_optimizer import MAX_ROI, CostOptimizer
from siteintel.storage.base import ScraperRun
from siteintel.storage.memory import InMemoryRepository


@pytest.fixture
def optimizer(repository):
    return CostOptimizer(repository)


async def _session_with_spend(repository, total: float):
    session = await repository.create_session("example.com")
    breakdown = CostBreakdown().with_charge(total, ScraperType.STATIC, "phase_1", CostTier.CHEAP)
    await repository.update_session(session.id, cost_breakdown=breakdown)
    return session.id


class TestProjection:
    @pytest.mark.parametrize("scraper,count,expected", [
        (ScraperType.STATIC, 10, 0.0101),
        (ScraperType.DYNAMIC, 10, 0.1001),
        (ScraperType.SPA, 4, 0.0601),
        (ScraperType.API, 0, 0.0001),
        (ScraperType.AI_POWERED, 5, 0.2501),
    ])
    def test_project_cost(self, optimizer, scraper, count, expected):
        assert optimizer.project_cost(scraper, count) == expected

    def test_project_cost_without_overhead(self, optimizer):
        assert optimizer.project_cost(ScraperType.STATIC, 10, include_overhead=False) == 0.01

    def test_custom_pricing(self, repository):
        pricing = PricingConfig(rates={"static": 0.002}, operation_overhead=0)
        assert CostOptimizer(repository, pricing).project_cost(ScraperType.STATIC, 5) == 0.01

    @pytest.mark.parametrize("total,tier", [
        (0, CostTier.FREE),
        (0.005, CostTier.CHEAP),
        (0.01, CostTier.MODERATE),
        (0.099, CostTier.MODERATE),
        (0.10, CostTier.EXPENSIVE),
        (5.0, CostTier.EXPENSIVE),
    ])
    def test_cost_tier(self, optimizer, total, tier):
        assert optimizer.get_cost_tier(total) is tier

    @given(st.floats(min_value=0, max_value=10, allow_nan=False), st.floats(min_value=0, max_value=10, allow_nan=False))
    def test_cost_tier_is_monotonic(self, a, b):
        optimizer = CostOptimizer(InMemoryRepository())
        order = [CostTier.FREE, CostTier.CHEAP, CostTier.MODERATE, CostTier.EXPENSIVE]
        low, high = sorted((a, b))
        assert order.index(optimizer.get_cost_tier(low)) <= order.index(optimizer.get_cost_tier(high))

    def test_roi(self, optimizer):
        assert optimizer.calculate_roi(20, 0) == MAX_ROI
        assert optimizer.calculate_roi(20, 0.0151) == pytest.approx(1324.5, abs=0.01)

    def test_estimate_quality_gain(self, optimizer):
        assert optimizer.estimate_quality_gain(ScraperType.STATIC, 50) == 20
        assert optimizer.estimate_quality_gain(ScraperType.AI_POWERED, 50) == 30
        assert optimizer.estimate_quality_gain(ScraperType.API, 8) == 8
        assert optimizer.estimate_quality_gain(ScraperType.DYNAMIC, -5) == 0

    def test_is_within_budget(self, optimizer):
        assert optimizer.is_within_budget(ScraperType.STATIC, 15, 0.02) is True
        assert optimizer.is_within_budget(ScraperType.AI_POWERED, 5, 0.02) is False


class TestBudget:
    @pytest.mark.asyncio
    async def test_check_budget(self, optimizer, repository):
        session_id = await _session_with_spend(repository, 0.3)
        status = await optimizer.check_budget(session_id, 1.0)
        assert status.exceeded is False
        assert status.total_spent == pytest.approx(0.3)
        assert status.remaining == pytest.approx(0.7)

    @pytest.mark.asyncio
    async def test_exceeded_at_limit(self, optimizer, repository):
        session_id = await _session_with_spend(repository, 1.0)
        status = await optimizer.check_budget(session_id, 1.0)
        assert status.exceeded is True
        assert status.remaining == 0.0

    @pytest.mark.asyncio
    async def test_remaining_clamped(self, optimizer, repository):
        session_id = await _session_with_spend(repository, 1.5)
        status = await optimizer.check_budget(session_id, 1.0)
        assert status.remaining == 0.0

    @pytest.mark.asyncio
    async def test_missing_session(self, optimizer):
        with pytest.raises(SessionNotFoundError):
            await optimizer.check_budget("nope", 1.0)


class TestOptimizeSelection:
    @pytest.mark.asyncio
    async def test_budget_exhausted_short_circuits(self, optimizer):
        with patch.object(optimizer.repository, "get_scraping_history") as history:
            result = await optimizer.optimize_scraper_selection("s1", 0, 85, 20, list(ScraperType))
        history.assert_not_called()
        assert result.recommended is None
        assert result.reason == "Budget exhausted"
        assert result.outcome is OptimizationOutcome.BUDGET_EXHAUSTED

    @pytest.mark.asyncio
    async def test_picks_highest_roi(self, optimizer, repository):
        session = await repository.create_session("example.com")
        result = await optimizer.optimize_scraper_selection(session.id, 1.0, 85, 20, list(ScraperType))

        # api: 15 / 0.0101 beats static: 20 / 0.0151
        assert result.recommended is ScraperType.API
        assert result.projected_cost == 0.0101
        assert result.outcome is OptimizationOutcome.RECOMMENDED
        assert result.reason == "Efficient at $0.0101 for +15 quality points. Direct API access when available."

    @pytest.mark.asyncio
    async def test_skips_used_scrapers(self, optimizer, repository):
        session = await repository.create_session("example.com")
        await repository.add_scraper_run(ScraperRun(session_id=session.id, scraper_type=ScraperType.API))
        result = await optimizer.optimize_scraper_selection(session.id, 1.0, 85, 20, list(ScraperType))
        assert result.recommended is ScraperType.STATIC

    @pytest.mark.asyncio
    async def test_all_used(self, optimizer, repository):
        session = await repository.create_session("example.com")
        for scraper in ScraperType:
            await repository.add_scraper_run(ScraperRun(session_id=session.id, scraper_type=scraper))
        result = await optimizer.optimize_scraper_selection(session.id, 1.0, 85, 20, list(ScraperType))
        assert result.recommended is None
        assert result.reason == "All available scrapers have been used"
        assert result.outcome is OptimizationOutcome.SCRAPERS_EXHAUSTED

    @pytest.mark.asyncio
    async def test_none_within_budget(self, optimizer, repository):
        session = await repository.create_session("example.com")
        result = await optimizer.optimize_scraper_selection(
            session.id, 0.005, 85, 20, [ScraperType.DYNAMIC, ScraperType.AI_POWERED]
        )
        assert result.recommended is None
        assert result.reason == "No scrapers within budget"
        assert result.outcome is OptimizationOutcome.NONE_WITHIN_BUDGET

    @pytest.mark.asyncio
    async def test_failure_falls_back_to_static(self, optimizer):
        with patch.object(optimizer.repository, "get_scraping_history", side_effect=RuntimeError("db down")):
            result = await optimizer.optimize_scraper_selection("s1", 1.0, 85, 20, list(ScraperType))
        assert result.recommended is ScraperType.STATIC
        assert result.reason == "Defaulting to most cost-effective scraper"
        assert result.projected_cost == 0.0101
        assert result.outcome is OptimizationOutcome.FALLBACK


class TestSpending:
    @pytest.mark.asyncio
    async def test_track_spending_prefers_actual(self, optimizer):
        assert await optimizer.track_spending("s1", ScraperType.STATIC, 10, actual_cost=0.5) == 0.5
        assert await optimizer.track_spending("s1", ScraperType.STATIC, 10) == 0.0101

    @pytest.mark.asyncio
    async def test_track_spending_never_raises(self, optimizer):
        with patch.object(optimizer, "project_cost", side_effect=RuntimeError("boom")):
            assert await optimizer.track_spending("s1", ScraperType.STATIC, 10) is None

    @pytest.mark.asyncio
    async def test_breakdown_and_summary(self, optimizer, repository):
        session = await repository.create_session("example.com")
        breakdown = (
            CostBreakdown()
            .with_charge(0.004, ScraperType.STATIC, "phase_1", CostTier.FREE)
            .with_charge(0.1, ScraperType.DYNAMIC, "phase_2", CostTier.FREE)
        )
        await repository.update_session(session.id, cost_breakdown=breakdown)

        stored = await optimizer.get_spending_breakdown(session.id)
        assert stored.tier is CostTier.EXPENSIVE

        summary = await optimizer.get_cost_summary(session.id)
        assert summary.total_spent == pytest.approx(0.104)
        assert summary.most_expensive_scraper is ScraperType.DYNAMIC
        assert summary.cheapest_scraper is ScraperType.STATIC
        assert summary.average_cost_per_scraper == pytest.approx(0.052)
        assert summary.to_dict()["tier"] == "expensive"

    @pytest.mark.asyncio
    async def test_summary_of_unspent_session(self, optimizer, repository):
        session = await repository.create_session("example.com")
        summary = await optimizer.get_cost_summary(session.id)
        assert summary.total_spent == 0.0
        assert summary.most_expensive_scraper is None
        assert summary.tier is CostTier.FREE
