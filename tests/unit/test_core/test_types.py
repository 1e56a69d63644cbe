"""Tests for shared enums and value types."""

import pytest
from hypothesis import given, strategies as st

from siteintel.core.types import (
    CostBreakdown,
    CostTier,
    DataLayer,
    ScraperType,
    TechConfidence,
    Technology,
    layer_for_scraper,
)


class TestScraperType:
    @pytest.mark.parametrize("value,expected", [
        ("static", ScraperType.STATIC),
        ("AI_POWERED", ScraperType.AI_POWERED),
        (ScraperType.SPA, ScraperType.SPA),
    ])
    def test_parse_known(self, value, expected):
        assert ScraperType.parse(value) is expected

    @pytest.mark.parametrize("value", ["bogus", "", None, 3])
    def test_parse_unknown(self, value):
        assert ScraperType.parse(value) is None

    def test_layers(self):
        assert layer_for_scraper(ScraperType.STATIC) is DataLayer.STATIC_CONTENT
        assert layer_for_scraper(ScraperType.DYNAMIC) is DataLayer.DYNAMIC_CONTENT
        assert layer_for_scraper(ScraperType.SPA) is DataLayer.DYNAMIC_CONTENT
        assert layer_for_scraper(ScraperType.API) is DataLayer.DYNAMIC_CONTENT
        assert layer_for_scraper(ScraperType.AI_POWERED) is DataLayer.AI_EXTRACTED
        assert layer_for_scraper(None) is DataLayer.STATIC_CONTENT


class TestTechnology:
    def test_confidence_rank_ordering(self):
        ranks = [c.rank for c in (
            TechConfidence.UNCERTAIN, TechConfidence.POSSIBLE, TechConfidence.PROBABLE, TechConfidence.CERTAIN
        )]
        assert ranks == sorted(ranks)

    def test_from_bare_name(self):
        tech = Technology.from_dict("React")
        assert tech.name == "React"
        assert tech.confidence is TechConfidence.PROBABLE

    def test_dict_round_trip(self):
        tech = Technology("vue", TechConfidence.CERTAIN, [ScraperType.DYNAMIC], "frontend")
        assert Technology.from_dict(tech.to_dict()) == tech


class TestCostBreakdown:
    def test_with_charge_accumulates(self):
        breakdown = CostBreakdown()
        breakdown = breakdown.with_charge(0.004, ScraperType.STATIC, "phase_1", CostTier.CHEAP, max_budget=1.0)
        breakdown = breakdown.with_charge(0.05, ScraperType.DYNAMIC, "phase_2", CostTier.MODERATE, max_budget=1.0)

        assert breakdown.total == pytest.approx(0.054)
        assert breakdown.by_scraper == {"static": 0.004, "dynamic": 0.05}
        assert breakdown.by_phase == {"phase_1": 0.004, "phase_2": 0.05}
        assert breakdown.budget_remaining == pytest.approx(0.946)
        assert breakdown.tier is CostTier.MODERATE

    def test_with_charge_returns_new_instance(self):
        original = CostBreakdown()
        updated = original.with_charge(0.01, ScraperType.API, "phase_1", CostTier.MODERATE)
        assert original.total == 0.0
        assert original.by_scraper == {}
        assert updated is not original

    def test_negative_charge_ignored(self):
        breakdown = CostBreakdown().with_charge(-5, ScraperType.STATIC, "phase_1", CostTier.FREE)
        assert breakdown.total == 0.0

    def test_remaining_never_negative(self):
        breakdown = CostBreakdown().with_charge(2.0, ScraperType.AI_POWERED, "phase_1", CostTier.EXPENSIVE, 1.0)
        assert breakdown.budget_remaining == 0.0

    def test_dict_round_trip(self):
        breakdown = CostBreakdown().with_charge(0.02, ScraperType.SPA, "phase_1", CostTier.MODERATE, 1.0)
        assert CostBreakdown.from_dict(breakdown.to_dict()) == breakdown

    @given(st.lists(
        st.tuples(
            st.floats(min_value=0, max_value=5, allow_nan=False, allow_infinity=False),
            st.sampled_from(list(ScraperType)),
        ),
        max_size=20,
    ))
    def test_totals_never_decrease(self, charges):
        breakdown = CostBreakdown()
        for i, (amount, scraper) in enumerate(charges):
            previous = breakdown
            breakdown = breakdown.with_charge(amount, scraper, f"phase_{i % 4 + 1}", CostTier.FREE)
            assert breakdown.total >= previous.total
            for key, value in previous.by_scraper.items():
                assert breakdown.by_scraper[key] >= value
            for key, value in previous.by_phase.items():
                assert breakdown.by_phase[key] >= value
