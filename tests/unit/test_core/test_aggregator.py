"""Tests for the data aggregator."""

import pytest
from hypothesis import given, settings, strategies as st

from siteintel.core.aggregator import (
    DataAggregator,
    calculate_data_points_from_pages,
    normalize_url,
)
from siteintel.core.merged_data import MergedData
from siteintel.core.types import DataLayer
from siteintel.observability.telemetry import EventKind, NullTelemetry, Telemetry
from siteintel.scrapers.base import ScrapeResult
from tests.conftest import FakeClock


@pytest.fixture
def aggregator():
    return DataAggregator(telemetry=NullTelemetry(), clock=FakeClock())


class TestNormalizeUrl:
    @pytest.mark.parametrize("raw,expected", [
        ("https://Example.com/", "https://example.com/"),
        ("HTTPS://EXAMPLE.COM", "https://example.com/"),
        ("https://example.com:443/about/", "https://example.com/about"),
        ("http://example.com:8080/a#section", "http://example.com:8080/a"),
        ("example.com/contact", "https://example.com/contact"),
        ("https://example.com/search?q=1", "https://example.com/search?q=1"),
    ])
    def test_normalizes(self, raw, expected):
        assert normalize_url(raw) == expected

    @pytest.mark.parametrize("raw", ["", "   ", None, 42, "https://"])
    def test_unusable_input(self, raw):
        assert normalize_url(raw) == ""


class TestDataPoints:
    def test_counts_fields(self):
        pages = [
            {
                "url": "https://a.com",
                "title": "A",
                "description": "",
                "textContent": "body",
                "links": ["x", "y"],
                "images": ["i"],
                "contactInfo": {"email": "a@a.com", "phone": "1"},
            },
            {"url": "https://a.com/b", "technologies": ["react"]},
            "not a page",
        ]
        # title + textContent + 2 links + 1 image + 2 contact keys + 1 technology
        assert calculate_data_points_from_pages(pages) == 8

    def test_empty(self):
        assert calculate_data_points_from_pages([]) == 0


class TestAggregateData:
    def test_first_cycle_from_nothing(self, aggregator):
        result = ScrapeResult(
            pages=[{"url": "https://example.com/", "title": "Home"}],
            extracted_data={"company": {"name": "Acme"}},
        )
        merged = aggregator.aggregate_data(None, result, "phase_1")

        page = merged.pages["https://example.com/"]
        assert page["phase"] == "phase_1"
        assert page["phases"] == ["phase_1"]
        assert page["title"] == "Home"
        assert merged.layer(DataLayer.STATIC_CONTENT)["company"]["name"] == "Acme"
        assert merged.stats.total_pages == 1
        assert merged.stats.phase_counts == {"phase_1": 1}

    def test_same_page_merges_across_phases(self, aggregator):
        first = aggregator.aggregate_data(
            None, [{"url": "https://example.com/about", "title": "About", "links": ["https://example.com/"]}], "phase_1"
        )
        second = aggregator.aggregate_data(
            first,
            [{"url": "https://EXAMPLE.com/about/", "title": "", "images": ["logo.png"]}],
            "phase_2",
        )

        assert list(second.pages) == ["https://example.com/about"]
        page = second.pages["https://example.com/about"]
        assert page["title"] == "About"
        assert page["images"] == ["logo.png"]
        assert page["phases"] == ["phase_1", "phase_2"]
        assert page["phase"] == "phase_1"
        assert second.stats.phase_counts == {"phase_1": 1, "phase_2": 1}

    def test_first_seen_timestamp_kept(self, aggregator):
        first = aggregator.aggregate_data(None, [{"url": "https://a.com", "timestamp": "2026-01-01T00:00:00+00:00"}], "p1")
        second = aggregator.aggregate_data(first, [{"url": "https://a.com", "timestamp": "2026-02-01T00:00:00+00:00"}], "p2")
        assert second.pages["https://a.com/"]["timestamp"] == "2026-01-01T00:00:00+00:00"

    def test_inputs_not_mutated(self, aggregator):
        existing = aggregator.aggregate_data(None, [{"url": "https://a.com", "title": "A"}], "phase_1")
        snapshot = existing.to_dict()
        new_page = {"url": "https://a.com", "description": "D"}
        aggregator.aggregate_data(existing, [new_page], "phase_2")
        assert existing.to_dict() == snapshot
        assert new_page == {"url": "https://a.com", "description": "D"}

    def test_layer_routing(self, aggregator):
        result = {
            "pages": [],
            "extracted_data": {"contact": {"email": "hi@acme.test"}},
            "site_analysis": {"technologies": [{"name": "react", "confidence": "certain"}]},
            "enrichment": {"summary": "An online shop"},
            "discovered_urls": ["https://acme.test/blog", ""],
        }
        merged = aggregator.aggregate_data(None, result, "phase_2", DataLayer.DYNAMIC_CONTENT)

        assert merged.layer(DataLayer.DYNAMIC_CONTENT)["contact"]["email"] == "hi@acme.test"
        assert DataLayer.STATIC_CONTENT not in merged.populated_layers()
        site = merged.layer(DataLayer.SITE_ANALYSIS)
        assert site["discovered_urls"] == ["https://acme.test/blog"]
        assert site["technologies"][0]["name"] == "react"
        assert merged.layer(DataLayer.LLM_ENRICHED)["summary"] == "An online shop"
        assert merged.stats.unique_technologies == 1
        assert merged.stats.total_links == 1

    def test_pages_without_urls_are_skipped(self, aggregator):
        merged = aggregator.aggregate_data(None, [{"title": "orphan"}, 7, "https://a.com/x"], "phase_1")
        assert list(merged.pages) == ["https://a.com/x"]

    def test_stats_count_unique_links_and_technologies(self, aggregator):
        merged = aggregator.aggregate_data(
            None,
            [
                {"url": "https://a.com/1", "links": ["https://a.com/2", "https://a.com/2/"], "technologies": ["React"]},
                {"url": "https://a.com/2", "discoveredLinks": [{"url": "https://a.com/3"}], "technologies": ["react"]},
            ],
            "phase_1",
        )
        assert merged.stats.total_links == 2
        assert merged.stats.unique_technologies == 1

    def test_extracted_lists_count_as_data_points(self, aggregator):
        merged = aggregator.aggregate_data(
            None,
            {"pages": [{"url": "https://a.com", "title": "A"}], "extracted_data": {"products": ["a", "b", "c"]}},
            "phase_1",
        )
        assert merged.stats.data_points == 4

    def test_duplicate_extracted_values_do_not_shrink_data_points(self, aggregator):
        result = {"pages": [], "extracted_data": {"emails": ["a@x.com", "a@x.com"]}}
        once = aggregator.aggregate_data(None, result, "phase_2", DataLayer.DYNAMIC_CONTENT)
        twice = aggregator.aggregate_data(once, result, "phase_2", DataLayer.DYNAMIC_CONTENT)

        assert once.layer(DataLayer.DYNAMIC_CONTENT)["emails"] == ["a@x.com"]
        assert once.stats.data_points == 1
        assert twice.stats.data_points == 1

    def test_duplicate_page_links_do_not_shrink_data_points(self, aggregator):
        page = {"url": "https://a.com/", "links": ["https://a.com/1", "https://a.com/1"]}
        once = aggregator.aggregate_data(None, [page], "phase_1")
        twice = aggregator.aggregate_data(once, [page], "phase_2")

        assert once.pages["https://a.com/"]["links"] == ["https://a.com/1"]
        assert twice.stats.data_points >= once.stats.data_points

    def test_rejects_unknown_result_type(self, aggregator):
        with pytest.raises(TypeError):
            aggregator.aggregate_data(None, 42, "phase_1")

    def test_records_telemetry(self):
        telemetry = Telemetry()
        DataAggregator(telemetry=telemetry).aggregate_data(None, [{"url": "https://a.com"}], "phase_1")
        assert telemetry.recent(EventKind.BREADCRUMB, "AGGREGATOR")
        assert telemetry.recent(EventKind.TIMING)


page_strategy = st.fixed_dictionaries(
    {"url": st.sampled_from(["https://a.com/", "https://a.com/x", "https://b.com/y", "https://a.com/x/"])},
    optional={
        "title": st.sampled_from(["", "Title", "Other"]),
        "links": st.lists(st.sampled_from(["https://a.com/1", "https://a.com/2"]), max_size=3),
        "images": st.lists(st.sampled_from(["a.png", "b.png"]), max_size=2),
    },
)

emails = st.sampled_from(["a@x.com", "b@x.com"])
result_strategy = st.fixed_dictionaries(
    {"pages": st.lists(page_strategy, max_size=3)},
    optional={
        "extracted_data": st.fixed_dictionaries(
            {},
            optional={
                "emails": st.lists(emails, max_size=4),
                "contact": st.fixed_dictionaries({"phones": st.lists(st.sampled_from(["1", "2"]), max_size=3)}),
            },
        ),
        "discovered_urls": st.lists(st.sampled_from(["https://a.com/1", "https://a.com/1/"]), max_size=3),
    },
)


class TestAggregationProperties:
    @settings(max_examples=60)
    @given(st.lists(st.lists(page_strategy, max_size=5), min_size=1, max_size=4))
    def test_pages_and_links_never_decrease(self, batches):
        aggregator = DataAggregator(telemetry=NullTelemetry(), clock=FakeClock())
        merged = MergedData.empty()
        for i, batch in enumerate(batches):
            previous = merged
            merged = aggregator.aggregate_data(previous, batch, f"phase_{i + 1}")

            assert merged.stats.total_pages >= previous.stats.total_pages
            assert merged.stats.total_links >= previous.stats.total_links
            assert merged.stats.data_points >= previous.stats.data_points
            for url, page in previous.pages.items():
                assert url in merged.pages
                for key, value in page.items():
                    if value:
                        assert merged.pages[url].get(key)

    @settings(max_examples=60)
    @given(st.lists(result_strategy, min_size=1, max_size=4))
    def test_data_points_never_decrease_with_duplicate_values(self, results):
        aggregator = DataAggregator(telemetry=NullTelemetry(), clock=FakeClock())
        merged = MergedData.empty()
        for i, result in enumerate(results):
            previous = merged
            merged = aggregator.aggregate_data(previous, result, f"phase_{i + 1}", DataLayer.DYNAMIC_CONTENT)
            assert merged.stats.data_points >= previous.stats.data_points
            assert merged.stats.total_links >= previous.stats.total_links

    @settings(max_examples=40)
    @given(st.lists(page_strategy, max_size=6))
    def test_reaggregating_same_batch_keeps_page_count(self, batch):
        aggregator = DataAggregator(telemetry=NullTelemetry(), clock=FakeClock())
        once = aggregator.aggregate_data(None, batch, "phase_1")
        twice = aggregator.aggregate_data(once, batch, "phase_1")
        assert twice.stats.total_pages == once.stats.total_pages
        assert set(twice.pages) == set(once.pages)
