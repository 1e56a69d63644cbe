"""Merge scrape output into a session's layered data.

Pages are de-duplicated by normalised URL and merged field by field, so the
same page seen in several phases counts once and keeps what every phase
learned about it. Extracted data lands in the layer of the scraper that
produced it; site analysis and enrichment payloads feed their own layers.
"""

import logging
import time
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional
from urllib.parse import urlsplit, urlunsplit

from siteintel.core.merged_data import (
    AggregateStats,
    MergedData,
    deep_merge,
    merge_lists,
)
from siteintel.core.types import DataLayer
from siteintel.observability.telemetry import Telemetry

logger = logging.getLogger(__name__)

_DEFAULT_PORTS = {"http": 80, "https": 443}

# Page fields counted as one data point each when present
_SCALAR_POINT_FIELDS = ("title", "description", "textContent")
# Page list fields counted by length
_LIST_POINT_FIELDS = ("technologies", "links", "discoveredLinks", "apiEndpoints", "forms", "images")
# Page mapping fields counted by number of keys
_MAPPING_POINT_FIELDS = ("contactInfo", "socialLinks", "structuredData")

# Layers whose top-level lists contribute to data points
_EXTRACTED_LAYERS = (DataLayer.STATIC_CONTENT, DataLayer.DYNAMIC_CONTENT, DataLayer.AI_EXTRACTED)


def _utc_now() -> datetime:
    """Return current UTC time (timezone-aware)."""
    return datetime.now(timezone.utc)


def normalize_url(url: Any) -> str:
    """Normalise a URL for de-duplication.

    Lowercases scheme and host, drops default ports and fragments, and strips
    a trailing slash from non-root paths. Returns "" for unusable input.
    """
    if not isinstance(url, str):
        return ""
    url = url.strip()
    if not url:
        return ""
    if "://" not in url:
        url = f"https://{url}"

    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError:
        return ""

    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    if not host:
        return ""
    netloc = host
    if port and _DEFAULT_PORTS.get(scheme) != port:
        netloc = f"{host}:{port}"

    path = parts.path or "/"
    if len(path) > 1 and path.endswith("/"):
        path = path.rstrip("/") or "/"

    return urlunsplit((scheme, netloc, path, parts.query, ""))


def _link_url(link: Any) -> str:
    if isinstance(link, Mapping):
        link = link.get("url") or link.get("link")
    return normalize_url(link)


def _tech_name(tech: Any) -> str:
    if isinstance(tech, Mapping):
        tech = tech.get("name")
    return str(tech).strip().lower() if tech else ""


def calculate_data_points_from_pages(pages: Iterable[Mapping[str, Any]]) -> int:
    """Count data points across pages.

    Each present title, description and text body counts one; list fields
    count their length; contact, social and structured-data mappings count
    their keys.
    """
    count = 0
    for page in pages:
        if not isinstance(page, Mapping):
            continue
        for name in _SCALAR_POINT_FIELDS:
            if page.get(name):
                count += 1
        for name in _LIST_POINT_FIELDS:
            value = page.get(name)
            if isinstance(value, list):
                count += len(value)
        for name in _MAPPING_POINT_FIELDS:
            value = page.get(name)
            if isinstance(value, Mapping):
                count += len(value)
    return count


def _coerce_result(new_result: Any) -> Dict[str, Any]:
    """Accept a ScrapeResult, a dict with the same keys, or a bare page list."""
    if new_result is None:
        return {}
    if isinstance(new_result, list):
        return {"pages": new_result}
    if hasattr(new_result, "to_dict"):
        return new_result.to_dict()
    if isinstance(new_result, Mapping):
        return dict(new_result)
    raise TypeError(f"Cannot aggregate result of type {type(new_result).__name__}")


class DataAggregator:
    """Pure merge of scrape results into MergedData.

    ``aggregate_data`` never mutates its inputs and returns a new MergedData.
    The only ambient input is the clock used to stamp first-seen pages.
    """

    def __init__(
        self,
        telemetry: Optional[Telemetry] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.telemetry = telemetry or Telemetry()
        self._clock = clock or _utc_now

    def aggregate_data(
        self,
        existing: Optional[MergedData],
        new_result: Any,
        phase_label: str,
        layer: Optional[DataLayer] = None,
    ) -> MergedData:
        """Merge ``new_result`` into ``existing`` for the given phase.

        Args:
            existing: Current merged data, or None for a first cycle
            new_result: ScrapeResult, equivalent dict, or list of pages
            phase_label: Phase tag recorded on every page (e.g. "phase_1")
            layer: Layer receiving ``extracted_data`` (default static content)

        Returns:
            New MergedData with recomputed stats
        """
        started = time.perf_counter()
        merged = existing or MergedData.empty()
        payload = _coerce_result(new_result)
        layer = layer or DataLayer.STATIC_CONTENT

        self.telemetry.breadcrumb(
            "AGGREGATOR",
            "Starting data aggregation",
            {"phase": phase_label, "has_existing": existing is not None, "keys": sorted(payload)},
        )

        pages = self._merge_pages(merged.pages, payload.get("pages") or [], phase_label)

        site_analysis = dict(payload.get("site_analysis") or {})
        discovered = [u for u in (payload.get("discovered_urls") or []) if normalize_url(u)]
        if discovered:
            site_analysis["discovered_urls"] = discovered

        merged = replace(merged, pages=pages)
        merged = merged.merge_layer(DataLayer.SITE_ANALYSIS, site_analysis)
        merged = merged.merge_layer(layer, payload.get("extracted_data") or {})
        merged = merged.merge_layer(DataLayer.LLM_ENRICHED, payload.get("enrichment") or {})

        merged = replace(merged, stats=self._compute_stats(merged), updated_at=self._clock())

        duration_ms = (time.perf_counter() - started) * 1000
        self.telemetry.timing(
            "aggregation_complete",
            duration_ms,
            {"phase": phase_label, "total_pages": merged.stats.total_pages, "data_points": merged.stats.data_points},
        )
        logger.debug(
            "Aggregated %s: %d pages, %d data points",
            phase_label,
            merged.stats.total_pages,
            merged.stats.data_points,
        )
        return merged

    def calculate_data_points_from_pages(self, pages: Iterable[Mapping[str, Any]]) -> int:
        """See module-level ``calculate_data_points_from_pages``."""
        return calculate_data_points_from_pages(pages)

    def _merge_pages(
        self,
        existing: Mapping[str, Mapping[str, Any]],
        new_pages: List[Any],
        phase_label: str,
    ) -> Dict[str, Dict[str, Any]]:
        pages: Dict[str, Dict[str, Any]] = {url: dict(page) for url, page in existing.items()}
        skipped = 0

        for page in new_pages:
            if isinstance(page, str):
                page = {"url": page}
            if not isinstance(page, Mapping):
                skipped += 1
                continue
            url = normalize_url(page.get("url") or page.get("link"))
            if not url:
                skipped += 1
                continue

            known = pages.get(url)
            if known is None:
                record = deep_merge({}, page)
                record["url"] = url
                record["phase"] = phase_label
                record["phases"] = [phase_label]
                record["timestamp"] = page.get("timestamp") or self._clock().isoformat()
                pages[url] = record
            else:
                record = deep_merge(known, {k: v for k, v in page.items() if k not in ("url", "phase", "phases")})
                record["url"] = url
                record["phases"] = merge_lists(known.get("phases") or [], [phase_label])
                record["timestamp"] = known.get("timestamp") or page.get("timestamp") or self._clock().isoformat()
                pages[url] = record

        if skipped:
            logger.debug("Skipped %d pages without a usable URL in %s", skipped, phase_label)
        return pages

    def _compute_stats(self, merged: MergedData) -> AggregateStats:
        links = set()
        technologies = set()
        phase_counts: Dict[str, int] = {}

        for page in merged.pages.values():
            for field_name in ("links", "discoveredLinks"):
                for link in page.get(field_name) or []:
                    normalized = _link_url(link)
                    if normalized:
                        links.add(normalized)
            for tech in page.get("technologies") or []:
                name = _tech_name(tech)
                if name:
                    technologies.add(name)
            for phase in page.get("phases") or [page.get("phase")]:
                if phase:
                    phase_counts[phase] = phase_counts.get(phase, 0) + 1

        site = merged.layer(DataLayer.SITE_ANALYSIS)
        for link in site.get("discovered_urls") or []:
            normalized = _link_url(link)
            if normalized:
                links.add(normalized)
        for tech in site.get("technologies") or []:
            name = _tech_name(tech)
            if name:
                technologies.add(name)

        data_points = calculate_data_points_from_pages(merged.pages.values())
        for layer in _EXTRACTED_LAYERS:
            for value in merged.layer(layer).values():
                if isinstance(value, list):
                    data_points += len(value)

        return AggregateStats(
            total_pages=len(merged.pages),
            total_links=len(links),
            unique_technologies=len(technologies),
            phase_counts=phase_counts,
            data_points=data_points,
        )
