"""Layered, merge-only session data.

MergedData maps each DataLayer to the fields gathered for it. Updates never
mutate an existing instance: every merge returns a new MergedData, and a
field that has been populated is never erased by a later merge. Empty
strings, empty lists and None never overwrite a value; lists are unioned in
order; nested dicts merge recursively; non-empty scalars refine.
"""

import copy
import json
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional

from siteintel.core.types import DataLayer, Technology


def _utc_now() -> datetime:
    """Return current UTC time (timezone-aware)."""
    return datetime.now(timezone.utc)


def is_populated(value: Any) -> bool:
    """True when a value counts as present (empty strings/lists/dicts do not)."""
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip() != ""
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) > 0
    return True


def get_path(data: Optional[Mapping[str, Any]], path: str) -> Any:
    """Resolve a dotted path (``"contact.email"``) inside nested dicts."""
    current: Any = data
    for part in path.split("."):
        if isinstance(current, Mapping) and part in current:
            current = current[part]
        else:
            return None
    return current


def _item_key(item: Any) -> str:
    if isinstance(item, (dict, list)):
        return json.dumps(item, sort_keys=True, default=str)
    return repr(item)


def merge_lists(existing: List[Any], new: List[Any]) -> List[Any]:
    """Order-preserving union; dict items compare by content."""
    merged: List[Any] = []
    seen = set()
    for item in list(existing) + list(new):
        if not is_populated(item) and not isinstance(item, (int, float, bool)):
            continue
        key = _item_key(item)
        if key in seen:
            continue
        seen.add(key)
        merged.append(copy.deepcopy(item))
    return merged


def deep_merge(existing: Mapping[str, Any], new: Mapping[str, Any]) -> Dict[str, Any]:
    """Merge ``new`` into a copy of ``existing`` without erasing anything."""
    result = {key: copy.deepcopy(value) for key, value in existing.items()}

    for key, value in new.items():
        if not is_populated(value) and not isinstance(value, (int, float, bool)):
            continue

        current = result.get(key)
        if isinstance(current, Mapping):
            if isinstance(value, Mapping):
                result[key] = deep_merge(current, value)
            # scalar or list never replaces a populated mapping
        elif isinstance(current, list):
            extra = value if isinstance(value, list) else [value]
            result[key] = merge_lists(current, extra)
        elif is_populated(current) and isinstance(value, list):
            result[key] = merge_lists([current], value)
        elif is_populated(current) and isinstance(value, Mapping):
            continue
        elif isinstance(value, list):
            # first-seen lists are stored in the same deduplicated form later merges produce
            result[key] = merge_lists([], value)
        elif isinstance(value, Mapping):
            result[key] = deep_merge({}, value)
        else:
            result[key] = copy.deepcopy(value)

    return result


def merge_technologies(existing: List[Any], new: List[Any]) -> List[Dict[str, Any]]:
    """Union technology entries by name, keeping the highest confidence."""
    by_name: Dict[str, Technology] = {}
    order: List[str] = []
    for raw in list(existing) + list(new):
        tech = raw if isinstance(raw, Technology) else Technology.from_dict(raw)
        key = tech.name.lower()
        if not key:
            continue
        known = by_name.get(key)
        if known is None:
            by_name[key] = tech
            order.append(key)
        elif tech.confidence.rank > known.confidence.rank:
            tech.detected_by = list(dict.fromkeys(known.detected_by + tech.detected_by))
            by_name[key] = tech
    return [by_name[key].to_dict() for key in order]


def _page_url(page: Any) -> Optional[str]:
    if isinstance(page, str):
        return page
    if isinstance(page, Mapping):
        url = page.get("url")
        return url if isinstance(url, str) else None
    return None


def merge_site_analysis(existing: Mapping[str, Any], new: Mapping[str, Any]) -> Dict[str, Any]:
    """Merge site analysis; technologies dedupe by name, sitemap pages by URL."""
    rest_new = {k: v for k, v in new.items() if k not in ("technologies", "sitemap_pages")}
    merged = deep_merge(existing, rest_new)

    if "technologies" in existing or "technologies" in new:
        merged["technologies"] = merge_technologies(
            existing.get("technologies") or [], new.get("technologies") or []
        )

    if "sitemap_pages" in existing or "sitemap_pages" in new:
        pages: List[Any] = []
        seen = set()
        for page in list(existing.get("sitemap_pages") or []) + list(new.get("sitemap_pages") or []):
            url = _page_url(page)
            if not url or url in seen:
                continue
            seen.add(url)
            pages.append(copy.deepcopy(page))
        merged["sitemap_pages"] = pages

    return merged


def merge_extracted(existing: Mapping[str, Any], new: Mapping[str, Any]) -> Dict[str, Any]:
    """Merge scraper-extracted business data (static, dynamic, AI layers)."""
    return deep_merge(existing, new)


def merge_enrichment(existing: Mapping[str, Any], new: Mapping[str, Any]) -> Dict[str, Any]:
    """Merge LLM enrichment; insights and key points accumulate."""
    return deep_merge(existing, new)


LAYER_MERGERS: Dict[DataLayer, Callable[[Mapping[str, Any], Mapping[str, Any]], Dict[str, Any]]] = {
    DataLayer.SITE_ANALYSIS: merge_site_analysis,
    DataLayer.STATIC_CONTENT: merge_extracted,
    DataLayer.DYNAMIC_CONTENT: merge_extracted,
    DataLayer.AI_EXTRACTED: merge_extracted,
    DataLayer.LLM_ENRICHED: merge_enrichment,
}


@dataclass(frozen=True)
class AggregateStats:
    """Cumulative counters derived from merged pages."""

    total_pages: int = 0
    total_links: int = 0
    unique_technologies: int = 0
    phase_counts: Mapping[str, int] = field(default_factory=dict)
    data_points: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_pages": self.total_pages,
            "total_links": self.total_links,
            "unique_technologies": self.unique_technologies,
            "phase_counts": dict(self.phase_counts),
            "data_points": self.data_points,
        }

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "AggregateStats":
        data = data or {}
        return cls(
            total_pages=int(data.get("total_pages", 0)),
            total_links=int(data.get("total_links", 0)),
            unique_technologies=int(data.get("unique_technologies", 0)),
            phase_counts=dict(data.get("phase_counts", {}) or {}),
            data_points=int(data.get("data_points", 0)),
        )


@dataclass(frozen=True)
class MergedData:
    """Enum-keyed, read-only view of a session's gathered data.

    Attributes:
        layers: Fields gathered per DataLayer
        pages: Scraped pages keyed by normalised URL
        stats: Counters recomputed on every aggregation
        updated_at: When the data last changed
    """

    layers: Mapping[DataLayer, Mapping[str, Any]] = field(default_factory=dict)
    pages: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)
    stats: AggregateStats = field(default_factory=AggregateStats)
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        object.__setattr__(self, "layers", MappingProxyType(dict(self.layers)))
        object.__setattr__(self, "pages", MappingProxyType(dict(self.pages)))

    @classmethod
    def empty(cls) -> "MergedData":
        return cls()

    def layer(self, layer: DataLayer) -> Mapping[str, Any]:
        """Get a layer's fields (empty mapping when absent)."""
        return self.layers.get(layer) or {}

    def populated_layers(self) -> List[DataLayer]:
        return [layer for layer in DataLayer if is_populated(dict(self.layer(layer)))]

    def is_empty(self) -> bool:
        return not self.populated_layers() and not self.pages

    def merge_layer(self, layer: DataLayer, payload: Optional[Mapping[str, Any]]) -> "MergedData":
        """Return a new MergedData with ``payload`` merged into ``layer``."""
        if not payload:
            return self
        merger = LAYER_MERGERS[layer]
        layers = dict(self.layers)
        layers[layer] = merger(self.layer(layer), payload)
        return replace(self, layers=layers, updated_at=_utc_now())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to plain JSON-serializable dict."""
        return {
            "layers": {layer.value: copy.deepcopy(dict(data)) for layer, data in self.layers.items()},
            "pages": {url: copy.deepcopy(dict(page)) for url, page in self.pages.items()},
            "stats": self.stats.to_dict(),
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> Optional["MergedData"]:
        if not data:
            return None
        layers = {}
        for key, value in (data.get("layers") or {}).items():
            try:
                layers[DataLayer(key)] = dict(value or {})
            except ValueError:
                continue
        updated_at = data.get("updated_at")
        return cls(
            layers=layers,
            pages={url: dict(page) for url, page in (data.get("pages") or {}).items()},
            stats=AggregateStats.from_dict(data.get("stats")),
            updated_at=datetime.fromisoformat(updated_at) if updated_at else None,
        )
