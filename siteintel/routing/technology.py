"""Technology stack detection from gathered site data.

Detection is data-driven: an ordered table of signatures, each a name, a
category and a list of regex patterns. A technology's confidence tier comes
from the fraction of its patterns that match, so rules can be extended by
editing the table alone.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Pattern, Sequence, Tuple

from siteintel.core.merged_data import MergedData
from siteintel.core.types import DataLayer, ScraperType, TechConfidence, Technology

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TechnologySignature:
    """Regex fingerprint of one technology."""

    name: str
    category: str
    patterns: Tuple[Pattern[str], ...]


def _signature(name: str, category: str, *patterns: str, flags: Sequence[int] = ()) -> TechnologySignature:
    compiled = []
    for i, pattern in enumerate(patterns):
        flag = flags[i] if i < len(flags) else 0
        compiled.append(re.compile(pattern, flag))
    return TechnologySignature(name=name, category=category, patterns=tuple(compiled))


_I = re.IGNORECASE

# Ordered: earlier entries win ties when results are listed
DEFAULT_SIGNATURES: Tuple[TechnologySignature, ...] = (
    _signature("react", "frontend", r"react", r"_react", r"react-dom", r"ReactDOM\.render", r"__REACT_DEVTOOLS",
               flags=(_I, _I, _I, 0, 0)),
    _signature("angular", "frontend", r"angular", r"ng-app", r"ng-controller", r"angular\.module",
               flags=(_I, 0, 0, 0)),
    _signature("vue", "frontend", r"vue", r"v-if", r"v-for", r"v-model", r"Vue\.createApp",
               flags=(_I, 0, 0, 0, 0)),
    _signature("nextjs", "frontend", r"_next", r"__NEXT_DATA__", r"next\.js", r"next-head",
               flags=(_I, 0, _I, 0)),
    _signature("wordpress", "cms", r"wp-content", r"wp-includes", r"wordpress", r"wp-json",
               flags=(_I, _I, _I, 0)),
    _signature("shopify", "ecommerce", r"shopify", r"myshopify\.com", r"cdn\.shopify",
               flags=(_I, 0, 0)),
    _signature("static", "frontend", r"\.html$", r"<!DOCTYPE html>", flags=(_I | re.MULTILINE, _I)),
)


def confidence_from_ratio(matches: int, total: int) -> TechConfidence:
    """Map the fraction of matched patterns to a confidence tier."""
    if total <= 0:
        return TechConfidence.UNCERTAIN
    ratio = matches / total
    if ratio >= 0.75:
        return TechConfidence.CERTAIN
    if ratio >= 0.5:
        return TechConfidence.PROBABLE
    if ratio >= 0.25:
        return TechConfidence.POSSIBLE
    return TechConfidence.UNCERTAIN


def dedupe_technologies(technologies: Sequence[Technology]) -> List[Technology]:
    """Keep one entry per name (case-insensitive), highest confidence wins."""
    unique: Dict[str, Technology] = {}
    for tech in technologies:
        key = tech.name.lower()
        known = unique.get(key)
        if known is None or tech.confidence.rank > known.confidence.rank:
            unique[key] = tech
    return list(unique.values())


def _flatten_text(value: Any) -> List[str]:
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)):
        parts: List[str] = []
        for item in value:
            parts.extend(_flatten_text(item))
        return parts
    if isinstance(value, dict):
        parts = []
        for item in value.values():
            parts.extend(_flatten_text(item))
        return parts
    return []


class TechnologyDetector:
    """Infer a site's technology stack from merged data."""

    # Static-layer fields scanned for signatures
    CONTENT_PATHS: Tuple[Tuple[str, ...], ...] = (
        ("content", "paragraphs"),
        ("scripts",),
        ("html",),
    )

    def __init__(self, signatures: Optional[Sequence[TechnologySignature]] = None):
        self.signatures = tuple(signatures) if signatures is not None else DEFAULT_SIGNATURES

    def detect(self, merged_data: Optional[MergedData]) -> List[Technology]:
        """Detect technologies.

        Uses the site-analysis technology list when it is non-empty, and
        falls back to signature matching against static-layer text.
        """
        if merged_data is None:
            return []

        site = merged_data.layer(DataLayer.SITE_ANALYSIS)
        reported = site.get("technologies") or []
        if reported:
            found = [Technology.from_dict(t) for t in reported]
            found = [t for t in found if t.name]
        else:
            found = self.detect_from_content(self._static_text(merged_data))

        unique = dedupe_technologies(found)
        logger.debug(
            "Technologies detected: %s",
            ", ".join(f"{t.name} ({t.confidence.value})" for t in unique) or "none",
        )
        return unique

    def detect_from_content(self, content: str) -> List[Technology]:
        """Match every signature against ``content``."""
        if not content:
            return []

        detected = []
        for signature in self.signatures:
            matches = sum(1 for pattern in signature.patterns if pattern.search(content))
            if matches == 0:
                continue
            detected.append(
                Technology(
                    name=signature.name,
                    confidence=confidence_from_ratio(matches, len(signature.patterns)),
                    detected_by=[ScraperType.STATIC],
                    category=signature.category,
                )
            )
        return detected

    def _static_text(self, merged_data: MergedData) -> str:
        static = merged_data.layer(DataLayer.STATIC_CONTENT)
        parts: List[str] = []
        for path in self.CONTENT_PATHS:
            value: Any = static
            for key in path:
                value = value.get(key) if isinstance(value, dict) else None
            parts.extend(_flatten_text(value))
        return " ".join(parts)
