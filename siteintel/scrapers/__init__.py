"""Scraper layer interface."""

from siteintel.scrapers.base import (
    ProgressCallback,
    ProgressEvent,
    ScrapeOptions,
    ScrapeResult,
    ScraperLayer,
    emit_progress,
)

__all__ = [
    "ProgressCallback",
    "ProgressEvent",
    "ScrapeOptions",
    "ScrapeResult",
    "ScraperLayer",
    "emit_progress",
]
