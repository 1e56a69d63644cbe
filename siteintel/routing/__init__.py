"""Scraper routing for progressive intelligence gathering.

This package decides which scraper to run next for a session, based on the
detected technology stack, the current quality score and which scrapers have
already run.

Usage:
    from siteintel.routing import SmartRouter

    router = SmartRouter()
    decision = router.get_recommendation(domain, quality, history, merged_data)
    # → dynamic (react detected, contact fields missing)
"""

from siteintel.routing.smart_router import FALLBACK_ORDER, SmartRouter
from siteintel.routing.technology import TechnologyDetector, TechnologySignature

__all__ = ["SmartRouter", "FALLBACK_ORDER", "TechnologyDetector", "TechnologySignature"]
