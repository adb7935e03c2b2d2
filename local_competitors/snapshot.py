"""Competitor snapshot entry point used by report assembly."""

import logging
import threading
from typing import Optional, Sequence

from local_competitors.core.budget import BudgetGuard, get_budget_guard
from local_competitors.core.config import Settings, get_settings
from local_competitors.core.models import SEARCH_METHOD_NONE, CompetitorSnapshot, SuppliedCompetitor, Target
from local_competitors.search.radius import RadiusExpansionSearcher
from local_competitors.vendors.google_places import GooglePlacesClient

logger = logging.getLogger(__name__)

MISSING_API_KEY_ERROR = "Google Places API not configured (missing GOOGLE_PLACES_API_KEY)"


def build_provider(settings: Settings) -> GooglePlacesClient:
    return GooglePlacesClient(
        settings.google_api_key,
        timeout=settings.request_timeout,
        retry_limit=settings.retry_limit,
    )


def get_competitor_snapshot(
    target: Target,
    *,
    supplied: Optional[Sequence[SuppliedCompetitor]] = None,
    keyword: Optional[str] = None,
    provider=None,
    guard: Optional[BudgetGuard] = None,
    settings: Optional[Settings] = None,
    deadline_seconds: Optional[float] = None,
    cancel_event: Optional[threading.Event] = None,
    **searcher_options,
) -> CompetitorSnapshot:
    """Find, rank and enrich the target's competitors.

    A non-empty ``supplied`` list is enriched directly; otherwise the full radius
    discovery runs. Missing configuration or target identity is reported through
    ``CompetitorSnapshot.error`` rather than raised.
    """
    settings = settings or get_settings()

    if provider is None:
        if not settings.google_api_key:
            logger.warning("Competitor snapshot skipped for %s: no API key", target.place_id)
            return CompetitorSnapshot(
                search_method=SEARCH_METHOD_NONE,
                location_used=target.location_label,
                your_place_id=target.place_id,
                error=MISSING_API_KEY_ERROR,
            )
        provider = build_provider(settings)

    searcher = RadiusExpansionSearcher.from_settings(
        provider,
        guard if guard is not None else get_budget_guard(),
        settings,
        **searcher_options,
    )
    if supplied:
        return searcher.enrich_supplied(target, supplied, deadline_seconds=deadline_seconds, cancel_event=cancel_event)
    return searcher.discover(target, keyword=keyword, deadline_seconds=deadline_seconds, cancel_event=cancel_event)
