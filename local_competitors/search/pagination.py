"""Nearby-search pagination over continuation tokens."""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import requests

from local_competitors.core.budget import InvocationBudget
from local_competitors.vendors.google_places import GooglePlacesError

logger = logging.getLogger(__name__)

# A next_page_token is rejected as INVALID_REQUEST until roughly two seconds after it was issued.
DEFAULT_PAGE_DELAY_SECONDS = 2.0
DEFAULT_MAX_PAGES = 3


@dataclass(frozen=True)
class NearbyRequest:
    lat: float
    lng: float
    radius: int
    place_type: Optional[str] = None
    keyword: Optional[str] = None

    def describe(self) -> str:
        if self.place_type:
            return f"type={self.place_type}"
        if self.keyword:
            return f"keyword={self.keyword!r}"
        return "unfiltered"


class PaginatedFetcher:
    """Walks nearby-search pages, spending one budget unit per page.

    Any provider failure ends the walk and keeps the pages already collected.
    """

    def __init__(
        self,
        provider,
        budget: InvocationBudget,
        *,
        page_delay: float = DEFAULT_PAGE_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.provider = provider
        self.budget = budget
        self.page_delay = page_delay
        self._sleep = sleep

    def fetch_all_pages(self, request: NearbyRequest, max_pages: int = DEFAULT_MAX_PAGES) -> List[Dict[str, Any]]:
        records: List[Dict[str, Any]] = []
        token: Optional[str] = None
        pages = 0

        while pages < max_pages:
            if token is not None:
                self._sleep(self.page_delay)
            # Checked after the delay so a deadline or cancel during the wait stops the walk.
            if not self.budget.acquire():
                logger.info("Stopping %s pagination at page %d: %s", request.describe(), pages + 1, self.budget.denial_reason)
                break
            try:
                if token is None:
                    page = self.provider.nearby_search(
                        request.lat,
                        request.lng,
                        request.radius,
                        place_type=request.place_type,
                        keyword=request.keyword,
                    )
                else:
                    page = self.provider.next_page(token)
            except (GooglePlacesError, requests.RequestException) as exc:
                logger.warning("Nearby search %s radius=%sm page %d failed: %s", request.describe(), request.radius, pages + 1, exc)
                break

            pages += 1
            records.extend(page.results)
            token = page.next_page_token
            if not token:
                break

        logger.info("Nearby search %s radius=%sm: %d records over %d pages", request.describe(), request.radius, len(records), pages)
        return records
