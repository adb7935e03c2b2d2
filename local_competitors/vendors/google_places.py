"""Client utilities for the Google Places API."""

import logging
import random
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)
_SESSION = requests.Session()
_BASE_URL = "https://maps.googleapis.com/maps/api/place"

# Only the fields the competitor pipeline reads; anything else is billed for nothing.
DETAILS_FIELDS = (
    "place_id",
    "name",
    "rating",
    "user_ratings_total",
    "website",
    "formatted_phone_number",
    "types",
    "geometry",
)
TEXT_SEARCH_BIAS_RADIUS = 5000
RETRY_DELAY_SECONDS = 0.5
RETRYABLE_STATUSES = frozenset({408, 429, 500, 502, 503, 504})
_SUCCESS_STATUSES = {"OK", "ZERO_RESULTS"}


class GooglePlacesError(RuntimeError):
    """Raised when the Places API returns a non-successful response."""


@dataclass
class PlacesPage:
    results: List[Dict[str, Any]] = field(default_factory=list)
    next_page_token: Optional[str] = None


class GooglePlacesClient:
    """Places provider backed by the legacy Places web service.

    Network failures and transient HTTP statuses are retried
    ``retry_limit`` times. Other HTTP errors, malformed bodies and non-OK API
    statuses are raised as ``GooglePlacesError``.
    """

    def __init__(
        self,
        api_key: str,
        *,
        timeout: float = 10.0,
        retry_limit: int = 2,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if not api_key:
            raise ValueError("A Google Places API key is required")
        self.api_key = api_key
        self.timeout = timeout
        self.retry_limit = retry_limit
        self._session = session if session is not None else _SESSION
        self._sleep = sleep

    def _get(self, endpoint: str, params: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{_BASE_URL}/{endpoint}/json"
        params = {**params, "key": self.api_key}

        attempt = 0
        while True:
            attempt += 1
            try:
                response = self._session.get(url, params=params, timeout=self.timeout)
            except (requests.ConnectionError, requests.Timeout) as exc:
                logger.warning("%s request failed (attempt %s/%s): %s", endpoint, attempt, self.retry_limit + 1, exc)
                if attempt > self.retry_limit:
                    logger.error("%s request exhausted retries", endpoint)
                    raise
                self._sleep(RETRY_DELAY_SECONDS + random.uniform(0, 0.4))
                continue

            if response.status_code < 400:
                break
            # Release the connection back to the pool before retrying or giving up.
            response.close()
            if response.status_code in RETRYABLE_STATUSES and attempt <= self.retry_limit:
                logger.warning(
                    "%s returned HTTP %s (attempt %s/%s)", endpoint, response.status_code, attempt, self.retry_limit + 1
                )
                self._sleep(RETRY_DELAY_SECONDS + random.uniform(0, 0.4))
                continue
            raise GooglePlacesError(f"{endpoint} returned HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise GooglePlacesError(f"{endpoint} returned a malformed body") from exc

        status = payload.get("status")
        if status not in _SUCCESS_STATUSES:
            logger.error("%s failed: status=%s, error_message=%s", endpoint, status, payload.get("error_message"))
            raise GooglePlacesError(payload.get("error_message") or status or "unknown status")
        return payload

    @staticmethod
    def _to_page(payload: Dict[str, Any]) -> PlacesPage:
        results = payload.get("results")
        return PlacesPage(
            results=results if isinstance(results, list) else [],
            next_page_token=payload.get("next_page_token") or None,
        )

    def nearby_search(
        self,
        lat: float,
        lng: float,
        radius: int,
        place_type: Optional[str] = None,
        keyword: Optional[str] = None,
    ) -> PlacesPage:
        params: Dict[str, Any] = {"location": f"{lat},{lng}", "radius": int(radius)}
        if place_type:
            params["type"] = place_type
        if keyword:
            params["keyword"] = keyword
        logger.debug("Nearby search: type=%s keyword=%s radius=%sm", place_type, keyword, radius)
        return self._to_page(self._get("nearbysearch", params))

    def next_page(self, token: str) -> PlacesPage:
        return self._to_page(self._get("nearbysearch", {"pagetoken": token}))

    def text_search(self, query: str, location_bias: Optional[str] = None) -> List[Dict[str, Any]]:
        if not query or not query.strip():
            raise ValueError("Query must be provided for text search.")
        params: Dict[str, Any] = {"query": query.strip()}
        if location_bias:
            params["location"] = location_bias
            params["radius"] = TEXT_SEARCH_BIAS_RADIUS
        return self._to_page(self._get("textsearch", params)).results

    def place_details(self, place_id: str, fields=DETAILS_FIELDS) -> Dict[str, Any]:
        params = {"place_id": place_id, "fields": ",".join(fields)}
        payload = self._get("details", params)
        result = payload.get("result")
        if not result:
            raise GooglePlacesError(f"No details returned for {place_id}")
        return result
