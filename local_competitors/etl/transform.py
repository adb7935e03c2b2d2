"""Utilities for transforming Google Places responses into candidates."""

import logging
from typing import Any, Dict, Iterable, Optional, Tuple

from local_competitors.core.models import Candidate, SuppliedCompetitor, Target

logger = logging.getLogger(__name__)

# Administrative and catch-all tags that say nothing about the line of business.
GENERIC_TYPES = frozenset(
    {
        "point_of_interest",
        "establishment",
        "premise",
        "route",
        "street_address",
        "plus_code",
        "political",
        "locality",
        "administrative_area_level_1",
        "administrative_area_level_2",
        "country",
    }
)


def extract_primary_type(types: Optional[Iterable[str]]) -> Optional[str]:
    """First non-generic type; the first type when all are generic; ``None`` when empty."""
    types = list(types or [])
    for type_name in types:
        if type_name not in GENERIC_TYPES:
            return type_name
    return types[0] if types else None


def humanize_type(place_type: str) -> str:
    return place_type.replace("_", " ")


def _safe_float(value: Any) -> Optional[float]:
    try:
        if value is None:
            return None
        return float(value)
    except (TypeError, ValueError):
        return None


def _safe_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def parse_location(result: Dict[str, Any]) -> Tuple[Optional[float], Optional[float]]:
    location = (result.get("geometry") or {}).get("location") or {}
    return _safe_float(location.get("lat")), _safe_float(location.get("lng"))


def parse_address(result: Dict[str, Any]) -> Optional[str]:
    address = result.get("vicinity") or result.get("formatted_address")
    if address is None:
        return None
    return str(address).strip() or None


def to_candidate(result: Dict[str, Any]) -> Candidate:
    lat, lng = parse_location(result)
    types = list(result.get("types") or [])
    return Candidate(
        place_id=str(result.get("place_id") or ""),
        name=str(result.get("name") or "").strip(),
        types=types,
        latitude=lat,
        longitude=lng,
        rating=_safe_float(result.get("rating")),
        review_count=_safe_int(result.get("user_ratings_total")),
        address=parse_address(result),
        primary_type=extract_primary_type(types),
    )


def supplied_to_candidate(supplied: SuppliedCompetitor) -> Candidate:
    return Candidate(
        place_id=supplied.place_id,
        name=supplied.name,
        latitude=_safe_float(supplied.latitude),
        longitude=_safe_float(supplied.longitude),
        rating=_safe_float(supplied.rating),
        review_count=_safe_int(supplied.review_count),
        address=supplied.address,
    )


def merge_details(candidate: Candidate, details: Dict[str, Any]) -> None:
    """Overlay a details record onto ``candidate``, keeping earlier values the details lack."""
    candidate.name = str(details.get("name") or candidate.name)
    rating = _safe_float(details.get("rating"))
    if rating:
        candidate.rating = rating
    review_count = _safe_int(details.get("user_ratings_total"))
    if review_count:
        candidate.review_count = review_count
    candidate.website = details.get("website") or None
    candidate.phone = details.get("formatted_phone_number") or None
    candidate.address = parse_address(details) or candidate.address
    if details.get("types"):
        candidate.types = list(details["types"])
    lat, lng = parse_location(details)
    if lat is not None and lng is not None:
        candidate.latitude, candidate.longitude = lat, lng
    candidate.enriched = True


def target_from_result(result: Dict[str, Any], category_label: Optional[str] = None) -> Target:
    """Build a target from a text-search or details record."""
    lat, lng = parse_location(result)
    return Target(
        place_id=result.get("place_id"),
        name=result.get("name"),
        latitude=lat,
        longitude=lng,
        category_label=category_label,
        provider_types=list(result.get("types") or []),
        rating=_safe_float(result.get("rating")),
        review_count=_safe_int(result.get("user_ratings_total")),
        website=result.get("website"),
        location_label=parse_address(result),
    )
