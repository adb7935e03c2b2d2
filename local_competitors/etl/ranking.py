"""Great-circle distance and the final competitor ordering."""

import math
from typing import Iterable, List, Optional, Tuple

from local_competitors.core.models import Candidate

EARTH_RADIUS_METERS = 6_371_000


def haversine_meters(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lng2 - lng1)
    a = math.sin(delta_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


def distance_meters(
    origin_lat: Optional[float],
    origin_lng: Optional[float],
    lat: Optional[float],
    lng: Optional[float],
) -> Optional[int]:
    if None in (origin_lat, origin_lng, lat, lng):
        return None
    return int(round(haversine_meters(origin_lat, origin_lng, lat, lng)))


def assign_distances(candidates: Iterable[Candidate], origin_lat: float, origin_lng: float) -> None:
    for candidate in candidates:
        candidate.distance_meters = distance_meters(origin_lat, origin_lng, candidate.latitude, candidate.longitude)


def rank_key(candidate: Candidate) -> Tuple[float, int, float, str]:
    """Distance ascending (unknown last), then reviews and rating descending."""
    distance = math.inf if candidate.distance_meters is None else candidate.distance_meters
    return (distance, -(candidate.review_count or 0), -(candidate.rating or 0.0), candidate.place_id)


def rank(candidates: Iterable[Candidate]) -> List[Candidate]:
    return sorted(candidates, key=rank_key)
