"""Rejection rules applied to raw nearby-search records."""

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple
from urllib.parse import urlparse

from local_competitors.core.models import Candidate, Removal, Target
from local_competitors.etl.categories import expanded_types, matches_family
from local_competitors.etl.transform import to_candidate

logger = logging.getLogger(__name__)

REASON_MISSING_PLACE_ID = "missing-place-id"
REASON_SELF_MATCH = "self-match"
REASON_MISSING_NAME = "missing-name"
REASON_MISSING_ADDRESS = "missing-address"
REASON_MISSING_LOCATION = "missing-location"
REASON_FAMILY_MISMATCH = "category-family-mismatch"
REASON_BROAD_TYPE = "broad-type-excluded"

# Venues that contain many businesses; they only compete with each other.
BROAD_CONTAINER_TYPES = frozenset(
    {
        "shopping_mall",
        "department_store",
        "supermarket",
        "school",
        "university",
        "airport",
        "train_station",
        "bus_station",
        "city_hall",
        "tourist_attraction",
        "park",
        "amusement_park",
        "stadium",
        "zoo",
        "aquarium",
    }
)


def normalize_host(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    parsed = urlparse(url if "://" in url else f"https://{url}")
    host = (parsed.hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    return host or None


def is_duplicate_listing(candidate: Candidate, target: Target) -> bool:
    """A second listing of the target itself, recognized by a shared website host."""
    target_host = normalize_host(target.website)
    return target_host is not None and normalize_host(candidate.website) == target_host


class CandidateFilter:
    """Decides which raw records are meaningful competitors of the target."""

    def __init__(self, target_place_id: Optional[str], target_primary_type: Optional[str]) -> None:
        self.target_place_id = target_place_id
        self.target_primary_type = target_primary_type
        self.allowed_types = expanded_types(target_primary_type)
        self.target_is_broad = target_primary_type in BROAD_CONTAINER_TYPES

    def rejection_reason(self, candidate: Candidate) -> Optional[str]:
        if not candidate.place_id:
            return REASON_MISSING_PLACE_ID
        if self.target_place_id and candidate.place_id == self.target_place_id:
            return REASON_SELF_MATCH
        if not candidate.name:
            return REASON_MISSING_NAME
        if not candidate.address:
            return REASON_MISSING_ADDRESS
        if candidate.latitude is None or candidate.longitude is None:
            return REASON_MISSING_LOCATION
        primary_type = candidate.primary_type
        if self.target_primary_type and primary_type and primary_type not in self.allowed_types:
            return REASON_FAMILY_MISMATCH
        if primary_type in BROAD_CONTAINER_TYPES and not self.target_is_broad:
            return REASON_BROAD_TYPE
        return None

    def matches_family(self, types: Iterable[str]) -> bool:
        """Looser check used for pre-supplied competitors: any type in the target's group."""
        return matches_family(list(types), self.target_primary_type)

    def apply(self, records: Iterable[Dict[str, Any]]) -> Tuple[List[Candidate], List[Removal]]:
        accepted: List[Candidate] = []
        removals: List[Removal] = []
        for record in records:
            candidate = to_candidate(record)
            reason = self.rejection_reason(candidate)
            if reason is None:
                accepted.append(candidate)
                continue
            logger.debug("Rejected %s (%s): %s", candidate.name or "?", candidate.place_id or "?", reason)
            removals.append(
                Removal(
                    place_id=candidate.place_id or "unknown",
                    name=candidate.name or "Unknown",
                    reason=reason,
                    primary_type=candidate.primary_type,
                    types=candidate.types,
                )
            )
        return accepted, removals
