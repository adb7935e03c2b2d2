"""Core data models shared by the competitor discovery pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

SEARCH_METHOD_NONE = "none"
SEARCH_METHOD_DISCOVERY = "discovery"
SEARCH_METHOD_SUPPLIED = "supplied"


@dataclass(slots=True)
class Target:
    """The business whose competitors are being discovered."""

    place_id: Optional[str] = None
    name: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    category_label: Optional[str] = None
    provider_types: List[str] = field(default_factory=list)
    rating: Optional[float] = None
    review_count: int = 0
    website: Optional[str] = None
    location_label: Optional[str] = None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


@dataclass(slots=True)
class Candidate:
    """A prospective competitor.

    Filtering fills ``primary_type``, ranking fills ``distance_meters`` and
    enrichment fills ``website``, ``phone`` and ``comparison_notes``.
    """

    place_id: str
    name: str
    types: List[str] = field(default_factory=list)
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    rating: Optional[float] = None
    review_count: int = 0
    address: Optional[str] = None
    primary_type: Optional[str] = None
    distance_meters: Optional[int] = None
    website: Optional[str] = None
    phone: Optional[str] = None
    comparison_notes: List[str] = field(default_factory=list)
    radius_step: Optional[int] = None
    enriched: bool = False


@dataclass(slots=True)
class SuppliedCompetitor:
    """Competitor found by an upstream discovery pass, handed in for enrichment only."""

    place_id: str
    name: str
    address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    rating: Optional[float] = None
    review_count: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SuppliedCompetitor":
        location = data.get("location") or {}
        return cls(
            place_id=str(data["place_id"]),
            name=str(data.get("name") or ""),
            address=data.get("address"),
            latitude=location.get("lat", data.get("latitude")),
            longitude=location.get("lng", data.get("longitude")),
            rating=data.get("rating"),
            review_count=data.get("user_rating_total", data.get("review_count")),
        )


@dataclass(slots=True)
class Removal:
    place_id: str
    name: str
    reason: str
    primary_type: Optional[str] = None
    types: List[str] = field(default_factory=list)


@dataclass(slots=True)
class ReputationGap:
    your_rating: Optional[float]
    your_reviews: int
    competitor_median_rating: Optional[float]
    competitor_median_reviews: int
    competitor_top_rating: Optional[float]
    competitor_top_reviews: int
    rating_gap: Optional[float]
    reviews_gap: int
    status: str


@dataclass(slots=True)
class CompetitorSnapshot:
    """Result handed to report assembly."""

    competitors: List[Candidate] = field(default_factory=list)
    reputation_gap: Optional[ReputationGap] = None
    competitors_with_website: int = 0
    competitors_without_website: int = 0
    search_method: str = SEARCH_METHOD_NONE
    radius_used_meters: Optional[int] = None
    calls_used: int = 0
    location_used: Optional[str] = None
    your_place_id: Optional[str] = None
    error: Optional[str] = None
    debug_info: List[str] = field(default_factory=list)
    removals: List[Removal] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
