"""Place-details enrichment of accepted competitors."""

import logging
from typing import List, Optional

import requests

from local_competitors.analysis.reputation import DEFAULT_THRESHOLDS, Thresholds
from local_competitors.core.budget import InvocationBudget
from local_competitors.core.models import Candidate, Target
from local_competitors.etl.transform import merge_details
from local_competitors.vendors.google_places import DETAILS_FIELDS, GooglePlacesError

logger = logging.getLogger(__name__)


def comparison_notes(
    target_rating: Optional[float],
    target_reviews: Optional[int],
    rating: Optional[float],
    reviews: Optional[int],
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> List[str]:
    notes: List[str] = []
    if rating and target_rating:
        diff = round(rating - target_rating, 2)
        if diff > thresholds.note_rating_delta:
            notes.append(f"Higher rating (+{diff:.1f})")
        elif diff < -thresholds.note_rating_delta:
            notes.append(f"Lower rating ({diff:.1f})")
    if reviews and target_reviews:
        diff = reviews - target_reviews
        if diff > target_reviews * thresholds.note_review_ratio:
            notes.append(f"More reviews (+{diff})")
        elif diff < -target_reviews * thresholds.note_review_ratio:
            notes.append(f"Fewer reviews ({diff})")
    return notes


class EnrichmentStage:
    """Fetches details for each candidate; a failed fetch keeps the search-time data."""

    def __init__(self, provider, budget: InvocationBudget, thresholds: Thresholds = DEFAULT_THRESHOLDS) -> None:
        self.provider = provider
        self.budget = budget
        self.thresholds = thresholds

    def enrich_one(self, candidate: Candidate) -> bool:
        if not self.budget.acquire():
            logger.info("Skipping details for %s: %s", candidate.place_id, self.budget.denial_reason)
            return False
        try:
            details = self.provider.place_details(candidate.place_id, fields=DETAILS_FIELDS)
        except (GooglePlacesError, requests.RequestException) as exc:
            logger.warning("Failed to enrich %s (%s): %s", candidate.name, candidate.place_id, exc)
            return False
        merge_details(candidate, details)
        return True

    def annotate(self, candidate: Candidate, target: Target) -> None:
        candidate.comparison_notes = comparison_notes(
            target.rating,
            target.review_count,
            candidate.rating,
            candidate.review_count,
            self.thresholds,
        )
