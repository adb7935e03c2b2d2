"""Reputation gap between the target and its competitor set."""

from dataclasses import dataclass
from typing import List, Optional, Sequence

from local_competitors.core.models import Candidate, ReputationGap

STATUS_AHEAD = "ahead"
STATUS_BEHIND = "behind"
STATUS_COMPETITIVE = "competitive"
STATUS_UNKNOWN = "unknown"


@dataclass(frozen=True)
class Thresholds:
    """Heuristic cut-offs for notes and gap status."""

    note_rating_delta: float = 0.3
    note_review_ratio: float = 0.5
    status_rating_gap: float = 0.2
    status_review_ratio: float = 0.3


DEFAULT_THRESHOLDS = Thresholds()


def _lower_middle(values: Sequence):
    # Lower-middle element for even lengths, no interpolation.
    return values[len(values) // 2]


def analyze(
    your_rating: Optional[float],
    your_reviews: Optional[int],
    competitors: Sequence[Candidate],
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> Optional[ReputationGap]:
    """Compare the target with ``competitors``; ``None`` when there is nothing to compare with."""
    if not competitors:
        return None

    your_reviews = your_reviews or 0
    ratings: List[float] = sorted(c.rating for c in competitors if c.rating is not None)
    reviews: List[int] = sorted(c.review_count or 0 for c in competitors)

    median_rating = _lower_middle(ratings) if ratings else None
    median_reviews = _lower_middle(reviews)
    top_rating = max(ratings) if ratings else None
    top_reviews = max(reviews)

    rating_gap = None
    if your_rating is not None and median_rating is not None:
        rating_gap = round(your_rating - median_rating, 1)
    reviews_gap = your_reviews - median_reviews

    if rating_gap is not None:
        if rating_gap > thresholds.status_rating_gap and reviews_gap >= 0:
            status = STATUS_AHEAD
        elif rating_gap < -thresholds.status_rating_gap or reviews_gap < -thresholds.status_review_ratio * median_reviews:
            status = STATUS_BEHIND
        else:
            status = STATUS_COMPETITIVE
    elif your_reviews > 0:
        status = STATUS_COMPETITIVE
    else:
        status = STATUS_UNKNOWN

    return ReputationGap(
        your_rating=your_rating,
        your_reviews=your_reviews,
        competitor_median_rating=median_rating,
        competitor_median_reviews=median_reviews,
        competitor_top_rating=top_rating,
        competitor_top_reviews=top_reviews,
        rating_gap=rating_gap,
        reviews_gap=reviews_gap,
        status=status,
    )
