"""Radius-expansion competitor discovery.

A run walks an ascending ladder of search radii around the target. At each
step it issues a type-filtered and a keyword nearby search concurrently, merges
and filters the records, and accepts the closest new candidates until the
competitor cap is met or the call budget runs out. Accepted candidates are
ranked once at the end, enriched with details and compared with the target.

The same searcher also accepts a competitor list discovered upstream; that path
skips the radius walk but still enriches, family-checks and caps the list.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Set

import requests

from local_competitors.analysis.enrichment import EnrichmentStage
from local_competitors.analysis.reputation import DEFAULT_THRESHOLDS, Thresholds, analyze
from local_competitors.core.budget import PLACES_CHANNEL, BudgetGuard, InvocationBudget
from local_competitors.core.config import DEFAULT_RADIUS_STEPS, Settings
from local_competitors.core.models import (
    SEARCH_METHOD_DISCOVERY,
    SEARCH_METHOD_NONE,
    SEARCH_METHOD_SUPPLIED,
    Candidate,
    CompetitorSnapshot,
    Removal,
    SuppliedCompetitor,
    Target,
)
from local_competitors.etl.categories import (
    CategoryFamily,
    allowed_keywords,
    category_label_to_type,
    filter_keywords_by_family,
    is_blocked,
    resolve_family,
)
from local_competitors.etl.filters import (
    REASON_FAMILY_MISMATCH,
    REASON_SELF_MATCH,
    CandidateFilter,
    is_duplicate_listing,
)
from local_competitors.etl.ranking import assign_distances, distance_meters, rank
from local_competitors.etl.transform import extract_primary_type, humanize_type, supplied_to_candidate
from local_competitors.search.pagination import DEFAULT_MAX_PAGES, DEFAULT_PAGE_DELAY_SECONDS, NearbyRequest, PaginatedFetcher
from local_competitors.vendors.google_places import DETAILS_FIELDS, GooglePlacesError

logger = logging.getLogger(__name__)

MISSING_IDENTITY_ERROR = (
    "Could not resolve Place ID or coordinates; competitor discovery requires an accurate location."
)
TARGET_DETAILS_ERROR = "Could not fetch target place details"
MAX_REPORTED_REMOVALS = 50


class RunState(str, Enum):
    NOT_STARTED = "not_started"
    EXPANDING = "expanding"
    ENRICHING = "enriching"
    DONE = "done"


@dataclass
class SearchRun:
    """State of one discovery invocation; discarded once its snapshot is built."""

    target: Target
    budget: InvocationBudget
    max_competitors: int
    state: RunState = RunState.NOT_STARTED
    radius_index: Optional[int] = None
    radius_used: Optional[int] = None
    target_primary_type: Optional[str] = None
    target_family: CategoryFamily = CategoryFamily.GENERIC_LOCAL_BUSINESS
    accepted: List[Candidate] = field(default_factory=list)
    seen_ids: Set[str] = field(default_factory=set)
    removals: List[Removal] = field(default_factory=list)
    debug: List[str] = field(default_factory=list)

    @property
    def remaining_capacity(self) -> int:
        return max(0, self.max_competitors - len(self.accepted))

    def log(self, message: str) -> None:
        self.debug.append(message)
        logger.info("[%s] %s", self.target.place_id or "no-place-id", message)

    def accept(self, candidates: Iterable[Candidate]) -> int:
        """Append candidates not seen earlier in the run, up to the cap."""
        added = 0
        for candidate in candidates:
            if self.remaining_capacity <= 0:
                break
            if candidate.place_id in self.seen_ids:
                continue
            self.accepted.append(candidate)
            self.seen_ids.add(candidate.place_id)
            added += 1
        return added

    def reject(self, candidate: Candidate, reason: str) -> None:
        self.removals.append(
            Removal(
                place_id=candidate.place_id,
                name=candidate.name,
                reason=reason,
                primary_type=candidate.primary_type,
                types=list(candidate.types),
            )
        )


def merge_unique(batches: Sequence[List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    """Concatenate strategy results in order, keeping the first record per place id."""
    seen: Set[str] = set()
    merged: List[Dict[str, Any]] = []
    for batch in batches:
        for record in batch:
            place_id = record.get("place_id")
            if place_id:
                if place_id in seen:
                    continue
                seen.add(place_id)
            merged.append(record)
    return merged


class RadiusExpansionSearcher:
    def __init__(
        self,
        provider,
        guard: BudgetGuard,
        *,
        radius_steps: Sequence[int] = DEFAULT_RADIUS_STEPS,
        max_competitors: int = 10,
        max_calls: int = 60,
        max_pages: int = DEFAULT_MAX_PAGES,
        page_delay: float = DEFAULT_PAGE_DELAY_SECONDS,
        dual_strategy: bool = True,
        deadline_seconds: Optional[float] = None,
        thresholds: Thresholds = DEFAULT_THRESHOLDS,
        sleep: Callable[[float], None] = time.sleep,
        channel: str = PLACES_CHANNEL,
    ) -> None:
        self.provider = provider
        self.guard = guard
        self.radius_steps = tuple(sorted(radius_steps))
        self.max_competitors = max_competitors
        self.max_calls = max_calls
        self.max_pages = max_pages
        self.page_delay = page_delay
        self.dual_strategy = dual_strategy
        self.deadline_seconds = deadline_seconds
        self.thresholds = thresholds
        self.channel = channel
        self._sleep = sleep

    @classmethod
    def from_settings(cls, provider, guard: BudgetGuard, settings: Settings, **overrides) -> "RadiusExpansionSearcher":
        options = dict(
            radius_steps=settings.radius_steps,
            max_competitors=settings.max_competitors,
            max_calls=settings.max_calls_per_invocation,
            max_pages=settings.max_pages,
            page_delay=settings.page_delay_seconds,
            dual_strategy=settings.dual_strategy,
            deadline_seconds=settings.deadline_seconds,
        )
        options.update(overrides)
        return cls(provider, guard, **options)

    # ---------- Runs ----------

    def _new_run(
        self,
        target: Target,
        deadline_seconds: Optional[float],
        cancel_event: Optional[threading.Event],
    ) -> SearchRun:
        budget = InvocationBudget(
            self.guard,
            self.max_calls,
            channel=self.channel,
            deadline_seconds=deadline_seconds if deadline_seconds is not None else self.deadline_seconds,
            cancel_event=cancel_event,
        )
        run = SearchRun(target=target, budget=budget, max_competitors=self.max_competitors)
        coordinates = f"{target.latitude}, {target.longitude}" if target.has_coordinates else "None"
        run.log(f"Starting competitor search for: {target.name or 'Unknown'}")
        run.log(f"Category: {target.category_label or 'Unknown'}")
        run.log(f"Location: {target.location_label or 'Unknown'}")
        run.log(f"Coordinates: {coordinates}")
        run.log(f"Place ID: {target.place_id or 'None'}")
        return run

    def _fetch_target_details(self, run: SearchRun) -> Optional[Dict[str, Any]]:
        if not run.budget.acquire():
            run.log(f"Target details skipped: {run.budget.denial_reason}")
            return None
        try:
            return self.provider.place_details(run.target.place_id, fields=DETAILS_FIELDS)
        except (GooglePlacesError, requests.RequestException) as exc:
            run.log(f"Target details failed: {exc}")
            return None

    def _adopt_target_details(self, run: SearchRun, details: Dict[str, Any]) -> List[str]:
        target = run.target
        updates: Dict[str, Any] = {}
        if target.rating is None and details.get("rating") is not None:
            updates["rating"] = float(details["rating"])
        if not target.review_count and details.get("user_ratings_total"):
            updates["review_count"] = int(details["user_ratings_total"])
        if not target.website and details.get("website"):
            updates["website"] = details["website"]
        if not target.name and details.get("name"):
            updates["name"] = details["name"]
        if updates:
            run.target = replace(target, **updates)
        return list(details.get("types") or [])

    def _snapshot(self, run: SearchRun, search_method: str, error: Optional[str] = None) -> CompetitorSnapshot:
        run.state = RunState.DONE
        competitors = run.accepted
        with_website = sum(1 for c in competitors if c.website)
        if error:
            run.log(f"Finished with error: {error}")
        else:
            run.log(f"Finished with {len(competitors)} competitors after {run.budget.calls} Places calls")
        return CompetitorSnapshot(
            competitors=competitors,
            reputation_gap=analyze(run.target.rating, run.target.review_count, competitors, self.thresholds),
            competitors_with_website=with_website,
            competitors_without_website=len(competitors) - with_website,
            search_method=search_method,
            radius_used_meters=run.radius_used,
            calls_used=run.budget.calls,
            location_used=run.target.location_label,
            your_place_id=run.target.place_id,
            error=error,
            debug_info=run.debug,
            removals=run.removals[:MAX_REPORTED_REMOVALS],
        )

    # ---------- Discovery ----------

    def discover(
        self,
        target: Target,
        *,
        keyword: Optional[str] = None,
        deadline_seconds: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> CompetitorSnapshot:
        run = self._new_run(target, deadline_seconds, cancel_event)

        if not target.place_id or not target.has_coordinates:
            run.log("Missing place_id or lat/lng - competitor list requires accurate location")
            return self._snapshot(run, SEARCH_METHOD_NONE, error=MISSING_IDENTITY_ERROR)

        details = self._fetch_target_details(run)
        types = self._adopt_target_details(run, details) if details else []
        if details is None:
            if not target.provider_types:
                error = TARGET_DETAILS_ERROR
                if run.budget.denial_reason:
                    error = f"{TARGET_DETAILS_ERROR}: {run.budget.denial_reason}"
                return self._snapshot(run, SEARCH_METHOD_NONE, error=error)
            run.log("Falling back to caller-supplied provider types")
        types = types or list(target.provider_types)

        run.target_primary_type = extract_primary_type(types)
        run.target_family = resolve_family(target.category_label, types)
        run.log(
            f"Types: {types}; primary type: {run.target_primary_type}; family: {run.target_family.value}"
        )

        strategy_keyword = self._strategy_keyword(run, keyword)
        self._expand(run, strategy_keyword)

        run.accepted = rank(run.accepted)
        run.state = RunState.ENRICHING
        self._enrich_accepted(run)
        return self._snapshot(run, SEARCH_METHOD_DISCOVERY)

    def _strategy_keyword(self, run: SearchRun, override: Optional[str]) -> Optional[str]:
        if override:
            allowed, rejected = filter_keywords_by_family([override], run.target_family)
            for entry in rejected:
                run.log(f"Keyword override rejected: {entry}")
            if allowed:
                return allowed[0]
        if run.target_primary_type:
            humanized = humanize_type(run.target_primary_type)
            if not is_blocked(humanized):
                return humanized
        if run.target_family is not CategoryFamily.GENERIC_LOCAL_BUSINESS:
            for term in allowed_keywords(run.target_family):
                if not is_blocked(term):
                    return term
        return None

    def _plan_requests(self, run: SearchRun, radius: int, keyword: Optional[str]) -> List[NearbyRequest]:
        lat, lng = run.target.latitude, run.target.longitude
        primary_type = run.target_primary_type
        planned: List[NearbyRequest] = []
        if primary_type:
            planned.append(NearbyRequest(lat, lng, radius, place_type=primary_type))
        if keyword and (self.dual_strategy or not primary_type):
            planned.append(NearbyRequest(lat, lng, radius, keyword=keyword))
        if not planned:
            planned.append(NearbyRequest(lat, lng, radius))
        return planned

    def _search_radius(self, run: SearchRun, planned: List[NearbyRequest]) -> List[List[Dict[str, Any]]]:
        fetcher = PaginatedFetcher(self.provider, run.budget, page_delay=self.page_delay, sleep=self._sleep)
        if len(planned) == 1:
            return [fetcher.fetch_all_pages(planned[0], self.max_pages)]
        with ThreadPoolExecutor(max_workers=len(planned), thread_name_prefix="nearby") as executor:
            futures = [executor.submit(fetcher.fetch_all_pages, request, self.max_pages) for request in planned]
            return [future.result() for future in futures]

    def _expand(self, run: SearchRun, keyword: Optional[str]) -> None:
        target = run.target
        candidate_filter = CandidateFilter(target.place_id, run.target_primary_type)
        run.state = RunState.EXPANDING

        for index, radius in enumerate(self.radius_steps):
            if run.remaining_capacity <= 0:
                break
            if run.budget.exhausted:
                run.log(f"Stopping radius expansion before {radius}m: {run.budget.denial_reason or 'budget exhausted'}")
                break
            run.radius_index = index

            planned = self._plan_requests(run, radius, keyword)
            merged = merge_unique(self._search_radius(run, planned))
            passed, removals = candidate_filter.apply(merged)
            run.removals.extend(removals)

            assign_distances(passed, target.latitude, target.longitude)
            for candidate in passed:
                candidate.radius_step = radius
            added = run.accept(rank(passed))
            run.radius_used = radius
            run.log(
                f"Radius {radius}m ({', '.join(r.describe() for r in planned)}): {len(merged)} unique records, "
                f"{len(passed)} passed filters, {added} added ({len(run.accepted)}/{run.max_competitors})"
            )

    def _enrich_accepted(self, run: SearchRun) -> None:
        stage = EnrichmentStage(self.provider, run.budget, self.thresholds)
        kept: List[Candidate] = []
        for candidate in run.accepted:
            stage.enrich_one(candidate)
            if is_duplicate_listing(candidate, run.target):
                run.reject(candidate, REASON_SELF_MATCH)
                run.log(f"Dropped {candidate.name}: same website as the target")
                continue
            stage.annotate(candidate, run.target)
            kept.append(candidate)
        enriched = sum(1 for c in kept if c.enriched)
        run.log(f"Enriched {enriched}/{len(kept)} competitors with place details")
        run.accepted = kept

    # ---------- Supplied competitors ----------

    def enrich_supplied(
        self,
        target: Target,
        supplied: Sequence[SuppliedCompetitor],
        *,
        deadline_seconds: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> CompetitorSnapshot:
        run = self._new_run(target, deadline_seconds, cancel_event)
        run.log(f"Using supplied competitors ({len(supplied)} provided)")

        primary_type = category_label_to_type(target.category_label)
        types = list(target.provider_types)
        if not primary_type and not types and target.place_id:
            details = self._fetch_target_details(run)
            if details:
                types = self._adopt_target_details(run, details)
        if not primary_type:
            primary_type = extract_primary_type(types)
        run.target_primary_type = primary_type
        run.target_family = resolve_family(target.category_label, types)
        run.log(f"Primary type: {primary_type}; family: {run.target_family.value}")

        candidate_filter = CandidateFilter(target.place_id, primary_type)
        stage = EnrichmentStage(self.provider, run.budget, self.thresholds)
        run.state = RunState.ENRICHING
        encountered: Set[str] = set()

        for item in supplied:
            if run.remaining_capacity <= 0:
                run.log(f"Competitor cap of {run.max_competitors} reached; ignoring the rest")
                break
            if item.place_id in encountered:
                continue
            encountered.add(item.place_id)

            candidate = supplied_to_candidate(item)
            if target.place_id and candidate.place_id == target.place_id:
                run.reject(candidate, REASON_SELF_MATCH)
                continue
            if stage.enrich_one(candidate):
                candidate.primary_type = extract_primary_type(candidate.types)
                if not candidate_filter.matches_family(candidate.types):
                    run.reject(candidate, REASON_FAMILY_MISMATCH)
                    run.log(f"Filtered out {candidate.name}: types {candidate.types} don't match target family")
                    continue
                if is_duplicate_listing(candidate, run.target):
                    run.reject(candidate, REASON_SELF_MATCH)
                    continue
            candidate.distance_meters = distance_meters(
                target.latitude, target.longitude, candidate.latitude, candidate.longitude
            )
            stage.annotate(candidate, run.target)
            run.accept([candidate])

        run.log(f"After enrichment and filtering: {len(run.accepted)} competitors")
        return self._snapshot(run, SEARCH_METHOD_SUPPLIED)
