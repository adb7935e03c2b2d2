"""CLI job to discover and rank the competitors of a business."""

import argparse
import json
import logging
from pathlib import Path
from typing import List, Optional

import requests

from local_competitors.core.budget import DENIED_GLOBAL_BUDGET, PLACES_CHANNEL, get_budget_guard
from local_competitors.core.config import get_settings
from local_competitors.core.models import SuppliedCompetitor, Target
from local_competitors.etl.transform import target_from_result
from local_competitors.snapshot import MISSING_API_KEY_ERROR, build_provider, get_competitor_snapshot
from local_competitors.vendors.google_places import GooglePlacesError

logger = logging.getLogger(__name__)


def resolve_target_by_query(provider, query: str, category_label: Optional[str] = None) -> Optional[Target]:
    """Use a text search to turn a free-text business name into a target."""
    if not get_budget_guard().try_spend(PLACES_CHANNEL):
        logger.warning("Text search for %r skipped: %s", query, DENIED_GLOBAL_BUDGET)
        return None
    try:
        results = provider.text_search(query)
    except (GooglePlacesError, requests.RequestException) as exc:
        logger.warning("Text search for %r failed: %s", query, exc)
        return None
    if not results:
        logger.warning("Text search for %r returned no places", query)
        return None
    logger.info("Resolved %r to %s (%s)", query, results[0].get("name"), results[0].get("place_id"))
    return target_from_result(results[0], category_label=category_label)


def load_supplied(path: str) -> List[SuppliedCompetitor]:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("competitors", [])
    return [SuppliedCompetitor.from_dict(item) for item in data if item.get("place_id")]


def build_target(args: argparse.Namespace) -> Target:
    types = [t.strip() for t in (args.types or "").split(",") if t.strip()]
    return Target(
        place_id=args.place_id,
        name=args.name,
        latitude=args.lat,
        longitude=args.lng,
        category_label=args.category,
        provider_types=types,
        rating=args.rating,
        review_count=args.reviews or 0,
        website=args.website,
    )


def run_discover_job(args: argparse.Namespace) -> dict:
    settings = get_settings()
    overrides = {}
    if args.max_results is not None:
        overrides["max_competitors"] = args.max_results

    target = build_target(args)
    if args.query:
        if not settings.google_api_key:
            raise RuntimeError(MISSING_API_KEY_ERROR)
        resolved = resolve_target_by_query(build_provider(settings), args.query, args.category)
        if resolved is None:
            raise ValueError(f"No place found for query {args.query!r}")
        target = resolved

    supplied = load_supplied(args.supplied) if args.supplied else None
    snapshot = get_competitor_snapshot(
        target,
        supplied=supplied,
        keyword=args.keyword,
        deadline_seconds=args.deadline,
        **overrides,
    )
    logger.info(
        "Completed %s run: competitors=%d calls=%d error=%s",
        snapshot.search_method,
        len(snapshot.competitors),
        snapshot.calls_used,
        snapshot.error,
    )
    return snapshot.to_dict()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Discover and rank local competitors via Google Places")
    parser.add_argument("--place-id", dest="place_id", help="Place ID of the target business")
    parser.add_argument("--name", dest="name", help="Display name of the target business")
    parser.add_argument("--lat", dest="lat", type=float, help="Target latitude")
    parser.add_argument("--lng", dest="lng", type=float, help="Target longitude")
    parser.add_argument("--category", dest="category", help="Business category label, e.g. 'Hair Salon'")
    parser.add_argument("--types", dest="types", help="Comma-separated provider types of the target")
    parser.add_argument("--rating", dest="rating", type=float, help="Target rating")
    parser.add_argument("--reviews", dest="reviews", type=int, help="Target review count")
    parser.add_argument("--website", dest="website", help="Target website")
    parser.add_argument("--query", dest="query", help="Resolve the target with a text search instead")
    parser.add_argument("--keyword", dest="keyword", help="Keyword for the keyword search strategy")
    parser.add_argument("--supplied", dest="supplied", help="JSON file of pre-discovered competitors")
    parser.add_argument(
        "--max-results",
        dest="max_results",
        type=int,
        default=None,
        help=f"Maximum number of competitors (default {get_settings().max_competitors})",
    )
    parser.add_argument("--deadline", dest="deadline", type=float, help="Overall deadline in seconds")
    return parser


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    parser = build_parser()
    args = parser.parse_args()

    result = run_discover_job(args)
    print(json.dumps(result, indent=2))


if __name__ == "__main__":
    main()
