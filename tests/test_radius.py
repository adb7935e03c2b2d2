import threading

from fakes import FakePlacesProvider, place

from local_competitors.core.budget import PLACES_CHANNEL, BudgetGuard
from local_competitors.core.models import SuppliedCompetitor, Target
from local_competitors.etl import filters
from local_competitors.search import radius
from local_competitors.search.radius import RadiusExpansionSearcher, merge_unique

LAT, LNG = -33.9, 18.4


def cafe_target(**overrides):
    values = dict(
        place_id="SELF",
        name="Cafe Aroma",
        latitude=LAT,
        longitude=LNG,
        category_label="Cafe",
        rating=4.2,
        review_count=100,
    )
    values.update(overrides)
    return Target(**values)


def target_details(**extra):
    record = {"place_id": "SELF", "name": "Cafe Aroma", "types": ["cafe", "food", "point_of_interest"]}
    record.update(extra)
    return {"SELF": record}


def searcher(provider, guard, **options):
    options.setdefault("radius_steps", [1500])
    options.setdefault("sleep", lambda _: None)
    return RadiusExpansionSearcher(provider, guard, **options)


def test_cafe_scenario_keeps_only_food_competitors(guard):
    bakery = place("A", LAT - 0.0027, LNG, ["bakery", "food"], name="Bread Co", rating=4.6, reviews=250)
    hardware = place("B", LAT - 0.001, LNG, ["hardware_store", "store"])
    self_record = place("SELF", LAT, LNG, ["cafe"])
    provider = FakePlacesProvider(
        target_details=target_details(),
        nearby={
            (1500, "cafe", None): [bakery, hardware, self_record],
            (1500, None, "cafe"): [bakery, self_record],
        },
    )

    snapshot = searcher(provider, guard).discover(cafe_target())

    assert snapshot.error is None
    assert snapshot.search_method == "discovery"
    assert [c.place_id for c in snapshot.competitors] == ["A"]
    competitor = snapshot.competitors[0]
    assert competitor.distance_meters == 300
    assert competitor.enriched
    assert competitor.comparison_notes == ["Higher rating (+0.4)", "More reviews (+150)"]
    assert {(r.place_id, r.reason) for r in snapshot.removals} == {
        ("B", filters.REASON_FAMILY_MISMATCH),
        ("SELF", filters.REASON_SELF_MATCH),
    }
    assert snapshot.radius_used_meters == 1500
    assert snapshot.calls_used == 4
    assert snapshot.reputation_gap.competitor_median_rating == 4.6
    assert snapshot.reputation_gap.status == "behind"


def test_candidates_deduplicated_across_radii(guard):
    near = place("A", LAT - 0.001, LNG, ["cafe"])
    far = place("C", LAT - 0.02, LNG, ["restaurant"])
    provider = FakePlacesProvider(
        target_details=target_details(),
        nearby={
            (1500, "cafe", None): [near],
            (3000, "cafe", None): [far, near],
            (3000, None, "cafe"): [near],
        },
    )

    snapshot = searcher(provider, guard, radius_steps=[3000, 1500]).discover(cafe_target())

    assert [c.place_id for c in snapshot.competitors] == ["A", "C"]
    assert [c.radius_step for c in snapshot.competitors] == [1500, 3000]
    assert snapshot.radius_used_meters == 3000


def test_competitor_cap_stops_expansion(guard):
    records = [place(f"P{i}", LAT - 0.001 * (i + 1), LNG, ["cafe"]) for i in range(3)]
    provider = FakePlacesProvider(
        target_details=target_details(),
        nearby={(1500, "cafe", None): list(reversed(records))},
    )

    snapshot = searcher(provider, guard, radius_steps=[1500, 3000], max_competitors=2).discover(cafe_target())

    assert [c.place_id for c in snapshot.competitors] == ["P0", "P1"]
    assert not any(call[:2] == ("nearby", 3000) for call in provider.calls)


def test_call_ceiling_is_never_exceeded(guard):
    provider = FakePlacesProvider(
        target_details=target_details(),
        nearby={(1500, "cafe", None): [place("A", LAT - 0.001, LNG, ["cafe"])]},
    )

    snapshot = searcher(provider, guard, radius_steps=[1500, 3000], max_calls=3).discover(cafe_target())

    assert snapshot.calls_used == 3
    assert len(provider.calls) == 3
    assert not any(call[:2] == ("nearby", 3000) for call in provider.calls)
    assert [c.place_id for c in snapshot.competitors] == ["A"]
    assert not snapshot.competitors[0].enriched


def test_shared_guard_limits_the_run():
    tight = BudgetGuard({PLACES_CHANNEL: 2})
    provider = FakePlacesProvider(target_details=target_details())

    snapshot = searcher(provider, tight, radius_steps=[1500, 3000]).discover(cafe_target())

    assert snapshot.calls_used == 2
    assert len(provider.calls) == 2


def test_missing_coordinates_reports_error(guard):
    provider = FakePlacesProvider()

    snapshot = searcher(provider, guard).discover(cafe_target(latitude=None))

    assert snapshot.error == radius.MISSING_IDENTITY_ERROR
    assert snapshot.search_method == "none"
    assert snapshot.competitors == []
    assert provider.calls == []


def test_target_details_failure_falls_back_to_supplied_types(guard):
    provider = FakePlacesProvider(
        failing_details={"SELF"},
        nearby={(1500, "cafe", None): [place("A", LAT - 0.001, LNG, ["cafe"])]},
    )

    snapshot = searcher(provider, guard).discover(cafe_target(provider_types=["cafe"]))
    assert [c.place_id for c in snapshot.competitors] == ["A"]

    bare = searcher(FakePlacesProvider(failing_details={"SELF"}), guard).discover(cafe_target())
    assert bare.error == radius.TARGET_DETAILS_ERROR
    assert bare.competitors == []


def test_strategies_run_concurrently(guard):
    barrier = threading.Barrier(2, timeout=5)

    class BarrierProvider(FakePlacesProvider):
        def nearby_search(self, lat, lng, radius, place_type=None, keyword=None):
            barrier.wait()
            return super().nearby_search(lat, lng, radius, place_type=place_type, keyword=keyword)

    provider = BarrierProvider(
        target_details=target_details(),
        nearby={(1500, None, "cafe"): [place("A", LAT - 0.001, LNG, ["cafe"])]},
    )

    snapshot = searcher(provider, guard).discover(cafe_target())

    assert [c.place_id for c in snapshot.competitors] == ["A"]


def test_single_strategy_when_dual_disabled(guard):
    provider = FakePlacesProvider(target_details=target_details())

    searcher(provider, guard, dual_strategy=False).discover(cafe_target())

    nearby_calls = [call for call in provider.calls if call[0] == "nearby"]
    assert nearby_calls == [("nearby", 1500, "cafe", None)]


def test_keyword_override_is_checked_against_family(guard):
    provider = FakePlacesProvider(target_details=target_details())
    searcher(provider, guard).discover(cafe_target(), keyword="espresso bar")
    assert ("nearby", 1500, None, "espresso bar") in provider.calls

    provider = FakePlacesProvider(target_details=target_details())
    snapshot = searcher(provider, guard).discover(cafe_target(), keyword="plumbing")
    assert ("nearby", 1500, None, "cafe") in provider.calls
    assert any("plumbing (not in family allowed list)" in line for line in snapshot.debug_info)


def test_cancelled_run_makes_no_calls(guard):
    cancel = threading.Event()
    cancel.set()
    provider = FakePlacesProvider(target_details=target_details())

    snapshot = searcher(provider, guard).discover(cafe_target(provider_types=["cafe"]), cancel_event=cancel)

    assert provider.calls == []
    assert snapshot.calls_used == 0
    assert snapshot.competitors == []
    assert snapshot.reputation_gap is None


def test_budget_denied_target_details_names_the_reason():
    tripped = BudgetGuard({PLACES_CHANNEL: 1})
    tripped.spend()
    provider = FakePlacesProvider(target_details=target_details())

    snapshot = searcher(provider, tripped).discover(cafe_target())

    assert snapshot.error == f"{radius.TARGET_DETAILS_ERROR}: global budget exhausted"
    assert snapshot.competitors == []
    assert provider.calls == []


def test_duplicate_website_listing_is_dropped(guard):
    provider = FakePlacesProvider(
        target_details=target_details(website="https://www.cafearoma.example"),
        nearby={(1500, "cafe", None): [place("DUP", LAT - 0.0005, LNG, ["cafe"])]},
        details={"DUP": {"place_id": "DUP", "website": "cafearoma.example/menu"}},
    )

    snapshot = searcher(provider, guard).discover(cafe_target())

    assert snapshot.competitors == []
    assert [(r.place_id, r.reason) for r in snapshot.removals] == [("DUP", filters.REASON_SELF_MATCH)]


def test_merge_unique_keeps_first_occurrence():
    merged = merge_unique([[{"place_id": "a", "n": 1}], [{"place_id": "a", "n": 2}, {"place_id": "b"}]])
    assert merged == [{"place_id": "a", "n": 1}, {"place_id": "b"}]


def supplied(place_id, **extra):
    values = dict(place_id=place_id, name=f"Supplied {place_id}", address="2 Side St", latitude=LAT - 0.001, longitude=LNG)
    values.update(extra)
    return SuppliedCompetitor(**values)


def test_supplied_competitors_are_enriched_and_filtered(guard):
    provider = FakePlacesProvider(
        details={
            "S1": {"place_id": "S1", "types": ["bakery"], "rating": 4.5, "user_ratings_total": 40},
            "S2": {"place_id": "S2", "types": ["car_repair"]},
        },
        failing_details={"S3"},
    )
    items = [supplied("S1"), supplied("SELF"), supplied("S1"), supplied("S2"), supplied("S3", rating=3.1, review_count=7)]

    snapshot = searcher(provider, guard).enrich_supplied(cafe_target(), items)

    assert snapshot.search_method == "supplied"
    assert [c.place_id for c in snapshot.competitors] == ["S1", "S3"]
    s1, s3 = snapshot.competitors
    assert s1.enriched and s1.rating == 4.5
    assert s1.distance_meters == 111
    assert not s3.enriched
    assert s3.rating == 3.1 and s3.review_count == 7
    assert [(r.place_id, r.reason) for r in snapshot.removals] == [
        ("SELF", filters.REASON_SELF_MATCH),
        ("S2", filters.REASON_FAMILY_MISMATCH),
    ]
    assert [call for call in provider.calls if call[1] == "SELF"] == []
    assert snapshot.calls_used == 3


def test_supplied_competitors_are_capped_in_input_order(guard):
    provider = FakePlacesProvider(details={f"S{i}": {"place_id": f"S{i}", "types": ["cafe"]} for i in range(4)})
    items = [supplied(f"S{i}") for i in range(4)]

    snapshot = searcher(provider, guard, max_competitors=2).enrich_supplied(cafe_target(), items)

    assert [c.place_id for c in snapshot.competitors] == ["S0", "S1"]
    assert provider.calls == [("details", "S0"), ("details", "S1")]
