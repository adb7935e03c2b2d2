from fakes import FakePlacesProvider, place

from local_competitors import snapshot as snapshot_module
from local_competitors.core.config import Settings
from local_competitors.core.models import SuppliedCompetitor, Target

TARGET = Target(place_id="SELF", name="Cafe Aroma", latitude=-33.9, longitude=18.4, category_label="Cafe")
SETTINGS = Settings(google_api_key="", radius_steps=(1500,), page_delay_seconds=0.0)


def test_missing_api_key_is_reported_not_raised():
    result = snapshot_module.get_competitor_snapshot(TARGET, settings=SETTINGS)

    assert result.error == snapshot_module.MISSING_API_KEY_ERROR
    assert result.search_method == "none"
    assert result.your_place_id == "SELF"
    assert result.competitors == []


def test_build_provider_uses_settings():
    settings = Settings(google_api_key="key", request_timeout=4.0, retry_limit=1)
    provider = snapshot_module.build_provider(settings)

    assert provider.api_key == "key"
    assert provider.timeout == 4.0
    assert provider.retry_limit == 1


def test_routes_to_discovery(guard):
    provider = FakePlacesProvider(
        target_details={"SELF": {"place_id": "SELF", "types": ["cafe"]}},
        nearby={(1500, "cafe", None): [place("A", -33.901, 18.4, ["cafe"])]},
    )

    result = snapshot_module.get_competitor_snapshot(
        TARGET, provider=provider, guard=guard, settings=SETTINGS, sleep=lambda _: None
    )

    assert result.search_method == "discovery"
    assert [c.place_id for c in result.competitors] == ["A"]
    assert result.to_dict()["competitors"][0]["place_id"] == "A"


def test_routes_supplied_list_to_enrichment(guard):
    provider = FakePlacesProvider(details={"S1": {"place_id": "S1", "types": ["cafe"]}})
    supplied = [SuppliedCompetitor(place_id="S1", name="Other Cafe", latitude=-33.901, longitude=18.4)]

    result = snapshot_module.get_competitor_snapshot(
        TARGET, supplied=supplied, provider=provider, guard=guard, settings=SETTINGS, max_competitors=1
    )

    assert result.search_method == "supplied"
    assert [c.place_id for c in result.competitors] == ["S1"]
    assert not any(call[0] == "nearby" for call in provider.calls)
