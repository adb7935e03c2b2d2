import pytest
import requests

from local_competitors.vendors import google_places


class DummyResponse:
    def __init__(self, status_code=200, payload=None, body_error=False):
        self.status_code = status_code
        self._payload = payload or {}
        self._body_error = body_error
        self.closed = False

    def json(self):
        if self._body_error:
            raise ValueError("not json")
        return self._payload

    def close(self):
        self.closed = True


class DummySession:
    def __init__(self, responses=None):
        self.calls = []
        self.responses = list(responses or [])

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, params, timeout))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def make_client(session, **kwargs):
    return google_places.GooglePlacesClient("key", session=session, sleep=lambda _: None, **kwargs)


def test_client_requires_api_key():
    with pytest.raises(ValueError):
        google_places.GooglePlacesClient("")


def test_nearby_search_builds_params_and_reads_token():
    session = DummySession([DummyResponse(payload={"status": "OK", "results": [{"place_id": "A"}], "next_page_token": "tok"})])
    page = make_client(session).nearby_search(-33.9, 18.4, 1500, place_type="cafe", keyword="cafe")

    url, params, timeout = session.calls[0]
    assert "nearbysearch" in url
    assert params == {"location": "-33.9,18.4", "radius": 1500, "type": "cafe", "keyword": "cafe", "key": "key"}
    assert timeout == 10.0
    assert page.results == [{"place_id": "A"}]
    assert page.next_page_token == "tok"


def test_next_page_only_sends_token():
    session = DummySession([DummyResponse(payload={"status": "OK", "results": []})])
    page = make_client(session).next_page("tok")

    _, params, _ = session.calls[0]
    assert params == {"pagetoken": "tok", "key": "key"}
    assert page.next_page_token is None


def test_zero_results_is_success():
    session = DummySession([DummyResponse(payload={"status": "ZERO_RESULTS"})])
    assert make_client(session).nearby_search(0, 0, 1500).results == []


def test_error_status_raises():
    session = DummySession([DummyResponse(payload={"status": "OVER_QUERY_LIMIT", "error_message": "limit"})])
    with pytest.raises(google_places.GooglePlacesError, match="limit"):
        make_client(session).nearby_search(0, 0, 1500)


def test_client_error_closes_response_without_retry():
    response = DummyResponse(status_code=403)
    session = DummySession([response])
    with pytest.raises(google_places.GooglePlacesError):
        make_client(session).place_details("pid")
    assert response.closed
    assert len(session.calls) == 1


def test_transient_status_is_retried_after_closing():
    busy = DummyResponse(status_code=503)
    session = DummySession([busy, DummyResponse(payload={"status": "OK", "result": {"name": "Acme"}})])

    assert make_client(session).place_details("pid")["name"] == "Acme"
    assert busy.closed
    assert len(session.calls) == 2


def test_transient_status_gives_up_after_retry_limit():
    responses = [DummyResponse(status_code=429) for _ in range(3)]
    session = DummySession(responses)
    with pytest.raises(google_places.GooglePlacesError, match="HTTP 429"):
        make_client(session, retry_limit=2).place_details("pid")
    assert len(session.calls) == 3
    assert all(response.closed for response in responses)


def test_malformed_body_raises():
    session = DummySession([DummyResponse(body_error=True)])
    with pytest.raises(google_places.GooglePlacesError):
        make_client(session).text_search("pizza")


def test_network_errors_are_retried():
    session = DummySession(
        [
            requests.ConnectionError("reset"),
            requests.Timeout("slow"),
            DummyResponse(payload={"status": "OK", "result": {"name": "Acme"}}),
        ]
    )
    result = make_client(session, retry_limit=2).place_details("pid")
    assert result["name"] == "Acme"
    assert len(session.calls) == 3


def test_network_errors_exhaust_retries():
    session = DummySession([requests.ConnectionError("reset")] * 3)
    with pytest.raises(requests.ConnectionError):
        make_client(session, retry_limit=2).place_details("pid")
    assert len(session.calls) == 3


def test_place_details_uses_field_mask():
    session = DummySession([DummyResponse(payload={"status": "OK", "result": {"name": "Acme"}})])
    make_client(session).place_details("pid")
    _, params, _ = session.calls[0]
    assert params["fields"] == ",".join(google_places.DETAILS_FIELDS)
    assert "formatted_address" not in params["fields"]


def test_place_details_without_result_raises():
    session = DummySession([DummyResponse(payload={"status": "OK"})])
    with pytest.raises(google_places.GooglePlacesError):
        make_client(session).place_details("pid")


def test_text_search_location_bias():
    session = DummySession([DummyResponse(payload={"status": "OK", "results": [{"place_id": "A"}]})])
    results = make_client(session).text_search(" cafe aroma ", location_bias="-33.9,18.4")
    _, params, _ = session.calls[0]
    assert params["query"] == "cafe aroma"
    assert params["location"] == "-33.9,18.4"
    assert params["radius"] == google_places.TEXT_SEARCH_BIAS_RADIUS
    assert results == [{"place_id": "A"}]
