import pytest
import requests

from studio_geocoding.geocoding.exceptions import (
    AddressNotResolvedError,
    ConfigurationError,
    ProviderError,
    RateLimitedError,
    TransportError,
)
from studio_geocoding.geocoding.google import GoogleGeocodingClient
from studio_geocoding.models.geocoding import Failure, FailureCode, Success

from tests.conftest import StubResponse, StubSession, ok_payload, status_payload


def test_missing_api_key_fails_before_any_request(monkeypatch):
    monkeypatch.delenv("GOOGLE_GEOCODE_API_KEY", raising=False)
    session = StubSession(ok_payload(1.0, 2.0))
    client = GoogleGeocodingClient(session=session)

    with pytest.raises(ConfigurationError):
        client.resolve("1 Main St")
    assert session.calls == []


def test_api_key_read_from_environment(monkeypatch):
    monkeypatch.setenv("GOOGLE_GEOCODE_API_KEY", "env-key")
    session = StubSession(ok_payload(1.0, 2.0))

    GoogleGeocodingClient(session=session).resolve("1 Main St")
    assert session.calls[0]["params"]["key"] == "env-key"


def test_ok_status_returns_first_result():
    payload = ok_payload(38.8976763, -77.0365298, "1600 Pennsylvania Avenue NW, Washington, DC 20500, USA")
    payload["results"].append({"formatted_address": "other", "geometry": {"location": {"lat": 0, "lng": 0}}})
    session = StubSession(payload)
    client = GoogleGeocodingClient(api_key="k", base_url="https://geo.test/json", session=session)

    result = client.resolve("1600 Pennsylvania Ave NW")

    assert isinstance(result, Success)
    assert (result.lat, result.lng) == (38.8976763, -77.0365298)
    assert result.formatted_address.startswith("1600 Pennsylvania")
    call = session.calls[0]
    assert call["url"] == "https://geo.test/json"
    assert call["params"] == {"address": "1600 Pennsylvania Ave NW", "key": "k"}
    assert call["timeout"] == 10


@pytest.mark.parametrize("status,code", [
    ("ZERO_RESULTS", FailureCode.NO_RESULTS),
    ("OVER_QUERY_LIMIT", FailureCode.RATE_LIMITED),
    ("REQUEST_DENIED", FailureCode.DENIED),
    ("INVALID_REQUEST", FailureCode.INVALID_REQUEST),
    ("UNKNOWN_ERROR", FailureCode.PROVIDER_ERROR),
])
def test_non_ok_status_maps_to_failure(status, code):
    session = StubSession(status_payload(status, "provider says no"))
    result = GoogleGeocodingClient(api_key="k", session=session).resolve("x")

    assert isinstance(result, Failure)
    assert result.code == code
    assert status in result.reason
    assert "provider says no" in result.reason
    assert len(session.calls) == 1


def test_ok_without_results_is_no_results():
    result = GoogleGeocodingClient(api_key="k", session=StubSession({"status": "OK", "results": []})).resolve("x")
    assert result.code == FailureCode.NO_RESULTS


def test_http_429_is_rate_limited():
    session = StubSession(StubResponse({}, status_code=429))
    result = GoogleGeocodingClient(api_key="k", session=session).resolve("x")

    assert result.code == FailureCode.RATE_LIMITED
    assert isinstance(result.to_exception(), RateLimitedError)


def test_http_error_and_bad_json_are_provider_errors():
    client = GoogleGeocodingClient(api_key="k", session=StubSession(
        StubResponse({}, status_code=500),
        StubResponse("<html>", status_code=200),
        StubResponse([], status_code=200),
        StubResponse(None, status_code=200),
        StubResponse({"status": "OK", "results": [{"geometry": None}]}),
        StubResponse({"status": "OK", "results": [{"geometry": {"location": None}}]}),
        StubResponse({"status": "OK", "results": ["not a result"]}),
    ))

    for _ in range(7):
        assert client.resolve("x").code == FailureCode.PROVIDER_ERROR


def test_transport_error_is_not_retried():
    session = StubSession(requests.Timeout("read timed out"))
    result = GoogleGeocodingClient(api_key="k", session=session).resolve("x")

    assert result.code == FailureCode.TRANSPORT_ERROR
    assert "read timed out" in result.reason
    assert len(session.calls) == 1


@pytest.mark.parametrize("code,error_class", [
    (FailureCode.NO_RESULTS, AddressNotResolvedError),
    (FailureCode.DENIED, AddressNotResolvedError),
    (FailureCode.INVALID_REQUEST, AddressNotResolvedError),
    (FailureCode.RATE_LIMITED, RateLimitedError),
    (FailureCode.TRANSPORT_ERROR, TransportError),
    (FailureCode.PROVIDER_ERROR, ProviderError),
])
def test_failure_converts_to_matching_exception(code, error_class):
    error = Failure(reason="nope", code=code).to_exception()

    assert type(error) is error_class
    assert error.code == code.value
    assert str(error) == "nope"
