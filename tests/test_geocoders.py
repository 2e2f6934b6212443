"""
Tests for the geocoding provider clients and payload parsing.

Covers:
- parse_census / parse_nominatim — best match, no match, error markers
- ProviderPair.fetch_all — both succeed, one fails, both fail
- Request shape sent to each provider (params, User-Agent)
"""
import asyncio

import httpx
import pytest

from app.services.geocoders import (
    ProviderPair,
    build_http_client,
    error_payload,
    is_error_payload,
    parse_census,
    parse_nominatim,
)
from conftest import CENSUS_MATCH, NOMINATIM_MATCH


def _pair(geocoders) -> ProviderPair:
    return ProviderPair.from_client(build_http_client(transport=geocoders.transport()))


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

class TestParseCensus:
    def test_best_match(self):
        match = parse_census(CENSUS_MATCH)
        assert match.matched_address == "123 MAIN ST, SPRINGFIELD, IL, 62701"
        assert match.city == "SPRINGFIELD"
        assert match.state == "IL"
        assert match.zip == "62701"

    def test_no_matches(self):
        match = parse_census({"result": {"addressMatches": []}})
        assert match.matched_address is None
        assert match.city is None

    def test_error_marker(self):
        match = parse_census(error_payload("Census", RuntimeError("boom")))
        assert match.matched_address is None
        assert match.zip is None

    def test_missing_components(self):
        match = parse_census({"result": {"addressMatches": [{"matchedAddress": "X"}]}})
        assert match.matched_address == "X"
        assert match.state is None

    def test_not_a_dict(self):
        assert parse_census(None).matched_address is None

    @pytest.mark.parametrize("payload", [
        {"result": "no result"},
        {"result": {"addressMatches": "none"}},
        {"result": {"addressMatches": [{"matchedAddress": "X", "addressComponents": ["CITY"]}]}},
    ])
    def test_malformed_shapes(self, payload):
        match = parse_census(payload)
        assert match.city is None
        assert match.state is None


class TestParseNominatim:
    def test_first_result_as_floats(self):
        lat, lon = parse_nominatim(NOMINATIM_MATCH)
        assert lat == pytest.approx(39.7817)
        assert lon == pytest.approx(-89.6501)

    def test_empty_list(self):
        assert parse_nominatim([]) == (None, None)

    def test_error_marker(self):
        assert parse_nominatim(error_payload("Nominatim", RuntimeError("x"))) == (None, None)

    def test_unparseable_coordinates(self):
        assert parse_nominatim([{"lat": "north", "lon": ""}]) == (None, None)


class TestErrorPayload:
    def test_shape(self):
        payload = error_payload("Census", ValueError("bad gateway"))
        assert payload == {"error": "Census API request failed", "details": "bad gateway"}
        assert is_error_payload(payload)

    def test_empty_message_falls_back_to_type(self):
        payload = error_payload("Nominatim", TimeoutError())
        assert payload["details"] == "TimeoutError"

    def test_regular_payloads_are_not_errors(self):
        assert not is_error_payload(CENSUS_MATCH)
        assert not is_error_payload(NOMINATIM_MATCH)


# ---------------------------------------------------------------------------
# fetch_all
# ---------------------------------------------------------------------------

class TestFetchAll:
    def test_both_succeed(self, geocoders):
        census, geocode = asyncio.run(_pair(geocoders).fetch_all("123 Main St"))
        assert census == CENSUS_MATCH
        assert geocode == NOMINATIM_MATCH
        assert geocoders.census_calls == 1
        assert geocoders.nominatim_calls == 1

    def test_census_http_error_keeps_geocode(self, geocoders):
        geocoders.census_status = 503
        census, geocode = asyncio.run(_pair(geocoders).fetch_all("123 Main St"))
        assert census["error"] == "Census API request failed"
        assert "503" in census["details"]
        assert geocode == NOMINATIM_MATCH

    def test_nominatim_timeout_keeps_census(self, geocoders):
        geocoders.nominatim_exc = httpx.ReadTimeout("timed out")
        census, geocode = asyncio.run(_pair(geocoders).fetch_all("123 Main St"))
        assert census == CENSUS_MATCH
        assert geocode == {"error": "Nominatim API request failed", "details": "timed out"}

    def test_both_fail(self, geocoders):
        geocoders.census_exc = httpx.ConnectError("refused")
        geocoders.nominatim_status = 500
        census, geocode = asyncio.run(_pair(geocoders).fetch_all("123 Main St"))
        assert is_error_payload(census)
        assert is_error_payload(geocode)

    def test_request_parameters(self, geocoders):
        asyncio.run(_pair(geocoders).fetch_all("123 Main St"))
        by_host = {r.url.host: r for r in geocoders.requests}

        census = by_host["geocoding.geo.census.gov"]
        assert census.url.params["address"] == "123 Main St"
        assert census.url.params["benchmark"] == "2020"
        assert census.url.params["format"] == "json"

        nominatim = by_host["nominatim.openstreetmap.org"]
        assert nominatim.url.params["q"] == "123 Main St"
        assert nominatim.url.params["limit"] == "1"

        for request in geocoders.requests:
            assert request.headers["User-Agent"] == "HomeHistoryApp/1.0"


class TestHttpClient:
    def test_ten_second_timeout_per_call(self):
        client = build_http_client()
        assert client.timeout == httpx.Timeout(10.0)
        assert client.timeout.connect == 10.0
        assert client.timeout.read == 10.0

    def test_client_identifier(self):
        assert build_http_client().headers["User-Agent"] == "HomeHistoryApp/1.0"
