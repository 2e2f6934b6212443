"""
Geocoding provider clients.

Two independent upstreams are queried for every cache miss:

- US Census one-line address geocoder -> standardized address + components
- OpenStreetMap Nominatim search       -> latitude / longitude

Public API
----------
CensusGeocoder(client).fetch(address)     -> dict   (raises on failure)
NominatimGeocoder(client).fetch(address)  -> list   (raises on failure)
ProviderPair(census, nominatim).fetch_all(address) -> (census_payload, geocode_payload)
parse_census(payload)                     -> CensusMatch
parse_nominatim(payload)                  -> tuple[lat | None, lon | None]

fetch_all never raises for a provider fault: a failed call is replaced by an
error marker payload so it can be cached and inspected like any response.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from app.core.config import settings

logger = logging.getLogger(__name__)


def error_payload(provider: str, exc: BaseException) -> dict[str, Any]:
    return {"error": f"{provider} API request failed", "details": str(exc) or type(exc).__name__}


def is_error_payload(payload: Any) -> bool:
    return isinstance(payload, dict) and "error" in payload


# ---------------------------------------------------------------------------
# Provider clients
# ---------------------------------------------------------------------------

class CensusGeocoder:
    """US Census Bureau one-line address geocoder."""
    name = "Census"

    def __init__(
        self,
        client: httpx.AsyncClient,
        url: str = settings.CENSUS_GEOCODER_URL,
        benchmark: str = settings.CENSUS_BENCHMARK,
    ):
        self.client = client
        self.url = url
        self.benchmark = benchmark

    async def fetch(self, address: str) -> Any:
        r = await self.client.get(
            self.url,
            params={"address": address, "benchmark": self.benchmark, "format": "json"},
        )
        r.raise_for_status()
        return r.json()


class NominatimGeocoder:
    """OpenStreetMap Nominatim free-form search (first result only)."""
    name = "Nominatim"

    def __init__(self, client: httpx.AsyncClient, url: str = settings.NOMINATIM_URL):
        self.client = client
        self.url = url

    async def fetch(self, address: str) -> Any:
        r = await self.client.get(
            self.url,
            params={"q": address, "format": "json", "limit": 1},
        )
        r.raise_for_status()
        return r.json()


def build_http_client(
    timeout: float = settings.GEOCODER_TIMEOUT_SECONDS,
    user_agent: str = settings.GEOCODER_USER_AGENT,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Shared client for both providers: fixed timeout and client identifier."""
    return httpx.AsyncClient(
        timeout=timeout,
        headers={"User-Agent": user_agent},
        transport=transport,
    )


class ProviderPair:
    """Runs both providers concurrently and joins on both outcomes."""

    def __init__(self, census: CensusGeocoder, nominatim: NominatimGeocoder):
        self.census = census
        self.nominatim = nominatim

    @classmethod
    def from_client(cls, client: httpx.AsyncClient) -> "ProviderPair":
        return cls(CensusGeocoder(client), NominatimGeocoder(client))

    async def fetch_all(self, address: str) -> tuple[Any, Any]:
        census_result, geocode_result = await asyncio.gather(
            self.census.fetch(address),
            self.nominatim.fetch(address),
            return_exceptions=True,
        )
        return (
            self._settle(self.census.name, address, census_result),
            self._settle(self.nominatim.name, address, geocode_result),
        )

    @staticmethod
    def _settle(provider: str, address: str, result: Any) -> Any:
        if isinstance(result, BaseException):
            if not isinstance(result, Exception):
                # CancelledError / KeyboardInterrupt must propagate
                raise result
            logger.warning("%s lookup failed for %r: %s", provider, address, result)
            return error_payload(provider, result)
        return result


# ---------------------------------------------------------------------------
# Payload parsing
# ---------------------------------------------------------------------------

@dataclass
class CensusMatch:
    matched_address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None


def parse_census(payload: Any) -> CensusMatch:
    """Best-match candidate from a Census response; all fields None otherwise."""
    if not isinstance(payload, dict) or is_error_payload(payload):
        return CensusMatch()
    result = payload.get("result")
    matches = result.get("addressMatches") if isinstance(result, dict) else None
    if not isinstance(matches, list) or not matches or not isinstance(matches[0], dict):
        return CensusMatch()
    best = matches[0]
    components = best.get("addressComponents")
    if not isinstance(components, dict):
        components = {}
    return CensusMatch(
        matched_address=best.get("matchedAddress"),
        city=components.get("city"),
        state=components.get("state"),
        zip=components.get("zip"),
    )


def _to_float(value: Any) -> Optional[float]:
    if value in (None, ""):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def parse_nominatim(payload: Any) -> tuple[Optional[float], Optional[float]]:
    """Numeric lat/lon of the first Nominatim result (strings in the API)."""
    if not isinstance(payload, list) or not payload or not isinstance(payload[0], dict):
        return None, None
    first = payload[0]
    return _to_float(first.get("lat")), _to_float(first.get("lon"))
