"""
Address enrichment service — two-tier cache in front of two geocoders.

Lookup precedence (first hit wins):
  1. process-local MemoryAddressCache   (fresh for 24h)
  2. persistent `address_cache` table   (no TTL, any hit is served)
  3. live fetch: Census + Nominatim concurrently, partial failure tolerated

A live fetch is written to the process-local tier immediately and handed to
the CacheWriteThrough side channel for the persistent tier. The caller never
waits on, nor sees failures of, that write.

Public API
----------
normalize_address(address)                -> str
is_stale(enriched_at, now, stale_days)    -> bool
AddressEnricher.lookup(address)           -> EnrichmentLookup   (raw payloads)
AddressEnricher.enrich(address)           -> EnrichedAddress    (projected)
AddressEnricher.clear_cache()             -> int                (rows deleted)
AddressEnricher.cache_stats()             -> dict
AddressEnricher.aclose()                  -> None
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional, Protocol

import httpx
from fastapi import Request
from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.address_cache import AddressCacheEntry
from app.services.address_cache import MemoryAddressCache
from app.services.geocoders import (
    ProviderPair,
    build_http_client,
    parse_census,
    parse_nominatim,
)

logger = logging.getLogger(__name__)

SOURCE_TAG = "census+osm"

SessionFactory = Callable[[], Session]


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; they are stored as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def normalize_address(address: str) -> str:
    return address.strip().lower()


def is_stale(
    enriched_at: Optional[datetime],
    now: Optional[datetime] = None,
    stale_days: int = settings.ENRICHMENT_STALE_DAYS,
) -> bool:
    """True when there is no timestamp or it is older than `stale_days`."""
    if enriched_at is None:
        return True
    cutoff = (now or _utcnow()) - timedelta(days=stale_days)
    return as_utc(enriched_at) < as_utc(cutoff)


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class EnrichmentLookup:
    """Raw provider payloads plus where they came from."""
    cached: bool
    address: str
    census: Any
    geocode: Any

    def to_data(self) -> dict[str, Any]:
        return {"address": self.address, "census": self.census, "geocode": self.geocode}


@dataclass
class EnrichedAddress:
    """The projected subset stored on Property.enrichment."""
    matched_address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    lat: Optional[float] = None
    lon: Optional[float] = None
    source: str = SOURCE_TAG
    enriched_at: datetime = field(default_factory=_utcnow)
    cached: bool = False

    @classmethod
    def from_lookup(cls, lookup: EnrichmentLookup, now: Optional[datetime] = None) -> "EnrichedAddress":
        census = parse_census(lookup.census)
        lat, lon = parse_nominatim(lookup.geocode)
        return cls(
            matched_address=census.matched_address,
            city=census.city,
            state=census.state,
            zip=census.zip,
            lat=lat,
            lon=lon,
            enriched_at=now or _utcnow(),
            cached=lookup.cached,
        )

    def to_document(self) -> dict[str, Any]:
        return {
            "matched_address": self.matched_address,
            "city": self.city,
            "state": self.state,
            "zip": self.zip,
            "lat": self.lat,
            "lon": self.lon,
            "source": self.source,
            "enriched_at": self.enriched_at.isoformat(),
        }


class Enricher(Protocol):
    """What the property store and the backfill need from an enricher."""
    async def enrich(self, address: str) -> EnrichedAddress: ...


# ---------------------------------------------------------------------------
# Persistent write-through side channel
# ---------------------------------------------------------------------------

class CacheWriteThrough:
    """
    Fire-and-forget upserts into `address_cache`.

    Each write runs as its own asyncio task (in a worker thread, on its own
    session). Failures are logged here and never reach the request that
    triggered them. `drain()` waits for in-flight writes (shutdown, tests).
    """

    def __init__(self, session_factory: SessionFactory):
        self._session_factory = session_factory
        self._pending: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def submit(self, normalized: str, address: str, census: Any, geocode: Any) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(
            self._write(normalized, address, census, geocode),
            name=f"address-cache-write:{normalized}",
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _write(self, normalized: str, address: str, census: Any, geocode: Any) -> None:
        try:
            await asyncio.to_thread(self._upsert, normalized, address, census, geocode)
        except Exception:
            logger.exception("Failed to save %r to the address cache", normalized)

    def _upsert(self, normalized: str, address: str, census: Any, geocode: Any) -> None:
        with self._session_factory() as db:
            entry = db.scalars(
                select(AddressCacheEntry).where(AddressCacheEntry.normalized_address == normalized)
            ).first()
            if entry is None:
                db.add(AddressCacheEntry(
                    normalized_address=normalized,
                    address=address,
                    census_data=census,
                    geocode_data=geocode,
                ))
            else:
                entry.address = address
                entry.census_data = census
                entry.geocode_data = geocode
                entry.updated_at = _utcnow()
            db.commit()


# ---------------------------------------------------------------------------
# Enricher
# ---------------------------------------------------------------------------

class AddressEnricher:
    def __init__(
        self,
        session_factory: SessionFactory,
        providers: Optional[ProviderPair] = None,
        memory_cache: Optional[MemoryAddressCache] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._session_factory = session_factory
        self._owned_client: Optional[httpx.AsyncClient] = None
        if providers is None:
            if http_client is None:
                http_client = self._owned_client = build_http_client()
            providers = ProviderPair.from_client(http_client)
        self.providers = providers
        self.memory_cache = memory_cache if memory_cache is not None else MemoryAddressCache()
        self.write_through = CacheWriteThrough(session_factory)

    # -- lookup --------------------------------------------------------------

    async def lookup(self, address: str) -> EnrichmentLookup:
        key = normalize_address(address)

        hit = self.memory_cache.get(key)
        if hit is not None:
            logger.info("Memory cache hit for %r", address)
            return EnrichmentLookup(True, hit.address, hit.census, hit.geocode)

        stored = await asyncio.to_thread(self._read_persistent, key)
        if stored is not None:
            logger.info("DB cache hit for %r", address)
            entry = self.memory_cache.set(key, *stored)
            return EnrichmentLookup(True, entry.address, entry.census, entry.geocode)

        logger.info("Cache miss, fetching from providers for %r", address)
        census, geocode = await self.providers.fetch_all(address)
        self.memory_cache.set(key, address, census, geocode)
        self.write_through.submit(key, address, census, geocode)
        return EnrichmentLookup(False, address, census, geocode)

    def _read_persistent(self, key: str) -> Optional[tuple[str, Any, Any]]:
        try:
            with self._session_factory() as db:
                entry = db.scalars(
                    select(AddressCacheEntry).where(AddressCacheEntry.normalized_address == key)
                ).first()
                if entry is None:
                    return None
                return entry.address, entry.census_data, entry.geocode_data
        except SQLAlchemyError:
            logger.exception("DB cache lookup failed for %r, falling through to providers", key)
            return None

    async def enrich(self, address: str) -> EnrichedAddress:
        """Projected enrichment for `address`, stamped with the current time."""
        lookup = await self.lookup(address)
        enriched = EnrichedAddress.from_lookup(lookup)
        logger.info(
            "Enrichment complete for %r (cached=%s, matched=%s, coords=%s)",
            address, enriched.cached, enriched.matched_address is not None,
            enriched.lat is not None and enriched.lon is not None,
        )
        return enriched

    # -- admin ---------------------------------------------------------------

    async def clear_cache(self) -> int:
        """Empty both tiers; returns the number of persistent rows removed."""
        await self.write_through.drain()
        self.memory_cache.clear()
        deleted = await asyncio.to_thread(self._delete_persistent)
        logger.info("Address cache cleared (%d persistent entries)", deleted)
        return deleted

    def _delete_persistent(self) -> int:
        with self._session_factory() as db:
            result = db.execute(delete(AddressCacheEntry))
            db.commit()
            return result.rowcount or 0

    async def cache_stats(self) -> dict[str, Any]:
        db_count = await asyncio.to_thread(self._count_persistent)
        return {
            "database": {"total_entries": db_count},
            "memory": self.memory_cache.stats(),
        }

    def _count_persistent(self) -> int:
        with self._session_factory() as db:
            return db.scalar(select(func.count()).select_from(AddressCacheEntry)) or 0

    # -- lifecycle -----------------------------------------------------------

    async def drain(self) -> None:
        await self.write_through.drain()

    async def aclose(self) -> None:
        await self.drain()
        if self._owned_client is not None:
            await self._owned_client.aclose()


# ---------------------------------------------------------------------------
# FastAPI dependency
# ---------------------------------------------------------------------------

def get_enricher(request: Request) -> AddressEnricher:
    """The process-wide enricher built in the app lifespan."""
    return request.app.state.enricher
