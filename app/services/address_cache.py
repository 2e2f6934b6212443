"""
Process-local tier of the address enrichment cache.

A latency optimization in front of the `address_cache` table, never
authoritative. Entries are judged fresh at read time only: nothing is
evicted except by `clear()`, so a long-running process accumulates entries.
Owned by the AddressEnricher instance; tests build their own.
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from app.core.config import settings


@dataclass
class CachedAddress:
    address: str
    census: Any
    geocode: Any
    timestamp: float


class MemoryAddressCache:
    def __init__(
        self,
        ttl_seconds: int = settings.MEMORY_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CachedAddress] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def _is_fresh(self, entry: CachedAddress, now: float) -> bool:
        return now - entry.timestamp < self.ttl_seconds

    def get(self, key: str) -> Optional[CachedAddress]:
        """Return the entry for `key` only while it is younger than the TTL."""
        entry = self._entries.get(key)
        if entry is None or not self._is_fresh(entry, self._clock()):
            return None
        return entry

    def set(self, key: str, address: str, census: Any, geocode: Any) -> CachedAddress:
        entry = CachedAddress(
            address=address, census=census, geocode=geocode, timestamp=self._clock()
        )
        self._entries[key] = entry
        return entry

    def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        return count

    def stats(self) -> dict[str, int]:
        now = self._clock()
        fresh = sum(1 for e in self._entries.values() if self._is_fresh(e, now))
        return {
            "total_entries": len(self._entries),
            "fresh_entries": fresh,
            "stale_entries": len(self._entries) - fresh,
            "ttl": self.ttl_seconds,
        }
