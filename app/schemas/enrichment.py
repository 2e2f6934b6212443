"""
Enrichment cache and admin backfill response schemas.

GET    /enrich-address              → EnrichAddressResponse
DELETE /enrich-address/cache        → CacheClearResponse
GET    /enrich-address/cache/stats  → CacheStatsResponse
POST   /admin/enrich/backfill       → BackfillResponse
GET    /admin/enrich/stats          → EnrichmentStatsResponse
"""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class EnrichedAddressData(BaseModel):
    """Raw provider payloads; either may be an {error, details} marker."""
    address: str
    census: Any = None
    geocode: Any = None


class EnrichAddressResponse(BaseModel):
    success: bool = True
    cached: bool = Field(description="True when served from either cache tier.")
    data: EnrichedAddressData


class CacheClearResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str = "Cache cleared"
    deleted_count: int = Field(alias="deletedCount")


class DatabaseCacheStats(BaseModel):
    total_entries: int


class MemoryCacheStats(BaseModel):
    total_entries: int
    fresh_entries: int
    stale_entries: int
    ttl: int = Field(description="Process-local freshness window, seconds.")


class CacheStats(BaseModel):
    database: DatabaseCacheStats
    memory: MemoryCacheStats


class CacheStatsResponse(BaseModel):
    success: bool = True
    stats: CacheStats


class BackfillStatsOut(BaseModel):
    processed: int
    updated: int
    skipped: int
    errors: int


class BackfillResponse(BaseModel):
    success: bool = True
    message: str = "Backfill complete"
    stats: BackfillStatsOut


class EnrichmentCoverage(BaseModel):
    total: int
    enriched: int
    missing: int
    stale: int
    fresh: int


class EnrichmentStatsResponse(BaseModel):
    success: bool = True
    stats: EnrichmentCoverage
