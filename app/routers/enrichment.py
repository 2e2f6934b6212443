"""
Address enrichment router.

GET    /enrich-address?address=     — Raw Census + Nominatim payloads (cached)
DELETE /enrich-address/cache        — Clear both cache tiers
GET    /enrich-address/cache/stats  — Cache sizes and process-local freshness
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.core.errors import CacheOperationError, EnrichmentError, MissingParameterError
from app.schemas.common import ErrorResponse
from app.schemas.enrichment import (
    CacheClearResponse,
    CacheStatsResponse,
    EnrichAddressResponse,
    EnrichedAddressData,
)
from app.services.enrichment import AddressEnricher, get_enricher

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/enrich-address", tags=["enrichment"])

_SERVER_ERROR = {500: {"model": ErrorResponse, "description": "Unexpected fault."}}


@router.get(
    "",
    response_model=EnrichAddressResponse,
    summary="Enrich an address with Census and OpenStreetMap data",
    responses={
        400: {"model": ErrorResponse, "description": "Missing `address` parameter."},
        **_SERVER_ERROR,
    },
)
async def enrich_address(
    address: Optional[str] = Query(
        default=None,
        description="Free-text address.",
        examples=["1600 Pennsylvania Ave NW, Washington, DC"],
    ),
    enricher: AddressEnricher = Depends(get_enricher),
):
    """
    Look the address up in the process-local cache (24h), then the persistent
    cache, then query both providers in parallel.

    A provider that fails or times out is reported inline as
    `{"error": ..., "details": ...}` in place of its payload; the request
    itself still succeeds.
    """
    if not address or not address.strip():
        raise MissingParameterError("Address query parameter is required", parameter="address")

    try:
        lookup = await enricher.lookup(address)
    except Exception as exc:
        logger.exception("Failed to enrich %r", address)
        raise EnrichmentError(error=str(exc)) from exc

    return EnrichAddressResponse(
        cached=lookup.cached,
        data=EnrichedAddressData(**lookup.to_data()),
    )


@router.delete(
    "/cache",
    response_model=CacheClearResponse,
    summary="Clear the address enrichment cache",
    responses=_SERVER_ERROR,
)
async def clear_cache(enricher: AddressEnricher = Depends(get_enricher)):
    try:
        deleted = await enricher.clear_cache()
    except Exception as exc:
        logger.exception("Error clearing address cache")
        raise CacheOperationError("Failed to clear cache", error=str(exc)) from exc
    return CacheClearResponse(deleted_count=deleted)


@router.get(
    "/cache/stats",
    response_model=CacheStatsResponse,
    summary="Address cache statistics",
    responses=_SERVER_ERROR,
)
async def cache_stats(enricher: AddressEnricher = Depends(get_enricher)):
    try:
        stats = await enricher.cache_stats()
    except Exception as exc:
        logger.exception("Error getting address cache stats")
        raise CacheOperationError("Failed to get cache stats", error=str(exc)) from exc
    return CacheStatsResponse(stats=stats)
