"""
Admin enrichment router.

POST /admin/enrich/backfill?limit=  — Refresh missing / stale property enrichment
GET  /admin/enrich/stats            — Enrichment coverage across all properties
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import BackfillError
from app.db.base import get_db
from app.schemas.common import ErrorResponse
from app.schemas.enrichment import BackfillResponse, EnrichmentStatsResponse
from app.services.backfill import enrichment_stats, run_backfill
from app.services.enrichment import AddressEnricher, get_enricher

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/enrich", tags=["admin"])


@router.post(
    "/backfill",
    response_model=BackfillResponse,
    summary="Backfill property enrichment",
    responses={500: {"model": ErrorResponse, "description": "Candidate selection failed."}},
)
async def backfill(
    limit: int = Query(
        default=settings.BACKFILL_DEFAULT_LIMIT,
        ge=1,
        le=10_000,
        description="Maximum number of properties to process.",
    ),
    db: Session = Depends(get_db),
    enricher: AddressEnricher = Depends(get_enricher),
):
    """
    Enrich properties that have no enrichment or a snapshot older than 30 days.

    At most 5 enrichments run at once and each slot is held ~1.1s after an
    update (Nominatim allows ~1 request/second), so large batches take a while.
    Individual failures are counted in `stats.errors` and never abort the run.
    """
    try:
        stats = await run_backfill(
            db,
            enricher,
            limit=limit,
            concurrency=settings.BACKFILL_CONCURRENCY,
            delay_seconds=settings.BACKFILL_DELAY_SECONDS,
        )
    except SQLAlchemyError as exc:
        logger.exception("Backfill failed")
        raise BackfillError("Backfill failed", error=str(exc)) from exc
    return BackfillResponse(stats=stats.as_dict())


@router.get(
    "/stats",
    response_model=EnrichmentStatsResponse,
    summary="Enrichment coverage statistics",
    responses={500: {"model": ErrorResponse, "description": "Store unavailable."}},
)
def stats(db: Session = Depends(get_db)):
    try:
        coverage = enrichment_stats(db)
    except SQLAlchemyError as exc:
        logger.exception("Enrichment stats failed")
        raise BackfillError("Failed to get stats", error=str(exc)) from exc
    return EnrichmentStatsResponse(stats=coverage)
