"""
Enrichment backfill — batch refresh of Property.enrichment.

Candidates are properties with no enrichment, no timestamp, or a timestamp
older than the staleness window. They are processed under a fixed-size
semaphore (5 permits by default) so at most that many enrichment calls are in
flight; each permit is held for an extra ~1.1s after a successful update to
stay under Nominatim's 1 request/second policy.

Public API
----------
select_candidates(db, limit, now)                          -> list[Property]
run_backfill(db, enricher, limit, concurrency, delay)      -> BackfillStats
enrichment_stats(db, now)                                  -> dict
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.property import Property
from app.services.enrichment import EnrichedAddress, Enricher, is_stale

logger = logging.getLogger(__name__)


@dataclass
class BackfillStats:
    processed: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


def _cutoff(now: Optional[datetime]) -> datetime:
    now = now or datetime.now(tz=timezone.utc)
    return now - timedelta(days=settings.ENRICHMENT_STALE_DAYS)


def select_candidates(
    db: Session,
    limit: int = settings.BACKFILL_DEFAULT_LIMIT,
    now: Optional[datetime] = None,
) -> list[Property]:
    """Properties missing enrichment or carrying a stale snapshot, oldest first."""
    stmt = (
        select(Property)
        .where(or_(Property.enriched_at.is_(None), Property.enriched_at < _cutoff(now)))
        .order_by(Property.created_at)
        .limit(limit)
    )
    return list(db.scalars(stmt).all())


def _reload(db: Session, prop: Property) -> tuple[bool, str]:
    db.refresh(prop)
    return not is_stale(prop.enriched_at), prop.address


def _apply(db: Session, prop: Property, enriched: EnrichedAddress) -> None:
    prop.set_enrichment(enriched.to_document(), enriched.enriched_at)
    db.commit()


async def run_backfill(
    db: Session,
    enricher: Enricher,
    limit: int = settings.BACKFILL_DEFAULT_LIMIT,
    concurrency: int = settings.BACKFILL_CONCURRENCY,
    delay_seconds: float = settings.BACKFILL_DELAY_SECONDS,
) -> BackfillStats:
    """
    Refresh enrichment for up to `limit` candidates.

    Only the selection query can fail the call; every per-property fault is
    counted in `errors` and the batch carries on.
    """
    candidates = await asyncio.to_thread(select_candidates, db, limit)
    targets = [(prop, prop.id) for prop in candidates]
    logger.info("Backfill starting: %d candidate(s), limit=%d", len(targets), limit)

    stats = BackfillStats()
    permits = asyncio.Semaphore(concurrency)
    # Every slot shares one Session; only one worker thread may touch it at a time.
    session_lock = asyncio.Lock()

    async def _in_session(fn, *args):
        async with session_lock:
            return await asyncio.to_thread(fn, *args)

    async def _process(prop: Property, prop_id: str) -> None:
        async with permits:
            stats.processed += 1
            try:
                # Another request may have refreshed it since selection.
                fresh, address = await _in_session(_reload, db, prop)
                if fresh:
                    stats.skipped += 1
                    logger.info("Skipping property %s (enrichment fresh)", prop_id)
                    return

                enriched = await enricher.enrich(address)
                await _in_session(_apply, db, prop, enriched)
                stats.updated += 1
                logger.info("Updated enrichment for property %s", prop_id)
            except Exception:
                await _in_session(db.rollback)
                stats.errors += 1
                logger.exception("Backfill failed for property %s", prop_id)
                return

            await asyncio.sleep(delay_seconds)

    await asyncio.gather(*(_process(prop, prop_id) for prop, prop_id in targets))

    logger.info("Backfill complete: %s", stats.as_dict())
    return stats


def enrichment_stats(db: Session, now: Optional[datetime] = None) -> dict[str, int]:
    cutoff = _cutoff(now)
    total = db.scalar(select(func.count()).select_from(Property)) or 0
    enriched = db.scalar(
        select(func.count()).select_from(Property).where(Property.enriched_at.is_not(None))
    ) or 0
    stale = db.scalar(
        select(func.count()).select_from(Property).where(Property.enriched_at < cutoff)
    ) or 0
    return {
        "total": total,
        "enriched": enriched,
        "missing": total - enriched,
        "stale": stale,
        "fresh": enriched - stale,
    }
