"""
Property / Memory store.

Public API
----------
create_property(db, enricher, address, lat, lng, year_built, memory)       -> Property
add_memory(db, property_id, memory)                                        -> Property
find_or_create_by_proximity(db, enricher, address, lat, lng, year_built, memory) -> Property
get_property(db, enricher, property_id)                                    -> Property  (lazy refresh)
list_properties(db)                                                        -> list[Property]
find_nearby(db, lat, lng, radius_miles)                                    -> list[Property]
update_property(db, property_id, changes)                                  -> Property
delete_property(db, property_id)                                           -> None
haversine_miles(lat1, lng1, lat2, lng2)                                    -> float

Enrichment is best-effort on every path: a failed enrichment is logged and
the property is stored (or returned) without a fresh snapshot.

The async operations run their Session work in a worker thread
(`asyncio.to_thread`), one call at a time, so the event loop is never blocked
on the database while a request awaits the geocoders.
"""
from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import PropertyNotFoundError, PropertyPersistenceError
from app.models.property import Memory, Property
from app.services.enrichment import EnrichedAddress, Enricher, is_stale

logger = logging.getLogger(__name__)

EARTH_RADIUS_MILES = 3959


# ---------------------------------------------------------------------------
# Input DTOs (keep the service layer schema-agnostic)
# ---------------------------------------------------------------------------

@dataclass
class ResidencyInput:
    year_moved_in: Optional[int] = None
    year_moved_out: Optional[int] = None
    current: bool = False


@dataclass
class MemoryInput:
    text: str
    submitter_name: str
    contact: Optional[str] = None
    photo_url: Optional[str] = None
    residency: Optional[ResidencyInput] = None


def build_memory(fields: MemoryInput) -> Memory:
    residency = fields.residency or ResidencyInput()
    return Memory(
        text=fields.text,
        submitter_name=fields.submitter_name,
        contact=fields.contact,
        photo_url=fields.photo_url,
        year_moved_in=residency.year_moved_in,
        # Still living there: no move-out year.
        year_moved_out=None if residency.current else residency.year_moved_out,
        is_current=residency.current,
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def haversine_miles(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_MILES * c


async def _try_enrich(enricher: Enricher, address: str) -> Optional[EnrichedAddress]:
    try:
        return await enricher.enrich(address)
    except Exception:
        logger.exception("Enrichment failed for %r, continuing without it", address)
        return None


def _save(db: Session, prop: Property, failure_message: str) -> Property:
    try:
        db.add(prop)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception(failure_message)
        raise PropertyPersistenceError(message=failure_message, error=str(exc)) from exc
    db.refresh(prop)
    return prop


def _get_or_404(db: Session, property_id: str) -> Property:
    prop = db.get(Property, property_id)
    if prop is None:
        raise PropertyNotFoundError(property_id=property_id)
    return prop


def find_in_box(
    db: Session,
    lat: float,
    lng: float,
    degrees: float = settings.PROXIMITY_DEGREES,
) -> Optional[Property]:
    """First property inside the ±degrees lat/lng box (bucketing, not nearest)."""
    stmt = (
        select(Property)
        .where(
            Property.lat >= lat - degrees,
            Property.lat <= lat + degrees,
            Property.lng >= lng - degrees,
            Property.lng <= lng + degrees,
        )
        .limit(1)
    )
    return db.scalars(stmt).first()


# ---------------------------------------------------------------------------
# Public — writes
# ---------------------------------------------------------------------------

async def create_property(
    db: Session,
    enricher: Enricher,
    address: str,
    lat: float,
    lng: float,
    year_built: Optional[int],
    memory: MemoryInput,
) -> Property:
    """Persist a new property seeded with one memory and (if available) enrichment."""
    enriched = await _try_enrich(enricher, address)

    prop = Property(
        address=address,
        lat=lat,
        lng=lng,
        year_built=year_built,
        memories=[build_memory(memory)],
    )
    if enriched is not None:
        prop.set_enrichment(enriched.to_document(), enriched.enriched_at)

    prop = await asyncio.to_thread(_save, db, prop, "Error creating property")
    logger.info("Created property %s at (%s, %s)", prop.id, lat, lng)
    return prop


def _append(db: Session, prop: Property, memory: MemoryInput, failure_message: str) -> Property:
    prop.memories.append(build_memory(memory))
    prop.touch()
    return _save(db, prop, failure_message)


def add_memory(db: Session, property_id: str, memory: MemoryInput) -> Property:
    prop = _get_or_404(db, property_id)
    return _append(db, prop, memory, "Error adding memory")


async def find_or_create_by_proximity(
    db: Session,
    enricher: Enricher,
    address: str,
    lat: float,
    lng: float,
    year_built: Optional[int],
    memory: MemoryInput,
) -> Property:
    """
    Attach the memory to the first property within ±0.001° (~100m), or create
    a new property for it.

    Read-then-write with no cross-request lock: two concurrent submissions at
    the same new location can both miss and each create a property.
    """
    existing = await asyncio.to_thread(find_in_box, db, lat, lng)
    if existing is not None:
        logger.info("Memory attached to nearby property %s", existing.id)
        return await asyncio.to_thread(
            _append, db, existing, memory, "Error adding memory to property"
        )

    return await create_property(db, enricher, address, lat, lng, year_built, memory)


def update_property(db: Session, property_id: str, changes: dict[str, Any]) -> Property:
    """
    Replace address / lat / lng / year_built with the supplied values.
    A new address invalidates the enrichment snapshot; the next read refreshes it.
    """
    prop = _get_or_404(db, property_id)
    new_address = changes.get("address")
    if new_address is not None and new_address != prop.address:
        prop.set_enrichment(None, None)
    for key in ("address", "lat", "lng", "year_built"):
        if key in changes:
            setattr(prop, key, changes[key])
    prop.touch()
    return _save(db, prop, "Error updating property")


def delete_property(db: Session, property_id: str) -> None:
    prop = _get_or_404(db, property_id)
    db.delete(prop)
    db.commit()
    logger.info("Deleted property %s", property_id)


# ---------------------------------------------------------------------------
# Public — reads
# ---------------------------------------------------------------------------

async def get_property(db: Session, enricher: Enricher, property_id: str) -> Property:
    """Fetch a property, refreshing a stale enrichment snapshot before returning it."""
    prop = await asyncio.to_thread(_get_or_404, db, property_id)
    if is_stale(prop.enriched_at):
        logger.info("Enrichment stale for property %s, refreshing", prop.id)
        enriched = await _try_enrich(enricher, prop.address)
        if enriched is not None:
            await asyncio.to_thread(_store_enrichment, db, prop, enriched)
    return prop


def _store_enrichment(db: Session, prop: Property, enriched: EnrichedAddress) -> None:
    prop.set_enrichment(enriched.to_document(), enriched.enriched_at)
    db.commit()
    db.refresh(prop)


def list_properties(db: Session) -> list[Property]:
    return list(db.scalars(select(Property).order_by(Property.created_at)).all())


def find_nearby(
    db: Session,
    lat: float,
    lng: float,
    radius_miles: float = settings.NEARBY_DEFAULT_RADIUS_MILES,
) -> list[Property]:
    """Full scan with in-process haversine filtering; no spatial index."""
    return [
        p for p in db.scalars(select(Property)).all()
        if haversine_miles(lat, lng, p.lat, p.lng) <= radius_miles
    ]
