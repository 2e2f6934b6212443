"""
Property / Memory router.

GET    /properties                  — All properties
POST   /properties                  — Create property with its first memory
POST   /properties/memories         — Find-or-create by proximity, append memory
POST   /properties/nearby           — Haversine radius search
GET    /properties/{id}             — Single property (refreshes stale enrichment)
PUT    /properties/{id}             — Replace address / coordinates / year built
DELETE /properties/{id}             — Remove property and its memories
POST   /properties/{id}/memories    — Append memory to a known property
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.errors import MissingParameterError
from app.db.base import get_db
from app.models.property import Memory, Property
from app.schemas.common import ErrorResponse
from app.schemas.property import (
    DeleteResponse,
    EnrichmentOut,
    MemoryRequest,
    MemoryResponse,
    NearbyRequest,
    PropertyCreateRequest,
    PropertyResponse,
    PropertyUpdateRequest,
    ResidencyOut,
)
from app.services import properties as svc
from app.services.enrichment import AddressEnricher, get_enricher

router = APIRouter(prefix="/properties", tags=["properties"])

_NOT_FOUND = {404: {"model": ErrorResponse, "description": "Property not found."}}
_BAD_REQUEST = {400: {"model": ErrorResponse, "description": "Validation or persistence fault."}}


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------

def _iso(value: Optional[datetime]) -> str:
    return value.isoformat() if value else ""


def _memory_to_response(m: Memory) -> MemoryResponse:
    return MemoryResponse(
        id=m.id,
        text=m.text,
        submitter_name=m.submitter_name,
        contact=m.contact,
        photo_url=m.photo_url,
        residency=ResidencyOut(
            year_moved_in=m.year_moved_in,
            year_moved_out=m.year_moved_out,
            current=m.is_current,
        ),
        submitted_at=_iso(m.submitted_at),
    )


def _property_to_response(p: Property) -> PropertyResponse:
    return PropertyResponse(
        id=p.id,
        address=p.address,
        lat=p.lat,
        lng=p.lng,
        year_built=p.year_built,
        memories=[_memory_to_response(m) for m in p.memories],
        enrichment=EnrichmentOut(**p.enrichment) if p.enrichment else None,
        created_at=_iso(p.created_at),
        updated_at=_iso(p.updated_at),
    )


def _memory_input(payload: MemoryRequest) -> svc.MemoryInput:
    residency = None
    if payload.residency is not None:
        residency = svc.ResidencyInput(
            year_moved_in=payload.residency.year_moved_in,
            year_moved_out=payload.residency.year_moved_out,
            current=payload.residency.current,
        )
    return svc.MemoryInput(
        text=payload.text,
        submitter_name=payload.submitter_name,
        contact=payload.contact,
        photo_url=payload.photo_url,
        residency=residency,
    )


# ---------------------------------------------------------------------------
# Collection routes
# ---------------------------------------------------------------------------

@router.get("", response_model=list[PropertyResponse], summary="List all properties")
def list_properties(db: Session = Depends(get_db)):
    return [_property_to_response(p) for p in svc.list_properties(db)]


@router.post(
    "",
    response_model=PropertyResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a property with its first memory",
    responses=_BAD_REQUEST,
)
async def create_property(
    payload: PropertyCreateRequest,
    db: Session = Depends(get_db),
    enricher: AddressEnricher = Depends(get_enricher),
):
    """
    Store a new property seeded with one memory.

    The address is enriched (Census + Nominatim) before saving; if enrichment
    fails the property is still created, just without an `enrichment` block.
    """
    prop = await svc.create_property(
        db, enricher,
        address=payload.address,
        lat=payload.lat,
        lng=payload.lng,
        year_built=payload.year_built,
        memory=_memory_input(payload),
    )
    return _property_to_response(prop)


@router.post(
    "/memories",
    response_model=PropertyResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a memory at a location, creating the property if needed",
    responses=_BAD_REQUEST,
)
async def add_memory_by_location(
    payload: PropertyCreateRequest,
    db: Session = Depends(get_db),
    enricher: AddressEnricher = Depends(get_enricher),
):
    """
    Attach the memory to an existing property within ±0.001° (~100m) of the
    given coordinates, or create a new property for it.
    """
    prop = await svc.find_or_create_by_proximity(
        db, enricher,
        address=payload.address,
        lat=payload.lat,
        lng=payload.lng,
        year_built=payload.year_built,
        memory=_memory_input(payload),
    )
    return _property_to_response(prop)


@router.post(
    "/nearby",
    response_model=list[PropertyResponse],
    summary="Properties within a radius (miles)",
    responses={400: {"model": ErrorResponse, "description": "Latitude and longitude are required."}},
)
def nearby(payload: NearbyRequest, db: Session = Depends(get_db)):
    if payload.lat is None or payload.lng is None:
        raise MissingParameterError("Latitude and longitude are required", parameter="lat,lng")
    found = svc.find_nearby(db, payload.lat, payload.lng, radius_miles=payload.radius)
    return [_property_to_response(p) for p in found]


# ---------------------------------------------------------------------------
# Item routes
# ---------------------------------------------------------------------------

@router.get(
    "/{property_id}",
    response_model=PropertyResponse,
    summary="Retrieve a property",
    responses=_NOT_FOUND,
)
async def get_property(
    property_id: str,
    db: Session = Depends(get_db),
    enricher: AddressEnricher = Depends(get_enricher),
):
    """Stale (or missing) enrichment is refreshed and saved before responding."""
    prop = await svc.get_property(db, enricher, property_id)
    return _property_to_response(prop)


@router.put(
    "/{property_id}",
    response_model=PropertyResponse,
    summary="Update a property",
    responses={**_NOT_FOUND, **_BAD_REQUEST},
)
def update_property(
    property_id: str,
    payload: PropertyUpdateRequest,
    db: Session = Depends(get_db),
):
    prop = svc.update_property(db, property_id, payload.model_dump(exclude_unset=True))
    return _property_to_response(prop)


@router.delete(
    "/{property_id}",
    response_model=DeleteResponse,
    summary="Delete a property",
    responses=_NOT_FOUND,
)
def delete_property(property_id: str, db: Session = Depends(get_db)):
    svc.delete_property(db, property_id)
    return DeleteResponse(message="Property deleted successfully")


@router.post(
    "/{property_id}/memories",
    response_model=PropertyResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Append a memory to a property",
    responses={**_NOT_FOUND, **_BAD_REQUEST},
)
def add_memory(
    property_id: str,
    payload: MemoryRequest,
    db: Session = Depends(get_db),
):
    prop = svc.add_memory(db, property_id, _memory_input(payload))
    return _property_to_response(prop)
