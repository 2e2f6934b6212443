"""
Property / Memory request and response schemas.

POST /properties                  → PropertyCreateRequest  → PropertyResponse
POST /properties/{id}/memories    → MemoryRequest          → PropertyResponse
POST /properties/memories         → PropertyCreateRequest  → PropertyResponse
PUT  /properties/{id}             → PropertyUpdateRequest  → PropertyResponse
POST /properties/nearby           → NearbyRequest          → list[PropertyResponse]
"""
from __future__ import annotations

from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

Latitude = Annotated[float, Field(ge=-90, le=90, examples=[40.7128])]
Longitude = Annotated[float, Field(ge=-180, le=180, examples=[-74.0060])]


def _strip_required(v):
    stripped = v.strip() if isinstance(v, str) else v
    if not stripped:
        raise ValueError("must not be empty after stripping whitespace")
    return stripped


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class ResidencyIn(BaseModel):
    year_moved_in: Optional[int] = Field(default=None, ge=1000, le=3000, examples=[1987])
    year_moved_out: Optional[int] = Field(
        default=None, ge=1000, le=3000,
        description="Ignored when `current` is true.",
        examples=[1999],
    )
    current: bool = Field(default=False, description="Submitter still lives here.")


class MemoryRequest(BaseModel):
    """One person's memory of a place."""
    text: Annotated[str, Field(
        min_length=1,
        max_length=10_000,
        description="The memory itself.",
        examples=["We planted the maple out front the summer my sister was born."],
    )]
    submitter_name: Annotated[str, Field(min_length=1, max_length=255, examples=["Dana R."])]
    contact: Optional[str] = Field(default=None, max_length=255)
    photo_url: Optional[str] = Field(
        default=None,
        description="URL of an already-uploaded photo.",
    )
    residency: Optional[ResidencyIn] = None

    @field_validator("text", "submitter_name", mode="before")
    @classmethod
    def strip_and_check_empty(cls, v: str) -> str:
        return _strip_required(v)


class PropertyCreateRequest(MemoryRequest):
    """A location plus the memory that introduces it."""
    address: Annotated[str, Field(min_length=1, max_length=1_000, examples=["123 Main St, Springfield, IL"])]
    lat: Latitude
    lng: Longitude
    year_built: Optional[int] = Field(default=None, ge=1000, le=3000, examples=[1924])

    @field_validator("address", mode="before")
    @classmethod
    def strip_address(cls, v: str) -> str:
        return _strip_required(v)


class PropertyUpdateRequest(BaseModel):
    """Fields omitted from the body are left unchanged."""
    address: Optional[str] = Field(default=None, min_length=1, max_length=1_000)
    lat: Optional[Latitude] = None
    lng: Optional[Longitude] = None
    year_built: Optional[int] = Field(default=None, ge=1000, le=3000)

    @field_validator("address", "lat", "lng", mode="before")
    @classmethod
    def reject_explicit_null(cls, v, info):
        # Omit a field to keep it; these columns cannot be cleared.
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        if info.field_name == "address":
            return _strip_required(v)
        return v


class NearbyRequest(BaseModel):
    lat: Optional[float] = Field(default=None, ge=-90, le=90)
    lng: Optional[float] = Field(default=None, ge=-180, le=180)
    radius: float = Field(default=1.0, gt=0, description="Search radius in miles.")


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class ResidencyOut(BaseModel):
    year_moved_in: Optional[int] = None
    year_moved_out: Optional[int] = None
    current: bool = False


class MemoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    text: str
    submitter_name: str
    contact: Optional[str] = None
    photo_url: Optional[str] = None
    residency: ResidencyOut = Field(default_factory=ResidencyOut)
    submitted_at: str


class EnrichmentOut(BaseModel):
    matched_address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    lat: Optional[float] = None
    lon: Optional[float] = None
    source: str
    enriched_at: Optional[str] = None


class PropertyResponse(BaseModel):
    """A property with its memories in submission order."""
    id: str
    address: str
    lat: float
    lng: float
    year_built: Optional[int] = None
    memories: list[MemoryResponse] = Field(default_factory=list)
    enrichment: Optional[EnrichmentOut] = None
    created_at: str
    updated_at: str


class DeleteResponse(BaseModel):
    success: bool = True
    message: str
