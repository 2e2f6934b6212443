"""
Property and Memory — a physical location and the recollections attached to it.

Rules:
- A persisted Property always carries at least one Memory (every creation
  path seeds one).
- Memories are append-only and ordered by submission (insertion id).
- The enrichment snapshot is replaced wholesale, never merged field-by-field.
  `enriched_at` is denormalized into its own column so staleness can be
  queried without decoding JSON.
"""
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import (
    JSON, Boolean, DateTime, Float, ForeignKey, Integer, String, Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class Property(Base):
    __tablename__ = "properties"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    address: Mapped[str] = mapped_column(Text, nullable=False)
    lat: Mapped[float] = mapped_column(Float, nullable=False, index=True)
    lng: Mapped[float] = mapped_column(Float, nullable=False, index=True)
    year_built: Mapped[int | None] = mapped_column(Integer, nullable=True)

    enrichment: Mapped[dict[str, Any] | None] = mapped_column(
        JSON, nullable=True,
        comment="Projected geocoding snapshot (matched_address, city, state, zip, lat, lon, source)",
    )
    enriched_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )

    memories: Mapped[list["Memory"]] = relationship(
        back_populates="property",
        cascade="all, delete-orphan",
        order_by="Memory.id",
        lazy="selectin",
    )

    def touch(self) -> None:
        self.updated_at = _utcnow()

    def set_enrichment(
        self,
        document: Optional[dict[str, Any]],
        enriched_at: Optional[datetime],
    ) -> None:
        """Overwrite the enrichment snapshot (or drop it when document is None)."""
        self.enrichment = document
        self.enriched_at = enriched_at if document is not None else None
        self.touch()


class Memory(Base):
    __tablename__ = "memories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    property_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    text: Mapped[str] = mapped_column(Text, nullable=False)
    submitter_name: Mapped[str] = mapped_column(String(255), nullable=False)
    contact: Mapped[str | None] = mapped_column(String(255), nullable=True)
    photo_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Residency; is_current implies no year_moved_out.
    year_moved_in: Mapped[int | None] = mapped_column(Integer, nullable=True)
    year_moved_out: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_current: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )

    property: Mapped[Property] = relationship(back_populates="memories")
