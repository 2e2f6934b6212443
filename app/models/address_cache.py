"""
AddressCacheEntry — persistent tier of the address enrichment cache.

Stores the raw provider payloads keyed by normalized address. A payload may
itself be an error marker ({"error": ..., "details": ...}) when the provider
failed at fetch time. No TTL is enforced on this table: any hit is served.
"""
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class AddressCacheEntry(Base):
    __tablename__ = "address_cache"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    normalized_address: Mapped[str] = mapped_column(
        String(512), nullable=False, unique=True, index=True
    )
    address: Mapped[str] = mapped_column(
        Text, nullable=False, comment="Original casing, for display"
    )
    census_data: Mapped[Any] = mapped_column(JSON, nullable=True)
    geocode_data: Mapped[Any] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )
