"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- properties ---
    op.create_table(
        "properties",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("address", sa.Text(), nullable=False),
        sa.Column("lat", sa.Float(), nullable=False),
        sa.Column("lng", sa.Float(), nullable=False),
        sa.Column("year_built", sa.Integer(), nullable=True),
        sa.Column("enrichment", sa.JSON(), nullable=True),
        sa.Column("enriched_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_properties_lat", "properties", ["lat"])
    op.create_index("ix_properties_lng", "properties", ["lng"])
    op.create_index("ix_properties_enriched_at", "properties", ["enriched_at"])

    # --- memories ---
    op.create_table(
        "memories",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("property_id", sa.String(36), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("submitter_name", sa.String(255), nullable=False),
        sa.Column("contact", sa.String(255), nullable=True),
        sa.Column("photo_url", sa.Text(), nullable=True),
        sa.Column("year_moved_in", sa.Integer(), nullable=True),
        sa.Column("year_moved_out", sa.Integer(), nullable=True),
        sa.Column("is_current", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["property_id"], ["properties.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_memories_property_id", "memories", ["property_id"])

    # --- address_cache ---
    op.create_table(
        "address_cache",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("normalized_address", sa.String(512), nullable=False),
        sa.Column("address", sa.Text(), nullable=False),
        sa.Column("census_data", sa.JSON(), nullable=True),
        sa.Column("geocode_data", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_address_cache_normalized_address", "address_cache", ["normalized_address"], unique=True
    )


def downgrade() -> None:
    op.drop_index("ix_address_cache_normalized_address", table_name="address_cache")
    op.drop_table("address_cache")
    op.drop_index("ix_memories_property_id", table_name="memories")
    op.drop_table("memories")
    op.drop_index("ix_properties_enriched_at", table_name="properties")
    op.drop_index("ix_properties_lng", table_name="properties")
    op.drop_index("ix_properties_lat", table_name="properties")
    op.drop_table("properties")
