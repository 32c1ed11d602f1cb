"""Initial migration — properties, location reference tables, storage objects.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-18
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── countries / states / cities ──
    op.create_table(
        "countries",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("code", sa.String(3), nullable=False),
        sa.Column("phone_code", sa.String(10), nullable=True),
        sa.Column("currency_code", sa.String(3), nullable=True),
    )
    op.create_index("ix_countries_name", "countries", ["name"])

    op.create_table(
        "states",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("code", sa.String(10), nullable=True),
        sa.Column("country_id", sa.String(36), sa.ForeignKey("countries.id", ondelete="CASCADE"), nullable=False),
    )
    op.create_index("ix_states_country_id", "states", ["country_id"])

    op.create_table(
        "cities",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("state_id", sa.String(36), sa.ForeignKey("states.id", ondelete="CASCADE"), nullable=False),
        sa.Column("postal_code", sa.String(20), nullable=True),
    )
    op.create_index("ix_cities_state_id", "cities", ["state_id"])

    # ── properties ──
    op.create_table(
        "properties",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("title", sa.String(500), nullable=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("short_description", sa.String(500), nullable=True),
        # Price
        sa.Column("price", sa.Float, nullable=True),
        sa.Column("currency", sa.String(3), nullable=True, server_default="GBP"),
        sa.Column("negotiable", sa.Boolean, nullable=True, server_default=sa.false()),
        # Classification
        sa.Column("property_type", sa.String(50), nullable=True),
        sa.Column("listing_type", sa.String(20), nullable=True),
        sa.Column("rental_type", sa.String(20), nullable=True),
        sa.Column("status", sa.String(20), nullable=True),
        # Address
        sa.Column("address_line_1", sa.String(255), nullable=True),
        sa.Column("address_line_2", sa.String(255), nullable=True),
        sa.Column("city", sa.String(100), nullable=True),
        sa.Column("state", sa.String(100), nullable=True),
        sa.Column("postcode", sa.String(20), nullable=True),
        sa.Column("zip_code", sa.String(20), nullable=True),
        sa.Column("country", sa.String(100), nullable=True),
        sa.Column("country_id", sa.String(36), nullable=True),
        sa.Column("state_id", sa.String(36), nullable=True),
        sa.Column("city_id", sa.String(36), nullable=True),
        sa.Column("latitude", sa.Float, nullable=True),
        sa.Column("longitude", sa.Float, nullable=True),
        sa.Column("neighborhood", sa.String(255), nullable=True),
        # Characteristics
        sa.Column("bedrooms", sa.Integer, nullable=True),
        sa.Column("bathrooms", sa.Integer, nullable=True),
        sa.Column("balconies", sa.Integer, nullable=True),
        sa.Column("parking_spaces", sa.Integer, nullable=True),
        sa.Column("area", sa.Float, nullable=True),
        sa.Column("area_unit", sa.String(10), nullable=True, server_default="sqft"),
        sa.Column("property_size_sqm", sa.Float, nullable=True),
        sa.Column("floor_number", sa.Integer, nullable=True),
        sa.Column("total_floors", sa.Integer, nullable=True),
        sa.Column("year_built", sa.Integer, nullable=True),
        sa.Column("furnishing", sa.String(20), nullable=True),
        sa.Column("condition", sa.String(20), nullable=True),
        sa.Column("facing", sa.String(20), nullable=True),
        sa.Column("amenities", sa.JSON, nullable=True),
        sa.Column("property_features", sa.JSON, nullable=True),
        # Media
        sa.Column("image_urls", sa.JSON, nullable=True),
        sa.Column("images", sa.JSON, nullable=True),
        sa.Column("image", sa.Text, nullable=True),
        sa.Column("image_url", sa.String(2048), nullable=True),
        sa.Column("video_urls", sa.JSON, nullable=True),
        sa.Column("videos", sa.JSON, nullable=True),
        sa.Column("video_url", sa.String(2048), nullable=True),
        sa.Column("virtual_tour_url", sa.String(2048), nullable=True),
        # Contact
        sa.Column("contact_name", sa.String(255), nullable=True),
        sa.Column("contact_email", sa.String(255), nullable=True),
        sa.Column("contact_phone", sa.String(50), nullable=True),
        sa.Column("company", sa.String(255), nullable=True),
        # Rental terms
        sa.Column("available_from", sa.String(30), nullable=True),
        sa.Column("minimum_lease", sa.Integer, nullable=True),
        sa.Column("deposit", sa.Float, nullable=True),
        sa.Column("maintenance_charges", sa.Float, nullable=True),
        sa.Column("inclusions", sa.Text, nullable=True),
        sa.Column("exclusions", sa.Text, nullable=True),
        # Flags
        sa.Column("featured", sa.Boolean, nullable=True, server_default=sa.false()),
        sa.Column("verified", sa.Boolean, nullable=True, server_default=sa.false()),
        sa.Column("published", sa.Boolean, nullable=True),
        sa.Column("draft", sa.Boolean, nullable=True),
        # Analytics
        sa.Column("views", sa.Integer, nullable=True, server_default="0"),
        sa.Column("inquiries", sa.Integer, nullable=True, server_default="0"),
        sa.Column("favorites", sa.Integer, nullable=True, server_default="0"),
        sa.Column("shares", sa.Integer, nullable=True, server_default="0"),
        sa.Column("agent_id", sa.String(36), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_properties_city", "properties", ["city"])
    op.create_index("ix_properties_agent_id", "properties", ["agent_id"])
    op.create_index("ix_properties_status", "properties", ["status"])
    op.create_index("ix_properties_price", "properties", ["price"])
    op.create_index("ix_properties_created_at", "properties", ["created_at"])

    # ── storage_objects ──
    op.create_table(
        "storage_objects",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("bucket", sa.String(100), nullable=False),
        sa.Column("path", sa.String(1024), nullable=False),
        sa.Column("content_type", sa.String(100), nullable=True),
        sa.Column("size", sa.Integer, nullable=False, server_default="0"),
        sa.Column("data", sa.LargeBinary, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("bucket", "path", name="uq_storage_objects_bucket_path"),
    )
    op.create_index("ix_storage_objects_bucket", "storage_objects", ["bucket"])


def downgrade() -> None:
    op.drop_table("storage_objects")
    op.drop_table("properties")
    op.drop_table("cities")
    op.drop_table("states")
    op.drop_table("countries")
