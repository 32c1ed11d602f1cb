"""Property SQLAlchemy model — the persisted row shape, legacy columns included."""
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    Index,
    Integer,
    JSON,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from estatedesk.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class PropertyRow(Base):
    __tablename__ = "properties"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)

    title: Mapped[Optional[str]] = mapped_column(String(500))
    description: Mapped[Optional[str]] = mapped_column(Text)
    short_description: Mapped[Optional[str]] = mapped_column(String(500))

    price: Mapped[Optional[float]] = mapped_column(Float)
    currency: Mapped[Optional[str]] = mapped_column(String(3), default="GBP")
    negotiable: Mapped[Optional[bool]] = mapped_column(Boolean, default=False)

    property_type: Mapped[Optional[str]] = mapped_column(String(50), comment="apartment, house, villa, ...")
    listing_type: Mapped[Optional[str]] = mapped_column(String(20), comment="sale, rent, lease, ...")
    rental_type: Mapped[Optional[str]] = mapped_column(String(20), comment="Legacy alias of listing_type")
    status: Mapped[Optional[str]] = mapped_column(String(20), comment="draft, published, under_offer, sold, let")

    address_line_1: Mapped[Optional[str]] = mapped_column(String(255))
    address_line_2: Mapped[Optional[str]] = mapped_column(String(255))
    city: Mapped[Optional[str]] = mapped_column(String(100), index=True)
    state: Mapped[Optional[str]] = mapped_column(String(100))
    postcode: Mapped[Optional[str]] = mapped_column(String(20))
    zip_code: Mapped[Optional[str]] = mapped_column(String(20), comment="Legacy alias of postcode")
    country: Mapped[Optional[str]] = mapped_column(String(100))
    country_id: Mapped[Optional[str]] = mapped_column(String(36))
    state_id: Mapped[Optional[str]] = mapped_column(String(36))
    city_id: Mapped[Optional[str]] = mapped_column(String(36))
    latitude: Mapped[Optional[float]] = mapped_column(Float)
    longitude: Mapped[Optional[float]] = mapped_column(Float)
    neighborhood: Mapped[Optional[str]] = mapped_column(String(255))

    bedrooms: Mapped[Optional[int]] = mapped_column(Integer)
    bathrooms: Mapped[Optional[int]] = mapped_column(Integer)
    balconies: Mapped[Optional[int]] = mapped_column(Integer)
    parking_spaces: Mapped[Optional[int]] = mapped_column(Integer)
    area: Mapped[Optional[float]] = mapped_column(Float)
    area_unit: Mapped[Optional[str]] = mapped_column(String(10), default="sqft")
    property_size_sqm: Mapped[Optional[float]] = mapped_column(Float, comment="Legacy area in m²")
    floor_number: Mapped[Optional[int]] = mapped_column(Integer)
    total_floors: Mapped[Optional[int]] = mapped_column(Integer)
    year_built: Mapped[Optional[int]] = mapped_column(Integer)
    furnishing: Mapped[Optional[str]] = mapped_column(String(20))
    condition: Mapped[Optional[str]] = mapped_column(String(20))
    facing: Mapped[Optional[str]] = mapped_column(String(20))
    amenities: Mapped[Optional[list]] = mapped_column(JSON)
    property_features: Mapped[Optional[list]] = mapped_column(JSON, comment="Legacy alias of amenities")

    image_urls: Mapped[Optional[list]] = mapped_column(JSON)
    images: Mapped[Optional[list]] = mapped_column(JSON, comment="Legacy: array or JSON-encoded string")
    image: Mapped[Optional[str]] = mapped_column(Text, comment="Legacy single image (or JSON array)")
    image_url: Mapped[Optional[str]] = mapped_column(String(2048), comment="Legacy single image URL")
    video_urls: Mapped[Optional[list]] = mapped_column(JSON)
    videos: Mapped[Optional[list]] = mapped_column(JSON, comment="Legacy: array or JSON-encoded string")
    video_url: Mapped[Optional[str]] = mapped_column(String(2048), comment="Legacy single video URL")
    virtual_tour_url: Mapped[Optional[str]] = mapped_column(String(2048))

    contact_name: Mapped[Optional[str]] = mapped_column(String(255))
    contact_email: Mapped[Optional[str]] = mapped_column(String(255))
    contact_phone: Mapped[Optional[str]] = mapped_column(String(50))
    company: Mapped[Optional[str]] = mapped_column(String(255))

    available_from: Mapped[Optional[str]] = mapped_column(String(30))
    minimum_lease: Mapped[Optional[int]] = mapped_column(Integer, comment="Months")
    deposit: Mapped[Optional[float]] = mapped_column(Float)
    maintenance_charges: Mapped[Optional[float]] = mapped_column(Float)
    inclusions: Mapped[Optional[str]] = mapped_column(Text)
    exclusions: Mapped[Optional[str]] = mapped_column(Text)

    featured: Mapped[Optional[bool]] = mapped_column(Boolean, default=False)
    verified: Mapped[Optional[bool]] = mapped_column(Boolean, default=False)
    published: Mapped[Optional[bool]] = mapped_column(Boolean, comment="NULL on legacy rows: status decides")
    draft: Mapped[Optional[bool]] = mapped_column(Boolean)

    views: Mapped[Optional[int]] = mapped_column(Integer, default=0)
    inquiries: Mapped[Optional[int]] = mapped_column(Integer, default=0)
    favorites: Mapped[Optional[int]] = mapped_column(Integer, default=0)
    shares: Mapped[Optional[int]] = mapped_column(Integer, default=0)

    agent_id: Mapped[Optional[str]] = mapped_column(String(36), index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("ix_properties_status", "status"),
        Index("ix_properties_price", "price"),
        Index("ix_properties_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<PropertyRow(id={self.id}, title='{self.title}', status={self.status})>"
