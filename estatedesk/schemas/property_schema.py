"""Canonical PropertyEntity — the strongly-typed in-memory representation.

Everything above the mapper works with these models; only the mapper and the
backend adapters ever see the loosely-typed persisted row. Input models
(`PropertyInput` and friends) are fully optional so that a partial update only
carries the attributes the caller actually set.
"""
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class PropertyType(str, Enum):
    APARTMENT = "apartment"
    HOUSE = "house"
    VILLA = "villa"
    STUDIO = "studio"
    TOWNHOUSE = "townhouse"
    BUNGALOW = "bungalow"
    LAND = "land"
    COMMERCIAL = "commercial"
    OFFICE = "office"
    OTHER = "other"


class ListingType(str, Enum):
    SALE = "sale"
    RENT = "rent"
    LEASE = "lease"
    SHARED = "shared"
    OTHER = "other"


class PropertyStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    UNDER_OFFER = "under_offer"
    SOLD = "sold"
    LET = "let"
    ARCHIVED = "archived"


COUNTER_NAMES = ("views", "inquiries", "favorites", "shares")


class Price(BaseModel):
    amount: float = 0.0
    currency: str = "GBP"
    negotiable: bool = False


class Address(BaseModel):
    line1: str = ""
    line2: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country: str = ""
    country_code: str = ""         # derived from country
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    neighborhood: str = ""


class Area(BaseModel):
    total: float = 0.0
    unit: str = "sqft"


class Rooms(BaseModel):
    bedrooms: int = 0
    bathrooms: int = 0
    balconies: int = 0
    parking: int = 0


class MediaItem(BaseModel):
    id: str
    url: str
    is_primary: bool = False
    order: int = 0


class Contact(BaseModel):
    name: str = ""
    email: str = ""
    phone: str = ""
    company: str = ""


class Analytics(BaseModel):
    views: int = 0
    inquiries: int = 0
    favorites: int = 0
    shares: int = 0


class PropertyEntity(BaseModel):
    """Canonical property — strongly typed, schema-variance free."""
    id: str
    title: str = ""
    description: str = ""
    short_description: str = ""

    price: Price = Price()
    property_type: PropertyType = PropertyType.OTHER
    listing_type: ListingType = ListingType.SALE
    status: PropertyStatus = PropertyStatus.DRAFT

    address: Address = Address()
    area: Area = Area()
    rooms: Rooms = Rooms()
    floor_number: int = 0
    total_floors: int = 0
    year_built: Optional[int] = None
    furnishing: str = "unfurnished"
    condition: str = "good"
    facing: str = ""
    amenities: List[str] = []

    images: List[MediaItem] = []
    videos: List[MediaItem] = []
    virtual_tour_url: str = ""

    contact: Contact = Contact()

    available_from: str = ""
    deposit: float = 0.0
    minimum_lease: int = 0
    maintenance_charges: float = 0.0
    inclusions: str = ""
    exclusions: str = ""

    analytics: Analytics = Analytics()

    published: bool = False
    draft: bool = True
    featured: bool = False
    verified: bool = False

    agent_id: Optional[str] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def primary_image(self) -> Optional[MediaItem]:
        for item in self.images:
            if item.is_primary:
                return item
        return self.images[0] if self.images else None


class PriceInput(BaseModel):
    amount: Optional[float] = None
    currency: Optional[str] = Field(None, max_length=3)
    negotiable: Optional[bool] = None


class AddressInput(BaseModel):
    line1: Optional[str] = None
    line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    neighborhood: Optional[str] = None


class AreaInput(BaseModel):
    total: Optional[float] = None
    unit: Optional[str] = None


class RoomsInput(BaseModel):
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    balconies: Optional[int] = None
    parking: Optional[int] = None


class ContactInput(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    company: Optional[str] = None


class PropertyInput(BaseModel):
    """Partial property used for create and update (all fields optional).

    Analytics counters are deliberately absent: they only change through the
    increment operation.
    """
    title: Optional[str] = None
    description: Optional[str] = None
    short_description: Optional[str] = None
    price: Optional[PriceInput] = None
    property_type: Optional[PropertyType] = None
    listing_type: Optional[ListingType] = None
    status: Optional[PropertyStatus] = None
    address: Optional[AddressInput] = None
    area: Optional[AreaInput] = None
    rooms: Optional[RoomsInput] = None
    floor_number: Optional[int] = None
    total_floors: Optional[int] = None
    year_built: Optional[int] = None
    furnishing: Optional[str] = None
    condition: Optional[str] = None
    facing: Optional[str] = None
    amenities: Optional[List[str]] = None
    images: Optional[List[str]] = None
    videos: Optional[List[str]] = None
    virtual_tour_url: Optional[str] = None
    contact: Optional[ContactInput] = None
    available_from: Optional[str] = None
    deposit: Optional[float] = None
    minimum_lease: Optional[int] = None
    maintenance_charges: Optional[float] = None
    inclusions: Optional[str] = None
    exclusions: Optional[str] = None
    published: Optional[bool] = None
    featured: Optional[bool] = None
    verified: Optional[bool] = None
    agent_id: Optional[str] = None
