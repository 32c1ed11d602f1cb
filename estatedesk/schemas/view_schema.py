"""Schemas for the client-side view: filter criteria, sort spec, pagination."""
from typing import List, Optional, Set

from pydantic import BaseModel, Field

from estatedesk.schemas.property_schema import (
    ListingType,
    PropertyEntity,
    PropertyStatus,
    PropertyType,
)


class FilterCriteria(BaseModel):
    """Sparse predicate set — a field left as None places no constraint."""
    search: Optional[str] = None
    property_types: Optional[Set[PropertyType]] = None
    listing_types: Optional[Set[ListingType]] = None
    statuses: Optional[Set[PropertyStatus]] = None

    price_min: Optional[float] = None
    price_max: Optional[float] = None
    bedrooms_min: Optional[int] = None
    bedrooms_max: Optional[int] = None
    bathrooms_min: Optional[int] = None
    bathrooms_max: Optional[int] = None
    area_min: Optional[float] = None
    area_max: Optional[float] = None

    city: Optional[str] = None
    featured: Optional[bool] = None
    verified: Optional[bool] = None
    published: Optional[bool] = None
    agent_id: Optional[str] = None


class SortSpec(BaseModel):
    field: str = "created_at"
    direction: str = Field("desc", pattern="^(asc|desc)$")


class PageRequest(BaseModel):
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1)


class PaginationState(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class ProjectedPage(BaseModel):
    """Visible slice of the collection plus pagination metadata."""
    items: List[PropertyEntity]
    pagination: PaginationState
