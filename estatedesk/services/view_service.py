"""View projection — filter, sort and paginate the in-memory collection.

Pure functions over a sequence of PropertyEntity; no I/O. The listing
endpoint composes them as filter → sort → paginate.
"""
import math
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

from estatedesk.schemas.property_schema import PropertyEntity
from estatedesk.schemas.view_schema import (
    FilterCriteria,
    PageRequest,
    PaginationState,
    ProjectedPage,
    SortSpec,
)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _instant(value: Optional[datetime]) -> datetime:
    if value is None:
        return _EPOCH
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


SORT_KEYS: Dict[str, Callable[[PropertyEntity], Any]] = {
    "price": lambda p: p.price.amount,
    "bedrooms": lambda p: p.rooms.bedrooms,
    "bathrooms": lambda p: p.rooms.bathrooms,
    "area": lambda p: p.area.total,
    "views": lambda p: p.analytics.views,
    "inquiries": lambda p: p.analytics.inquiries,
    "favorites": lambda p: p.analytics.favorites,
    "title": lambda p: p.title.casefold(),
    "created_at": lambda p: _instant(p.created_at),
    "updated_at": lambda p: _instant(p.updated_at),
}


def _in_range(value: float, low: Optional[float], high: Optional[float]) -> bool:
    if low is not None and value < low:
        return False
    if high is not None and value > high:
        return False
    return True


def _search_haystack(entity: PropertyEntity) -> List[str]:
    address = entity.address
    return [
        entity.title,
        entity.description,
        address.line1,
        address.city,
        address.postal_code,
        address.neighborhood,
    ]


def matches(entity: PropertyEntity, criteria: FilterCriteria) -> bool:
    """True when the entity satisfies every criterion that is set.

    Empty sets behave like unset ones: an untouched multi-select never hides
    the whole collection.
    """
    if criteria.search and criteria.search.strip():
        needle = criteria.search.strip().casefold()
        if not any(needle in text.casefold() for text in _search_haystack(entity)):
            return False

    if criteria.property_types and entity.property_type not in criteria.property_types:
        return False
    if criteria.listing_types and entity.listing_type not in criteria.listing_types:
        return False
    if criteria.statuses and entity.status not in criteria.statuses:
        return False

    if not _in_range(entity.price.amount, criteria.price_min, criteria.price_max):
        return False
    if not _in_range(entity.rooms.bedrooms, criteria.bedrooms_min, criteria.bedrooms_max):
        return False
    if not _in_range(entity.rooms.bathrooms, criteria.bathrooms_min, criteria.bathrooms_max):
        return False
    if not _in_range(entity.area.total, criteria.area_min, criteria.area_max):
        return False

    if criteria.city and criteria.city.strip().casefold() not in entity.address.city.casefold():
        return False

    if criteria.featured is not None and entity.featured != criteria.featured:
        return False
    if criteria.verified is not None and entity.verified != criteria.verified:
        return False
    if criteria.published is not None and entity.published != criteria.published:
        return False
    if criteria.agent_id and entity.agent_id != criteria.agent_id:
        return False

    return True


def filter_properties(collection: Sequence[PropertyEntity], criteria: Optional[FilterCriteria]) -> List[PropertyEntity]:
    if criteria is None:
        return list(collection)
    return [entity for entity in collection if matches(entity, criteria)]


def sort_properties(collection: Sequence[PropertyEntity], sort: Optional[SortSpec]) -> List[PropertyEntity]:
    """Stable sort; an unknown field leaves the order untouched."""
    if sort is None:
        return list(collection)
    key = SORT_KEYS.get(sort.field)
    if key is None:
        return list(collection)
    return sorted(collection, key=key, reverse=sort.direction == "desc")


def paginate(items: Sequence[PropertyEntity], page: PageRequest) -> ProjectedPage:
    """Slice one page. A page past the end is empty, never clamped."""
    total = len(items)
    start = (page.page - 1) * page.limit
    return ProjectedPage(
        items=list(items[start:start + page.limit]),
        pagination=PaginationState(
            page=page.page,
            limit=page.limit,
            total=total,
            total_pages=math.ceil(total / page.limit),
        ),
    )


def project(
    collection: Sequence[PropertyEntity],
    criteria: Optional[FilterCriteria] = None,
    sort: Optional[SortSpec] = None,
    page: Optional[PageRequest] = None,
) -> ProjectedPage:
    visible = sort_properties(filter_properties(collection, criteria), sort)
    return paginate(visible, page or PageRequest())
