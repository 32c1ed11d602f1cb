"""Properties API router — CRUD, bulk actions, status, counters and the filtered view.
/api/v1/properties

Reads are served from the in-memory store (kept fresh by every mutation and
by POST /refresh); writes go through the store to the backend.
"""
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request

from estatedesk.api.deps import get_store
from estatedesk.api.responses import ok
from estatedesk.config import settings
from estatedesk.core.logging import get_logger
from estatedesk.schemas.base_schema import ApiResponse, Meta
from estatedesk.schemas.property_schema import (
    ListingType,
    PropertyEntity,
    PropertyInput,
    PropertyStatus,
    PropertyType,
)
from estatedesk.schemas.request_schema import (
    BulkDeleteResult,
    BulkIdsRequest,
    BulkStatusRequest,
    StatusUpdateRequest,
)
from estatedesk.schemas.view_schema import FilterCriteria, PageRequest, ProjectedPage, SortSpec
from estatedesk.services.property_store import PropertyStore
from estatedesk.services.view_service import SORT_KEYS, project

logger = get_logger(__name__)

router = APIRouter()


@router.get("", response_model=ApiResponse[ProjectedPage])
async def list_properties(
    request: Request,
    store: PropertyStore = Depends(get_store),
    search: Optional[str] = Query(None),
    property_type: Optional[List[PropertyType]] = Query(None),
    listing_type: Optional[List[ListingType]] = Query(None),
    status: Optional[List[PropertyStatus]] = Query(None),
    price_min: Optional[float] = Query(None),
    price_max: Optional[float] = Query(None),
    bedrooms_min: Optional[int] = Query(None),
    bedrooms_max: Optional[int] = Query(None),
    bathrooms_min: Optional[int] = Query(None),
    bathrooms_max: Optional[int] = Query(None),
    area_min: Optional[float] = Query(None),
    area_max: Optional[float] = Query(None),
    city: Optional[str] = Query(None),
    featured: Optional[bool] = Query(None),
    verified: Optional[bool] = Query(None),
    published: Optional[bool] = Query(None),
    agent_id: Optional[str] = Query(None),
    sort_by: str = Query("created_at", enum=list(SORT_KEYS.keys())),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=100),
):
    """Filtered, sorted and paginated view of the collection."""
    criteria = FilterCriteria(
        search=search,
        property_types=set(property_type) if property_type else None,
        listing_types=set(listing_type) if listing_type else None,
        statuses=set(status) if status else None,
        price_min=price_min,
        price_max=price_max,
        bedrooms_min=bedrooms_min,
        bedrooms_max=bedrooms_max,
        bathrooms_min=bathrooms_min,
        bathrooms_max=bathrooms_max,
        area_min=area_min,
        area_max=area_max,
        city=city,
        featured=featured,
        verified=verified,
        published=published,
        agent_id=agent_id,
    )
    result = project(
        store.list(),
        criteria,
        SortSpec(field=sort_by, direction=sort_order),
        PageRequest(page=page, limit=limit),
    )
    return ok(
        result,
        f"{result.pagination.total} properties found",
        request,
        meta=Meta(**result.pagination.model_dump()).model_dump(),
    )


@router.post("/refresh", response_model=ApiResponse[List[PropertyEntity]])
async def refresh_properties(
    request: Request,
    store: PropertyStore = Depends(get_store),
    agent_id: Optional[str] = Query(None, description="Only load this agent's properties"),
):
    """Reload the collection from the backend."""
    entities = await store.refresh(agent_id=agent_id)
    return ok(entities, f"Loaded {len(entities)} properties", request)


@router.get("/{property_id}", response_model=ApiResponse[PropertyEntity])
async def get_property(
    property_id: str,
    request: Request,
    store: PropertyStore = Depends(get_store),
):
    return ok(store.get(property_id), "Property retrieved", request)


@router.post("", response_model=ApiResponse[PropertyEntity], status_code=201)
async def create_property(
    data: PropertyInput,
    request: Request,
    store: PropertyStore = Depends(get_store),
):
    entity = await store.create(data)
    return ok(entity, "Property created", request)


@router.patch("/{property_id}", response_model=ApiResponse[PropertyEntity])
async def update_property(
    property_id: str,
    data: PropertyInput,
    request: Request,
    store: PropertyStore = Depends(get_store),
):
    """Partial update: only the attributes present in the body are written."""
    entity = await store.update(property_id, data)
    return ok(entity, "Property updated", request)


@router.delete("/{property_id}", response_model=ApiResponse[dict])
async def delete_property(
    property_id: str,
    request: Request,
    store: PropertyStore = Depends(get_store),
):
    await store.delete(property_id)
    return ok({"id": property_id}, "Property deleted", request)


@router.post("/bulk-delete", response_model=ApiResponse[BulkDeleteResult])
async def bulk_delete_properties(
    body: BulkIdsRequest,
    request: Request,
    store: PropertyStore = Depends(get_store),
):
    deleted = await store.bulk_delete(body.ids)
    return ok(BulkDeleteResult(deleted=deleted), f"{deleted} properties deleted", request)


@router.post("/bulk-status", response_model=ApiResponse[List[PropertyEntity]])
async def bulk_update_status(
    body: BulkStatusRequest,
    request: Request,
    store: PropertyStore = Depends(get_store),
):
    entities = await store.bulk_update_status(body.ids, body.status)
    return ok(entities, f"{len(entities)} properties set to {body.status.value}", request)


@router.patch("/{property_id}/status", response_model=ApiResponse[PropertyEntity])
async def update_status(
    property_id: str,
    body: StatusUpdateRequest,
    request: Request,
    store: PropertyStore = Depends(get_store),
):
    entity = await store.update_status(property_id, body.status)
    return ok(entity, f"Property set to {body.status.value}", request)


@router.post("/{property_id}/counters/{counter}", response_model=ApiResponse[PropertyEntity])
async def increment_counter(
    property_id: str,
    counter: str,
    request: Request,
    background_tasks: BackgroundTasks,
    store: PropertyStore = Depends(get_store),
):
    """Bump a view/inquiry/favorite/share counter.

    The response reflects the new value immediately; the write to the backend
    runs after the response is sent.
    """
    entity = store.bump_counter(property_id, counter)
    background_tasks.add_task(
        store.persist_counter, property_id, counter, getattr(entity.analytics, counter)
    )
    return ok(entity, f"{counter} incremented", request)
