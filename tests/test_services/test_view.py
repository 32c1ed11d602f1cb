"""Tests for view service — filtering, sorting and pagination of the collection."""
from datetime import datetime, timedelta, timezone

import pytest

from estatedesk.schemas.property_schema import (
    Address,
    Analytics,
    Area,
    ListingType,
    Price,
    PropertyEntity,
    PropertyStatus,
    PropertyType,
    Rooms,
)
from estatedesk.schemas.view_schema import FilterCriteria, PageRequest, SortSpec
from estatedesk.services.view_service import filter_properties, matches, paginate, project, sort_properties

BASE_TIME = datetime(2026, 1, 1, tzinfo=timezone.utc)


def make_entity(index: int, **overrides) -> PropertyEntity:
    fields = {
        "id": f"p{index}",
        "title": f"Property {index}",
        "price": Price(amount=100000.0 * index),
        "property_type": PropertyType.APARTMENT,
        "listing_type": ListingType.SALE,
        "status": PropertyStatus.PUBLISHED,
        "address": Address(city="London", postal_code=f"E{index} 1AA"),
        "rooms": Rooms(bedrooms=index, bathrooms=1),
        "area": Area(total=500.0 + index),
        "published": True,
        "draft": False,
        "created_at": BASE_TIME + timedelta(days=index),
    }
    fields.update(overrides)
    return PropertyEntity(**fields)


@pytest.fixture
def collection():
    return [
        make_entity(1, title="Riverside flat", address=Address(city="London", line1="1 Thames Walk")),
        make_entity(2, property_type=PropertyType.HOUSE, address=Address(city="Manchester")),
        make_entity(3, listing_type=ListingType.RENT, featured=True),
        make_entity(4, status=PropertyStatus.DRAFT, published=False, draft=True, agent_id="agent-7"),
    ]


class TestMatches:
    def test_empty_criteria_matches_everything(self, collection):
        assert filter_properties(collection, FilterCriteria()) == collection
        assert filter_properties(collection, None) == collection

    def test_search_is_case_insensitive(self, collection):
        result = filter_properties(collection, FilterCriteria(search="THAMES"))
        assert [p.id for p in result] == ["p1"]

    def test_search_covers_postcode(self, collection):
        result = filter_properties(collection, FilterCriteria(search="e3 1aa"))
        assert [p.id for p in result] == ["p3"]

    def test_property_type_set(self, collection):
        criteria = FilterCriteria(property_types={PropertyType.HOUSE})
        assert [p.id for p in filter_properties(collection, criteria)] == ["p2"]

    def test_empty_set_is_no_constraint(self, collection):
        criteria = FilterCriteria(property_types=set(), statuses=set())
        assert len(filter_properties(collection, criteria)) == 4

    def test_price_range_inclusive(self, collection):
        criteria = FilterCriteria(price_min=200000, price_max=300000)
        assert [p.id for p in filter_properties(collection, criteria)] == ["p2", "p3"]

    def test_bedrooms_min(self, collection):
        criteria = FilterCriteria(bedrooms_min=3)
        assert [p.id for p in filter_properties(collection, criteria)] == ["p3", "p4"]

    def test_city_substring(self, collection):
        criteria = FilterCriteria(city="manch")
        assert [p.id for p in filter_properties(collection, criteria)] == ["p2"]

    def test_flags(self, collection):
        assert [p.id for p in filter_properties(collection, FilterCriteria(featured=True))] == ["p3"]
        assert [p.id for p in filter_properties(collection, FilterCriteria(published=False))] == ["p4"]

    def test_agent(self, collection):
        assert matches(collection[3], FilterCriteria(agent_id="agent-7"))
        assert not matches(collection[0], FilterCriteria(agent_id="agent-7"))

    def test_criteria_combine(self, collection):
        criteria = FilterCriteria(listing_types={ListingType.SALE}, city="london", bedrooms_max=1)
        assert [p.id for p in filter_properties(collection, criteria)] == ["p1"]


class TestSort:
    def test_price_desc(self, collection):
        result = sort_properties(collection, SortSpec(field="price", direction="desc"))
        assert [p.id for p in result] == ["p4", "p3", "p2", "p1"]

    def test_created_at_asc(self, collection):
        result = sort_properties(list(reversed(collection)), SortSpec(field="created_at", direction="asc"))
        assert [p.id for p in result] == ["p1", "p2", "p3", "p4"]

    def test_title_ignores_case(self):
        items = [make_entity(1, title="beta"), make_entity(2, title="Alpha")]
        result = sort_properties(items, SortSpec(field="title", direction="asc"))
        assert [p.title for p in result] == ["Alpha", "beta"]

    def test_ties_keep_input_order(self):
        items = [
            make_entity(1, analytics=Analytics(views=5)),
            make_entity(2, analytics=Analytics(views=9)),
            make_entity(3, analytics=Analytics(views=5)),
        ]
        asc = sort_properties(items, SortSpec(field="views", direction="asc"))
        desc = sort_properties(items, SortSpec(field="views", direction="desc"))
        assert [p.id for p in asc] == ["p1", "p3", "p2"]
        assert [p.id for p in desc] == ["p2", "p1", "p3"]

    def test_unknown_field_is_a_no_op(self, collection):
        result = sort_properties(collection, SortSpec(field="colour", direction="asc"))
        assert result == collection

    def test_missing_dates_sort_first(self):
        items = [make_entity(1), make_entity(2, created_at=None)]
        result = sort_properties(items, SortSpec(field="created_at", direction="asc"))
        assert [p.id for p in result] == ["p2", "p1"]


class TestPaginate:
    def test_pages(self):
        items = [make_entity(i) for i in range(1, 26)]
        page = paginate(items, PageRequest(page=3, limit=10))
        assert len(page.items) == 5
        assert page.pagination.total == 25
        assert page.pagination.total_pages == 3
        assert page.items[0].id == "p21"

    def test_page_past_the_end_is_empty(self):
        items = [make_entity(i) for i in range(1, 6)]
        page = paginate(items, PageRequest(page=4, limit=2))
        assert page.items == []
        assert page.pagination.page == 4
        assert page.pagination.total_pages == 3

    def test_empty_collection(self):
        page = paginate([], PageRequest())
        assert page.pagination.total == 0
        assert page.pagination.total_pages == 0
        assert page.pagination.limit == 10


class TestProject:
    def test_filter_then_sort_then_page(self, collection):
        page = project(
            collection,
            FilterCriteria(published=True),
            SortSpec(field="price", direction="desc"),
            PageRequest(page=1, limit=2),
        )
        assert [p.id for p in page.items] == ["p3", "p2"]
        assert page.pagination.total == 3
        assert page.pagination.total_pages == 2

    def test_input_is_not_mutated(self, collection):
        before = [p.id for p in collection]
        project(collection, sort=SortSpec(field="price", direction="desc"))
        assert [p.id for p in collection] == before
