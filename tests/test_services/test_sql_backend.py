"""Tests for the SQL backend adapter on the sqlite test database."""
import pytest

from estatedesk.core.exceptions import BackendError
from estatedesk.services.backend_client import is_schema_cache_error
from estatedesk.services.property_store import PropertyStore
from tests.conftest import make_property_payload, make_record


@pytest.mark.asyncio
async def test_insert_and_select(sql_backend):
    row = await sql_backend.insert("properties", make_record(id="p1", title="Flat"))
    assert row["id"] == "p1"
    assert row["title"] == "Flat"

    rows = await sql_backend.select("properties", {"id": "p1"})
    assert [r["title"] for r in rows] == ["Flat"]


@pytest.mark.asyncio
async def test_defaults_applied_on_insert(sql_backend):
    row = await sql_backend.insert("properties", {"title": "Bare"})
    assert len(row["id"]) == 36
    assert row["views"] == 0
    assert row["published"] is None
    assert row["created_at"] is not None


@pytest.mark.asyncio
async def test_select_in_filter_and_order(sql_backend):
    await sql_backend.insert("properties", make_record(id="a", created_at="2026-01-01T00:00:00+00:00"))
    await sql_backend.insert("properties", make_record(id="b", created_at="2026-02-01T00:00:00+00:00"))
    await sql_backend.insert("properties", make_record(id="c", created_at="2026-03-01T00:00:00+00:00"))
    rows = await sql_backend.select("properties", {"id": ["a", "c"]}, ("created_at", "desc"))
    assert [r["id"] for r in rows] == ["c", "a"]


@pytest.mark.asyncio
async def test_update_and_update_many(sql_backend):
    await sql_backend.insert("properties", make_record(id="a"))
    await sql_backend.insert("properties", make_record(id="b"))

    row = await sql_backend.update("properties", "a", {"title": "Renamed"})
    assert row["title"] == "Renamed"

    rows = await sql_backend.update_many("properties", ["a", "b"], {"status": "sold"})
    assert {r["status"] for r in rows} == {"sold"}


@pytest.mark.asyncio
async def test_update_missing_row(sql_backend):
    with pytest.raises(BackendError) as exc:
        await sql_backend.update("properties", "missing", {"title": "x"})
    assert exc.value.code == "PGRST116"


@pytest.mark.asyncio
async def test_delete(sql_backend):
    await sql_backend.insert("properties", make_record(id="a"))
    await sql_backend.insert("properties", make_record(id="b"))
    await sql_backend.delete("properties", ["a", "b"])
    assert await sql_backend.select("properties") == []


@pytest.mark.asyncio
async def test_unknown_column_looks_like_schema_cache_error(sql_backend):
    with pytest.raises(BackendError) as exc:
        await sql_backend.insert("properties", {"title": "x", "hologram_url": "y"})
    assert exc.value.code == "PGRST204"
    assert is_schema_cache_error(exc.value)


@pytest.mark.asyncio
async def test_unknown_table(sql_backend):
    with pytest.raises(BackendError) as exc:
        await sql_backend.select("listings")
    assert exc.value.code == "PGRST205"


@pytest.mark.asyncio
async def test_storage_round_trip(sql_backend):
    await sql_backend.upload_object("property-images", "properties/1.jpg", b"jpeg-bytes", "image/jpeg")
    stored = await sql_backend.get_object("property-images", "properties/1.jpg")
    assert stored.data == b"jpeg-bytes"
    assert stored.size == 10
    assert sql_backend.get_public_url("property-images", "properties/1.jpg") == (
        "http://test/api/v1/media/property-images/properties/1.jpg"
    )

    await sql_backend.remove_object("property-images", "properties/1.jpg")
    assert await sql_backend.get_object("property-images", "properties/1.jpg") is None


@pytest.mark.asyncio
async def test_storage_rules(sql_backend):
    with pytest.raises(BackendError) as exc:
        await sql_backend.upload_object("uploads", "a.mp4", b"x", "video/mp4")
    assert exc.value.code == "415"

    with pytest.raises(BackendError) as exc:
        await sql_backend.upload_object("nope", "a.jpg", b"x", "image/jpeg")
    assert exc.value.code == "404"

    await sql_backend.upload_object("uploads", "a.jpg", b"x", "image/jpeg")
    with pytest.raises(BackendError) as exc:
        await sql_backend.upload_object("uploads", "a.jpg", b"x", "image/jpeg")
    assert exc.value.code == "409"


@pytest.mark.asyncio
async def test_store_on_sql_backend(sql_backend):
    store = PropertyStore(sql_backend)
    created = await store.create(make_property_payload())
    updated = await store.update(created.id, {"rooms": {"bedrooms": 3}})
    assert updated.rooms.bedrooms == 3
    assert updated.title == created.title

    reloaded = PropertyStore(sql_backend)
    entities = await reloaded.refresh()
    assert [e.id for e in entities] == [created.id]
    assert [m.url for m in entities[0].images] == [m.url for m in created.images]
