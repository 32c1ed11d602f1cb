"""Tests for the PostgREST/Storage adapter, using httpx.MockTransport."""
import json

import httpx
import pytest

from estatedesk.core.exceptions import BackendError
from estatedesk.services.backend_client import SupabaseBackend, is_schema_cache_error


def make_backend(handler):
    return SupabaseBackend("https://proj.supabase.co/", "anon-key", transport=httpx.MockTransport(handler))


class TestIsSchemaCacheError:
    def test_codes(self):
        assert is_schema_cache_error(BackendError("PGRST204", "x"))
        assert is_schema_cache_error(BackendError("PGRST205", "x"))

    def test_message(self):
        assert is_schema_cache_error(BackendError("400", "Could not find column in the Schema Cache"))

    def test_other(self):
        assert not is_schema_cache_error(BackendError("23505", "duplicate key"))
        assert not is_schema_cache_error(ValueError("schema cache"))


@pytest.mark.asyncio
async def test_select_sends_filters_and_auth():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["request"] = request
        return httpx.Response(200, json=[{"id": "p1"}])

    backend = make_backend(handler)
    rows = await backend.select("properties", {"agent_id": "u1", "id": ["a", "b"]}, ("created_at", "desc"))
    await backend.aclose()

    request = seen["request"]
    assert rows == [{"id": "p1"}]
    assert request.url.path == "/rest/v1/properties"
    assert request.url.params["agent_id"] == "eq.u1"
    assert request.url.params["id"] == "in.(a,b)"
    assert request.url.params["order"] == "created_at.desc"
    assert request.headers["apikey"] == "anon-key"
    assert request.headers["authorization"] == "Bearer anon-key"


@pytest.mark.asyncio
async def test_insert_asks_for_representation():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        assert request.headers["prefer"] == "return=representation"
        body = json.loads(request.content)
        return httpx.Response(201, json=[{"id": "new", **body}])

    backend = make_backend(handler)
    row = await backend.insert("properties", {"title": "T"})
    assert row == {"id": "new", "title": "T"}


@pytest.mark.asyncio
async def test_postgrest_error_is_parsed():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            400,
            json={
                "code": "PGRST204",
                "message": "Could not find the 'videos' column of 'properties' in the schema cache",
                "details": None,
                "hint": None,
            },
        )

    backend = make_backend(handler)
    with pytest.raises(BackendError) as exc:
        await backend.insert("properties", {"videos": []})
    assert exc.value.code == "PGRST204"
    assert is_schema_cache_error(exc.value)


@pytest.mark.asyncio
async def test_update_with_no_rows_is_not_found():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["id"] == "eq.p1"
        return httpx.Response(200, json=[])

    backend = make_backend(handler)
    with pytest.raises(BackendError) as exc:
        await backend.update("properties", "p1", {"title": "x"})
    assert exc.value.code == "PGRST116"


@pytest.mark.asyncio
async def test_delete_many_uses_in_filter():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["id"] = request.url.params["id"]
        return httpx.Response(204)

    backend = make_backend(handler)
    await backend.delete("properties", ["a", "b"])
    assert seen["id"] == "in.(a,b)"


@pytest.mark.asyncio
async def test_network_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    backend = make_backend(handler)
    with pytest.raises(BackendError) as exc:
        await backend.select("properties")
    assert exc.value.code == "NETWORK_ERROR"


@pytest.mark.asyncio
async def test_storage_upload_and_public_url():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["request"] = request
        return httpx.Response(200, json={"Key": "property-images/properties/1.jpg"})

    backend = make_backend(handler)
    await backend.upload_object("property-images", "properties/1.jpg", b"jpeg", "image/jpeg")

    request = seen["request"]
    assert request.method == "POST"
    assert request.url.path == "/storage/v1/object/property-images/properties/1.jpg"
    assert request.headers["content-type"] == "image/jpeg"
    assert request.content == b"jpeg"
    assert backend.get_public_url("property-images", "properties/1.jpg") == (
        "https://proj.supabase.co/storage/v1/object/public/property-images/properties/1.jpg"
    )


@pytest.mark.asyncio
async def test_storage_error_is_parsed():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"statusCode": "415", "error": "invalid_mime_type", "message": "mime type video/mp4 is not supported"})

    backend = make_backend(handler)
    with pytest.raises(BackendError) as exc:
        await backend.upload_object("uploads", "a.mp4", b"x", "video/mp4")
    assert exc.value.code == "415"
    assert "not supported" in exc.value.message


def test_requires_url():
    with pytest.raises(ValueError):
        SupabaseBackend("", "key")
