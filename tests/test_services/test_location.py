"""Tests for location lookups and their cache."""
import pytest

from estatedesk.services.location_service import LocationCache, LocationLookupService


@pytest.fixture
def seeded(fake_backend):
    fake_backend.seed(
        "countries",
        {"id": "c-gb", "name": "United Kingdom", "code": "GB"},
        {"id": "c-np", "name": "Nepal", "code": "np"},
    )
    fake_backend.seed("states", {"id": "s-eng", "name": "England", "country_id": "c-gb"})
    fake_backend.seed("cities", {"id": "ci-ldn", "name": "London", "state_id": "s-eng"})
    return fake_backend


@pytest.mark.asyncio
async def test_countries_are_cached(seeded):
    lookup = LocationLookupService(seeded)
    first = await lookup.countries()
    second = await lookup.countries()
    assert [c.name for c in first] == ["Nepal", "United Kingdom"]
    assert first == second
    assert len(seeded.calls_of("select")) == 1


@pytest.mark.asyncio
async def test_cache_is_shared_between_services(seeded):
    cache = LocationCache()
    await LocationLookupService(seeded, cache).states("c-gb")
    states = await LocationLookupService(seeded, cache).states("c-gb")
    assert [s.name for s in states] == ["England"]
    assert len(seeded.calls_of("select")) == 1


@pytest.mark.asyncio
async def test_empty_city_lists_are_not_cached(seeded):
    lookup = LocationLookupService(seeded)
    assert await lookup.cities("s-none") == []
    assert await lookup.cities("s-none") == []
    assert len(seeded.calls_of("select")) == 2

    await lookup.cities("s-eng")
    await lookup.cities("s-eng")
    assert len(seeded.calls_of("select")) == 3


@pytest.mark.asyncio
async def test_by_id(seeded):
    lookup = LocationLookupService(seeded)
    assert (await lookup.country_by_id("c-gb")).code == "GB"
    assert (await lookup.state_by_id("s-eng")).name == "England"
    assert (await lookup.city_by_id("ci-ldn")).name == "London"
    assert await lookup.city_by_id("missing") is None


@pytest.mark.asyncio
async def test_country_code_static_first(seeded):
    lookup = LocationLookupService(seeded)
    assert await lookup.country_code("uk") == "GB"
    assert seeded.calls == []


@pytest.mark.asyncio
async def test_country_code_from_table(seeded):
    lookup = LocationLookupService(seeded)
    assert await lookup.country_code("nepal") == "NP"
    assert await lookup.country_code("Narnia") == ""
