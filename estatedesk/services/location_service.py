"""Location lookups — countries, states and cities with an explicit cache.

The cache is an object owned by whoever builds the service (the app lifespan
or a test), never module state, and it only ever grows: reference data does
not change while the process runs. Empty city lists are not cached because
cities are added lazily by the data team.
"""
from typing import Dict, List, Optional

from estatedesk.core.logging import get_logger
from estatedesk.schemas.location_schema import CityInfo, CountryInfo, StateInfo
from estatedesk.services.backend_client import Backend
from estatedesk.services.mapper_service import resolve_country_code

logger = get_logger(__name__)


class LocationCache:
    def __init__(self):
        self.countries: Optional[List[CountryInfo]] = None
        self.states_by_country: Dict[str, List[StateInfo]] = {}
        self.cities_by_state: Dict[str, List[CityInfo]] = {}
        self.countries_by_id: Dict[str, CountryInfo] = {}
        self.states_by_id: Dict[str, StateInfo] = {}
        self.cities_by_id: Dict[str, CityInfo] = {}

    def clear(self) -> None:
        self.__init__()


class LocationLookupService:
    def __init__(
        self,
        backend: Backend,
        cache: Optional[LocationCache] = None,
        countries_table: str = "countries",
        states_table: str = "states",
        cities_table: str = "cities",
    ):
        self.backend = backend
        self.cache = cache or LocationCache()
        self.countries_table = countries_table
        self.states_table = states_table
        self.cities_table = cities_table

    async def countries(self) -> List[CountryInfo]:
        if self.cache.countries is None:
            rows = await self.backend.select(self.countries_table, order=("name", "asc"))
            countries = [CountryInfo.model_validate(row) for row in rows]
            self.cache.countries = countries
            for country in countries:
                self.cache.countries_by_id[country.id] = country
            logger.debug("Cached %d countries", len(countries), extra={"table": self.countries_table})
        return list(self.cache.countries)

    async def states(self, country_id: str) -> List[StateInfo]:
        if country_id not in self.cache.states_by_country:
            rows = await self.backend.select(
                self.states_table, {"country_id": country_id}, order=("name", "asc")
            )
            states = [StateInfo.model_validate(row) for row in rows]
            self.cache.states_by_country[country_id] = states
            for state in states:
                self.cache.states_by_id[state.id] = state
        return list(self.cache.states_by_country[country_id])

    async def cities(self, state_id: str) -> List[CityInfo]:
        cached = self.cache.cities_by_state.get(state_id)
        if cached is not None:
            return list(cached)
        rows = await self.backend.select(self.cities_table, {"state_id": state_id}, order=("name", "asc"))
        cities = [CityInfo.model_validate(row) for row in rows]
        if cities:
            self.cache.cities_by_state[state_id] = cities
        for city in cities:
            self.cache.cities_by_id[city.id] = city
        return cities

    async def country_by_id(self, country_id: str) -> Optional[CountryInfo]:
        if country_id not in self.cache.countries_by_id:
            await self.countries()
        return self.cache.countries_by_id.get(country_id)

    async def state_by_id(self, state_id: str) -> Optional[StateInfo]:
        if state_id not in self.cache.states_by_id:
            rows = await self.backend.select(self.states_table, {"id": state_id})
            if not rows:
                return None
            self.cache.states_by_id[state_id] = StateInfo.model_validate(rows[0])
        return self.cache.states_by_id[state_id]

    async def city_by_id(self, city_id: str) -> Optional[CityInfo]:
        if city_id not in self.cache.cities_by_id:
            rows = await self.backend.select(self.cities_table, {"id": city_id})
            if not rows:
                return None
            self.cache.cities_by_id[city_id] = CityInfo.model_validate(rows[0])
        return self.cache.cities_by_id[city_id]

    async def country_code(self, name: str) -> str:
        """ISO code for a country name: static aliases first, then the countries table."""
        code = resolve_country_code(name)
        if code or not name:
            return code
        wanted = name.strip().lower()
        for country in await self.countries():
            if country.name.strip().lower() == wanted:
                return (country.code or "").upper()
        return ""
