"""Test fixtures — in-memory fake backend, async test client, test database, factories."""
from typing import Any, AsyncGenerator, Dict, List, Mapping, Optional, Sequence, Tuple, Union
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from estatedesk.api.deps import verify_api_key
from estatedesk.core.exceptions import BackendError
from estatedesk.database import Base
from estatedesk.main import app, build_store, build_uploader, storage_buckets
from estatedesk.services.backend_client import NOT_FOUND_CODE, id_list
from estatedesk.services.location_service import LocationLookupService
from estatedesk.services.sql_backend import SqlBackend


TEST_DATABASE_URL = "sqlite+aiosqlite:///./test.db"

# NullPool: each test runs on its own event loop
test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
test_session_factory = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

FAKE_STORAGE_URL = "https://fake.supabase.co"


class FakeBackend:
    """In-memory Backend with scriptable failures.

    `fail(operation, *errors)` queues errors raised by the next calls of an
    operation ("select", "insert", "update", "update_many", "delete",
    "upload_object", "remove_object"). `reject_bucket` makes every upload to
    a bucket fail.
    """

    def __init__(self):
        self.tables: Dict[str, Dict[str, dict]] = {}
        self.objects: Dict[Tuple[str, str], Tuple[bytes, Optional[str]]] = {}
        self.calls: List[Tuple[str, Any]] = []
        self._failures: Dict[str, List[BaseException]] = {}
        self._rejected_buckets: Dict[str, str] = {}

    def seed(self, table: str, *rows: Mapping[str, Any]) -> None:
        store = self.tables.setdefault(table, {})
        for row in rows:
            row = dict(row)
            row.setdefault("id", str(uuid4()))
            store[str(row["id"])] = row

    def fail(self, operation: str, *errors: BaseException) -> None:
        self._failures.setdefault(operation, []).extend(errors)

    def reject_bucket(self, bucket: str, reason: str = "mime type not supported") -> None:
        self._rejected_buckets[bucket] = reason

    def calls_of(self, operation: str) -> List[Any]:
        return [args for name, args in self.calls if name == operation]

    def _enter(self, operation: str, args: Any) -> None:
        self.calls.append((operation, args))
        queue = self._failures.get(operation)
        if queue:
            raise queue.pop(0)

    async def select(self, table, filters=None, order=None):
        self._enter("select", (table, dict(filters or {}), order))
        rows = list(self.tables.get(table, {}).values())
        for key, value in (filters or {}).items():
            if isinstance(value, (list, tuple, set)):
                rows = [r for r in rows if r.get(key) in value]
            else:
                rows = [r for r in rows if r.get(key) == value]
        if order:
            column, direction = order
            rows.sort(key=lambda r: str(r.get(column) or ""), reverse=direction == "desc")
        return [dict(r) for r in rows]

    async def insert(self, table, row):
        self._enter("insert", (table, dict(row)))
        row = dict(row)
        row.setdefault("id", str(uuid4()))
        self.tables.setdefault(table, {})[row["id"]] = row
        return dict(row)

    async def update(self, table, row_id, row):
        self._enter("update", (table, row_id, dict(row)))
        existing = self.tables.get(table, {}).get(row_id)
        if existing is None:
            raise BackendError(NOT_FOUND_CODE, f"No row with id '{row_id}' in '{table}'")
        existing.update(row)
        return dict(existing)

    async def update_many(self, table, row_ids, row):
        self._enter("update_many", (table, list(row_ids), dict(row)))
        updated = []
        for row_id in row_ids:
            existing = self.tables.get(table, {}).get(row_id)
            if existing is not None:
                existing.update(row)
                updated.append(dict(existing))
        return updated

    async def delete(self, table, row_ids: Union[str, Sequence[str]]):
        ids = id_list(row_ids)
        self._enter("delete", (table, ids))
        for row_id in ids:
            self.tables.get(table, {}).pop(row_id, None)

    async def upload_object(self, bucket, path, data, content_type=None):
        self._enter("upload_object", (bucket, path))
        if bucket in self._rejected_buckets:
            raise BackendError("400", self._rejected_buckets[bucket])
        self.objects[(bucket, path)] = (data, content_type)
        return path

    async def remove_object(self, bucket, path):
        self._enter("remove_object", (bucket, path))
        self.objects.pop((bucket, path), None)

    def get_public_url(self, bucket, path):
        return f"{FAKE_STORAGE_URL}/storage/v1/object/public/{bucket}/{path}"

    async def aclose(self):
        return None


class SleepRecorder:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create tables and yield a test database session."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with test_session_factory() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def sql_backend(db_session: AsyncSession) -> SqlBackend:
    return SqlBackend(test_session_factory, public_base_url="http://test", buckets=storage_buckets())


@pytest_asyncio.fixture(scope="function")
async def client(sql_backend: SqlBackend) -> AsyncGenerator[AsyncClient, None]:
    """Yield an HTTP test client wired to a SQL backend on the test DB.

    The lifespan does not run under ASGITransport, so app.state is filled here.
    """
    app.state.backend = sql_backend
    app.state.store = build_store(sql_backend, LocationLookupService(sql_backend))
    app.state.store.base_delay = 0
    app.state.uploader = build_uploader(sql_backend)
    app.dependency_overrides[verify_api_key] = lambda: "test-key"

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def make_property_payload(**overrides) -> dict:
    """Create a valid property creation payload (API shape)."""
    defaults = {
        "title": "Two bedroom flat in Camden",
        "description": "Bright flat close to the station with a private balcony.",
        "price": {"amount": 450000.0, "currency": "GBP", "negotiable": True},
        "property_type": "apartment",
        "listing_type": "sale",
        "address": {
            "line1": "12 Camden Road",
            "city": "London",
            "postal_code": "NW1 9DP",
            "country": "United Kingdom",
        },
        "area": {"total": 720.0, "unit": "sqft"},
        "rooms": {"bedrooms": 2, "bathrooms": 1, "balconies": 1},
        "amenities": ["lift", "balcony"],
        "images": ["https://cdn.example.com/camden/1.jpg", "https://cdn.example.com/camden/2.jpg"],
    }
    defaults.update(overrides)
    return defaults


def make_record(**overrides) -> dict:
    """Create a persisted property row (column shape)."""
    defaults = {
        "id": str(uuid4()),
        "title": "Three bedroom house in Leeds",
        "description": "Semi-detached family home with garden.",
        "price": 285000,
        "currency": "GBP",
        "property_type": "house",
        "listing_type": "sale",
        "status": "published",
        "published": True,
        "draft": False,
        "address_line_1": "4 Oak Lane",
        "city": "Leeds",
        "postcode": "LS6 2AB",
        "country": "United Kingdom",
        "bedrooms": 3,
        "bathrooms": 2,
        "area": 1100,
        "area_unit": "sqft",
        "image_urls": ["https://cdn.example.com/leeds/1.jpg"],
        "views": 0,
        "inquiries": 0,
        "favorites": 0,
        "shares": 0,
        "created_at": "2026-01-10T09:00:00+00:00",
        "updated_at": "2026-01-10T09:00:00+00:00",
    }
    defaults.update(overrides)
    return defaults
