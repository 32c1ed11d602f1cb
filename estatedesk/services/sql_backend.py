"""SQL backend adapter — the `Backend` interface over SQLAlchemy async sessions.

Rows go in and come out as plain dicts, exactly like the PostgREST adapter, so
everything above the backend is storage-agnostic. Unknown tables and columns
are reported with the same codes PostgREST uses, and media objects live in
the `storage_objects` table, served back by the media router.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Type, Union
from urllib.parse import quote

from sqlalchemy import DateTime, delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from estatedesk.core.exceptions import BackendError
from estatedesk.core.logging import get_logger
from estatedesk.database import Base
from estatedesk.models import City, Country, PropertyRow, State, StoredObject
from estatedesk.services.backend_client import NOT_FOUND_CODE, Order, Row, id_list

logger = get_logger(__name__)

DEFAULT_TABLES: Dict[str, Type[Base]] = {
    "properties": PropertyRow,
    "countries": Country,
    "states": State,
    "cities": City,
}

MEDIA_ROUTE = "/api/v1/media"


def _row_to_dict(obj: Base) -> Row:
    return {attr.key: getattr(obj, attr.key) for attr in obj.__mapper__.column_attrs}


def _coerce(column, value: Any) -> Any:
    if isinstance(column.type, DateTime) and isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            raise BackendError("22007", f"invalid input syntax for type timestamp: \"{value}\"")
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return value


class SqlBackend:
    """Table + object store backed by the application database.

    ``buckets`` maps bucket name → accepted content-type prefixes (None
    accepts anything). When ``buckets`` is None every bucket exists.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        public_base_url: str = "",
        tables: Optional[Mapping[str, Type[Base]]] = None,
        buckets: Optional[Mapping[str, Optional[Tuple[str, ...]]]] = None,
    ):
        self._session_factory = session_factory
        self._public_base_url = public_base_url.rstrip("/")
        self._tables = dict(tables or DEFAULT_TABLES)
        self._buckets = dict(buckets) if buckets is not None else None

    async def aclose(self) -> None:
        return None

    # ── Helpers ──

    def _model(self, table: str) -> Type[Base]:
        model = self._tables.get(table)
        if model is None:
            raise BackendError(
                "PGRST205",
                f"Could not find the table 'public.{table}' in the schema cache",
            )
        return model

    def _values(self, table: str, model: Type[Base], row: Mapping[str, Any]) -> Dict[str, Any]:
        columns = model.__table__.columns
        values: Dict[str, Any] = {}
        for key, value in row.items():
            if key not in columns:
                raise BackendError(
                    "PGRST204",
                    f"Could not find the '{key}' column of '{table}' in the schema cache",
                )
            values[key] = _coerce(columns[key], value)
        return values

    @staticmethod
    def _wrap(e: SQLAlchemyError) -> BackendError:
        code = "23505" if isinstance(e, IntegrityError) else "SQL_ERROR"
        original = getattr(e, "orig", None)
        return BackendError(code, str(original or e))

    # ── Tables ──

    async def select(
        self,
        table: str,
        filters: Optional[Mapping[str, Any]] = None,
        order: Optional[Order] = None,
    ) -> List[Row]:
        model = self._model(table)
        stmt = select(model)
        for key, value in (filters or {}).items():
            column = model.__table__.columns.get(key)
            if column is None:
                raise BackendError("42703", f"column {table}.{key} does not exist")
            if isinstance(value, (list, tuple, set, frozenset)):
                stmt = stmt.where(column.in_(list(value)))
            elif value is None:
                stmt = stmt.where(column.is_(None))
            else:
                stmt = stmt.where(column == value)
        if order:
            column = model.__table__.columns.get(order[0])
            if column is not None:
                stmt = stmt.order_by(column.desc() if order[1] == "desc" else column.asc())

        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return [_row_to_dict(obj) for obj in result.scalars().all()]
        except SQLAlchemyError as e:
            raise self._wrap(e) from e

    async def insert(self, table: str, row: Mapping[str, Any]) -> Row:
        model = self._model(table)
        obj = model(**self._values(table, model, row))
        try:
            async with self._session_factory() as session:
                session.add(obj)
                await session.flush()
                await session.refresh(obj)
                data = _row_to_dict(obj)
                await session.commit()
                return data
        except SQLAlchemyError as e:
            raise self._wrap(e) from e

    async def update(self, table: str, row_id: str, row: Mapping[str, Any]) -> Row:
        model = self._model(table)
        values = self._values(table, model, row)
        try:
            async with self._session_factory() as session:
                obj = await session.get(model, row_id)
                if obj is None:
                    raise BackendError(NOT_FOUND_CODE, f"No row with id '{row_id}' in '{table}'")
                for key, value in values.items():
                    setattr(obj, key, value)
                await session.flush()
                await session.refresh(obj)
                data = _row_to_dict(obj)
                await session.commit()
                return data
        except SQLAlchemyError as e:
            raise self._wrap(e) from e

    async def update_many(self, table: str, row_ids: Sequence[str], row: Mapping[str, Any]) -> List[Row]:
        model = self._model(table)
        values = self._values(table, model, row)
        try:
            async with self._session_factory() as session:
                result = await session.execute(select(model).where(model.id.in_(id_list(row_ids))))
                objects = result.scalars().all()
                for obj in objects:
                    for key, value in values.items():
                        setattr(obj, key, value)
                await session.flush()
                rows = []
                for obj in objects:
                    await session.refresh(obj)
                    rows.append(_row_to_dict(obj))
                await session.commit()
                return rows
        except SQLAlchemyError as e:
            raise self._wrap(e) from e

    async def delete(self, table: str, row_ids: Union[str, Sequence[str]]) -> None:
        model = self._model(table)
        try:
            async with self._session_factory() as session:
                await session.execute(delete(model).where(model.id.in_(id_list(row_ids))))
                await session.commit()
        except SQLAlchemyError as e:
            raise self._wrap(e) from e

    # ── Storage ──

    def _check_bucket(self, bucket: str, content_type: Optional[str]) -> None:
        if self._buckets is None:
            return
        if bucket not in self._buckets:
            raise BackendError("404", f"Bucket not found: {bucket}")
        accepted = self._buckets[bucket]
        if accepted and not (content_type or "").startswith(accepted):
            raise BackendError("415", f"mime type {content_type} is not supported")

    async def upload_object(
        self, bucket: str, path: str, data: bytes, content_type: Optional[str] = None
    ) -> str:
        self._check_bucket(bucket, content_type)
        try:
            async with self._session_factory() as session:
                existing = await session.execute(
                    select(StoredObject.id).where(StoredObject.bucket == bucket, StoredObject.path == path)
                )
                if existing.scalar_one_or_none() is not None:
                    raise BackendError("409", "The resource already exists")
                session.add(StoredObject(
                    bucket=bucket,
                    path=path,
                    content_type=content_type,
                    size=len(data),
                    data=data,
                ))
                await session.commit()
        except SQLAlchemyError as e:
            raise self._wrap(e) from e
        logger.info("Stored object %s/%s (%d bytes)", bucket, path, len(data), extra={"bucket": bucket})
        return path

    async def get_object(self, bucket: str, path: str) -> Optional[StoredObject]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(StoredObject).where(StoredObject.bucket == bucket, StoredObject.path == path)
                )
                return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise self._wrap(e) from e

    async def remove_object(self, bucket: str, path: str) -> None:
        try:
            async with self._session_factory() as session:
                await session.execute(
                    delete(StoredObject).where(StoredObject.bucket == bucket, StoredObject.path == path)
                )
                await session.commit()
        except SQLAlchemyError as e:
            raise self._wrap(e) from e

    def get_public_url(self, bucket: str, path: str) -> str:
        return f"{self._public_base_url}{MEDIA_ROUTE}/{quote(bucket)}/{quote(path, safe='/')}"
