"""Property store — the in-memory collection of PropertyEntity and its mutations.

Every mutation follows the same path: validate locally, map to a row, call
the backend through the schema-cache retry policy, map the returned row back
and merge it into the collection. Subscribers are notified after every
change with a snapshot of the whole collection.

Counters are the exception: `bump_counter` updates memory immediately and
`persist_counter` writes the new value in the background. A failed write is
logged and the in-memory value is kept.
"""
import asyncio
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, TypeVar

from pydantic import BaseModel

from estatedesk.core.exceptions import (
    BackendError,
    NotFoundError,
    TerminalBackendError,
    TransientBackendError,
    ValidationError,
)
from estatedesk.core.logging import get_logger
from estatedesk.schemas.property_schema import COUNTER_NAMES, PropertyEntity, PropertyStatus
from estatedesk.services.backend_client import NOT_FOUND_CODE, Backend, is_schema_cache_error
from estatedesk.services.location_service import LocationLookupService
from estatedesk.services.mapper_service import parse_number, resolve_entity, to_record

logger = get_logger(__name__)

T = TypeVar("T")
Subscriber = Callable[[List[PropertyEntity]], None]
RetryPredicate = Callable[[BaseException], bool]


def _payload_dict(payload: Any) -> Dict[str, Any]:
    if isinstance(payload, BaseModel):
        return payload.model_dump(exclude_unset=True)
    if isinstance(payload, Mapping):
        return dict(payload)
    raise ValidationError("Property payload must be an object")


def _group_value(data: Mapping[str, Any], group: str, attribute: str) -> Any:
    value = data.get(group)
    if isinstance(value, BaseModel):
        value = value.model_dump(exclude_unset=True)
    if isinstance(value, Mapping):
        return value.get(attribute)
    return None


def _check_number(value: Any, label: str, field: str) -> None:
    if isinstance(value, bool) or parse_number(value, None) is None:
        raise ValidationError(f"{label} must be a valid number", field=field)
    if parse_number(value) < 0:
        raise ValidationError(f"{label} cannot be negative", field=field)


def validate_property_payload(data: Mapping[str, Any], creating: bool) -> None:
    """Local validation, run before any network call.

    On create the title and price are required; on update only the fields
    present are checked.
    """
    if creating or "title" in data:
        title = data.get("title")
        if not isinstance(title, str) or not title.strip():
            raise ValidationError("Property title is required", field="title")

    price = _group_value(data, "price", "amount")
    if price is None and creating:
        raise ValidationError("Property price is required", field="price")
    if price is not None:
        _check_number(price, "Price", "price")

    for attribute, label in (("bedrooms", "Bedrooms"), ("bathrooms", "Bathrooms")):
        value = _group_value(data, "rooms", attribute)
        if value is not None:
            _check_number(value, label, attribute)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class PropertyStore:
    def __init__(
        self,
        backend: Backend,
        table: str = "properties",
        lookup: Optional[LocationLookupService] = None,
        is_retryable: RetryPredicate = is_schema_cache_error,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.backend = backend
        self.table = table
        self.lookup = lookup
        self.is_retryable = is_retryable
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._sleep = sleep
        self._entities: List[PropertyEntity] = []
        self._subscribers: List[Subscriber] = []

    # ── Observation ──

    def list(self) -> List[PropertyEntity]:
        return list(self._entities)

    def get(self, property_id: str) -> PropertyEntity:
        for entity in self._entities:
            if entity.id == property_id:
                return entity
        raise NotFoundError(f"Property {property_id} not found")

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a change listener. Returns the function that removes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self) -> None:
        snapshot = list(self._entities)
        for callback in list(self._subscribers):
            try:
                callback(snapshot)
            except Exception:
                logger.exception("Property subscriber %r failed", callback)

    def _merge(self, entity: PropertyEntity) -> PropertyEntity:
        for index, current in enumerate(self._entities):
            if current.id == entity.id:
                # Counters only go up: a stale row never undoes an optimistic bump.
                counters = {
                    name: max(getattr(current.analytics, name), getattr(entity.analytics, name))
                    for name in COUNTER_NAMES
                }
                analytics = entity.analytics.model_copy(update=counters)
                merged = entity.model_copy(update={"analytics": analytics})
                self._entities[index] = merged
                return merged
        self._entities.insert(0, entity)
        return entity

    # ── Retry policy ──

    def _classify(self, error: BackendError) -> BackendError:
        """Wrap errors the retry predicate accepts as TransientBackendError."""
        if isinstance(error, TransientBackendError) or not self.is_retryable(error):
            return error
        return TransientBackendError(error.code, error.message, detail=error.detail)

    async def _call(self, operation: str, action: Callable[[], Awaitable[T]]) -> T:
        """Run a backend call, retrying transient errors with linear backoff.

        Exactly `max_attempts` attempts are made; the wait before attempt k+1
        is k * base_delay. Non-transient errors, and the last transient one,
        surface as TerminalBackendError.
        """
        attempt = 1
        while True:
            try:
                return await action()
            except BackendError as e:
                error = self._classify(e)
                if not isinstance(error, TransientBackendError) or attempt >= self.max_attempts:
                    logger.error(
                        "Backend %s on '%s' failed after %d attempt(s): %s",
                        operation,
                        self.table,
                        attempt,
                        str(error),
                        extra={"table": self.table, "attempt": attempt},
                    )
                    raise TerminalBackendError(
                        error.code, error.message, attempts=attempt, detail=error.detail
                    ) from e
                delay = attempt * self.base_delay
                logger.warning(
                    "Backend %s on '%s' failed transiently (%s), retrying in %.1fs",
                    operation,
                    self.table,
                    str(error),
                    delay,
                    extra={"table": self.table, "attempt": attempt},
                )
                await self._sleep(delay)
                attempt += 1

    async def _to_entity(self, row: Mapping[str, Any]) -> PropertyEntity:
        return await resolve_entity(row, self.lookup)

    # ── Queries ──

    async def refresh(self, agent_id: Optional[str] = None) -> List[PropertyEntity]:
        """Reload the collection from the backend, newest first."""
        filters = {"agent_id": agent_id} if agent_id else None
        rows = await self._call(
            "select",
            lambda: self.backend.select(self.table, filters, ("created_at", "desc")),
        )
        self._entities = [await self._to_entity(row) for row in rows if isinstance(row, Mapping)]
        logger.info("Loaded %d properties", len(self._entities), extra={"table": self.table})
        self._notify()
        return list(self._entities)

    # ── Mutations ──

    async def create(self, payload: Any) -> PropertyEntity:
        data = _payload_dict(payload)
        validate_property_payload(data, creating=True)

        record = to_record(data)
        now = _now()
        record["created_at"] = now
        record["updated_at"] = now
        if "published" not in record:
            record["published"], record["draft"] = False, True
        record.setdefault(
            "status",
            PropertyStatus.PUBLISHED.value if record["published"] else PropertyStatus.DRAFT.value,
        )
        for counter in COUNTER_NAMES:
            record[counter] = 0

        row = await self._call("insert", lambda: self.backend.insert(self.table, record))
        entity = await self._to_entity(row)
        self._entities.insert(0, entity)
        logger.info("Created property %s", entity.id, extra={"property_id": entity.id})
        self._notify()
        return entity

    async def update(self, property_id: str, payload: Any) -> PropertyEntity:
        data = _payload_dict(payload)
        data.pop("analytics", None)
        data.pop("id", None)
        validate_property_payload(data, creating=False)

        record = to_record(data)
        record["updated_at"] = _now()

        try:
            row = await self._call("update", lambda: self.backend.update(self.table, property_id, record))
        except TerminalBackendError as e:
            if e.code == NOT_FOUND_CODE:
                raise NotFoundError(f"Property {property_id} not found") from e
            raise
        entity = self._merge(await self._to_entity(row))
        logger.info("Updated property %s", property_id, extra={"property_id": property_id})
        self._notify()
        return entity

    async def delete(self, property_id: str) -> None:
        await self._call("delete", lambda: self.backend.delete(self.table, [property_id]))
        self._entities = [e for e in self._entities if e.id != property_id]
        logger.info("Deleted property %s", property_id, extra={"property_id": property_id})
        self._notify()

    async def bulk_delete(self, property_ids: Iterable[str]) -> int:
        ids = list(dict.fromkeys(property_ids))
        if not ids:
            raise ValidationError("No properties selected", field="ids")
        await self._call("delete", lambda: self.backend.delete(self.table, ids))
        removed = set(ids)
        self._entities = [e for e in self._entities if e.id not in removed]
        logger.info("Bulk deleted %d properties", len(ids), extra={"table": self.table})
        self._notify()
        return len(ids)

    async def update_status(self, property_id: str, status: PropertyStatus) -> PropertyEntity:
        return await self.update(property_id, {"status": PropertyStatus(status)})

    async def bulk_update_status(self, property_ids: Iterable[str], status: PropertyStatus) -> List[PropertyEntity]:
        ids = list(dict.fromkeys(property_ids))
        if not ids:
            raise ValidationError("No properties selected", field="ids")
        record = to_record({"status": PropertyStatus(status)})
        record["updated_at"] = _now()

        rows = await self._call("update", lambda: self.backend.update_many(self.table, ids, record))
        entities = [self._merge(await self._to_entity(row)) for row in rows]
        logger.info(
            "Bulk status update to '%s' for %d properties",
            PropertyStatus(status).value,
            len(entities),
            extra={"status": PropertyStatus(status).value},
        )
        self._notify()
        return entities

    # ── Counters ──

    def bump_counter(self, property_id: str, counter: str) -> PropertyEntity:
        """Increment a counter in memory and return the updated entity."""
        if counter not in COUNTER_NAMES:
            raise ValidationError(f"Unknown counter '{counter}'", field="counter")
        current = self.get(property_id)
        analytics = current.analytics.model_copy(
            update={counter: getattr(current.analytics, counter) + 1}
        )
        entity = current.model_copy(update={"analytics": analytics})
        self._merge(entity)
        self._notify()
        return entity

    async def persist_counter(self, property_id: str, counter: str, value: int) -> bool:
        try:
            await self.backend.update(self.table, property_id, {counter: value})
        except BackendError as e:
            logger.warning(
                "Failed to persist %s=%d for property %s: %s",
                counter,
                value,
                property_id,
                str(e),
                extra={"property_id": property_id},
            )
            return False
        return True

    async def increment_counter(self, property_id: str, counter: str) -> PropertyEntity:
        entity = self.bump_counter(property_id, counter)
        await self.persist_counter(property_id, counter, getattr(entity.analytics, counter))
        return entity
