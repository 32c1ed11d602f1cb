"""Backend client — the narrow interface to the remote property store.

The rest of the application only talks to a `Backend`: a table store
(select / insert / update / delete over loosely-typed dict rows) plus an
object store (upload / remove / public URL). Two adapters implement it:

- `SupabaseBackend`: PostgREST (`/rest/v1`) and Storage (`/storage/v1`) over httpx
- `SqlBackend` (see sql_backend.py): SQLAlchemy async, for self-hosted setups

Every failure leaves an adapter as a `BackendError` carrying the remote code,
so the retry policy can classify errors without knowing the transport.
"""
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple, Union
from urllib.parse import quote

import httpx

from estatedesk.core.exceptions import BackendError
from estatedesk.core.logging import get_logger

logger = get_logger(__name__)

Row = Dict[str, Any]
Order = Tuple[str, str]  # (column, "asc" | "desc")

# PostgREST codes raised while the schema cache lags behind a migration.
SCHEMA_CACHE_CODES = frozenset({"PGRST204", "PGRST205"})
NOT_FOUND_CODE = "PGRST116"


def is_schema_cache_error(error: BaseException) -> bool:
    """Default retry predicate: the error resolves once the schema cache reloads."""
    if not isinstance(error, BackendError):
        return False
    if error.code in SCHEMA_CACHE_CODES:
        return True
    return "schema cache" in (error.message or "").lower()


class Backend(Protocol):
    async def select(
        self,
        table: str,
        filters: Optional[Mapping[str, Any]] = None,
        order: Optional[Order] = None,
    ) -> List[Row]: ...

    async def insert(self, table: str, row: Mapping[str, Any]) -> Row: ...

    async def update(self, table: str, row_id: str, row: Mapping[str, Any]) -> Row: ...

    async def update_many(self, table: str, row_ids: Sequence[str], row: Mapping[str, Any]) -> List[Row]: ...

    async def delete(self, table: str, row_ids: Union[str, Sequence[str]]) -> None: ...

    async def upload_object(
        self, bucket: str, path: str, data: bytes, content_type: Optional[str] = None
    ) -> str: ...

    async def remove_object(self, bucket: str, path: str) -> None: ...

    def get_public_url(self, bucket: str, path: str) -> str: ...

    async def aclose(self) -> None: ...


def id_list(row_ids: Union[str, Sequence[str]]) -> List[str]:
    if isinstance(row_ids, str):
        return [row_ids]
    return [str(i) for i in row_ids]


def _filter_value(value: Any) -> str:
    """Render one PostgREST filter expression."""
    if value is None:
        return "is.null"
    if isinstance(value, bool):
        return f"eq.{'true' if value else 'false'}"
    if isinstance(value, (list, tuple, set, frozenset)):
        return f"in.({','.join(str(v) for v in value)})"
    return f"eq.{value}"


class SupabaseBackend:
    """PostgREST + Storage client.

    Requests carry both the `apikey` header and a bearer token, as the
    gateway expects. No client-side timeout: the platform enforces its own.
    """

    def __init__(self, url: str, key: str, transport: Optional[httpx.AsyncBaseTransport] = None):
        if not url:
            raise ValueError("supabase_url must be configured for the supabase backend")
        self.base_url = url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "apikey": key,
                "Authorization": f"Bearer {key}",
            },
            timeout=None,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("Backend request %s %s failed: %s", method, path, str(e))
            raise BackendError("NETWORK_ERROR", f"{type(e).__name__}: {e}") from e

        if response.status_code >= 400:
            raise self._error_from_response(response)
        return response

    @staticmethod
    def _error_from_response(response: httpx.Response) -> BackendError:
        code = str(response.status_code)
        message = response.reason_phrase or "Backend request failed"
        detail = None
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            # PostgREST: {code, message, details, hint}; Storage: {statusCode, error, message}
            code = str(payload.get("code") or payload.get("statusCode") or code)
            message = payload.get("message") or payload.get("error") or message
            detail = payload.get("details") or payload.get("hint")
        elif response.text:
            message = response.text[:500]
        return BackendError(code, message, detail)

    # ── Tables ──

    async def select(
        self,
        table: str,
        filters: Optional[Mapping[str, Any]] = None,
        order: Optional[Order] = None,
    ) -> List[Row]:
        params: Dict[str, str] = {"select": "*"}
        for column, value in (filters or {}).items():
            params[column] = _filter_value(value)
        if order:
            column, direction = order
            params["order"] = f"{column}.{direction}"
        response = await self._request("GET", f"/rest/v1/{table}", params=params)
        rows = response.json()
        return rows if isinstance(rows, list) else []

    async def insert(self, table: str, row: Mapping[str, Any]) -> Row:
        response = await self._request(
            "POST",
            f"/rest/v1/{table}",
            json=dict(row),
            headers={"Prefer": "return=representation"},
        )
        rows = response.json()
        if isinstance(rows, list) and rows:
            return rows[0]
        if isinstance(rows, dict):
            return rows
        raise BackendError("EMPTY_RESULT", f"Insert into '{table}' returned no row")

    async def update(self, table: str, row_id: str, row: Mapping[str, Any]) -> Row:
        response = await self._request(
            "PATCH",
            f"/rest/v1/{table}",
            params={"id": _filter_value(row_id)},
            json=dict(row),
            headers={"Prefer": "return=representation"},
        )
        rows = response.json()
        if isinstance(rows, list) and rows:
            return rows[0]
        raise BackendError(NOT_FOUND_CODE, f"No row with id '{row_id}' in '{table}'")

    async def update_many(self, table: str, row_ids: Sequence[str], row: Mapping[str, Any]) -> List[Row]:
        response = await self._request(
            "PATCH",
            f"/rest/v1/{table}",
            params={"id": _filter_value(id_list(row_ids))},
            json=dict(row),
            headers={"Prefer": "return=representation"},
        )
        rows = response.json()
        return rows if isinstance(rows, list) else []

    async def delete(self, table: str, row_ids: Union[str, Sequence[str]]) -> None:
        ids = id_list(row_ids)
        value = _filter_value(ids[0]) if len(ids) == 1 else _filter_value(ids)
        await self._request("DELETE", f"/rest/v1/{table}", params={"id": value})

    # ── Storage ──

    async def upload_object(
        self, bucket: str, path: str, data: bytes, content_type: Optional[str] = None
    ) -> str:
        await self._request(
            "POST",
            f"/storage/v1/object/{quote(bucket)}/{quote(path, safe='/')}",
            content=data,
            headers={
                "Content-Type": content_type or "application/octet-stream",
                "x-upsert": "false",
            },
        )
        return path

    async def remove_object(self, bucket: str, path: str) -> None:
        await self._request("DELETE", f"/storage/v1/object/{quote(bucket)}/{quote(path, safe='/')}")

    def get_public_url(self, bucket: str, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{quote(bucket)}/{quote(path, safe='/')}"
