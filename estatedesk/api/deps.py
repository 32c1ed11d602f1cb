"""API dependencies — store/uploader access and API key authentication.

The property store, uploader and backend are built once in the app lifespan
and kept on `app.state`; routers reach them only through these dependencies,
so tests can swap them with `app.dependency_overrides`.

Authentication: header `X-API-Key`, compared against API_KEY from the
environment. With API_KEY unset the endpoints are open (a warning is logged
at startup).
"""
import secrets
from typing import Annotated

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import APIKeyHeader

from estatedesk.config import settings
from estatedesk.services.backend_client import Backend
from estatedesk.services.property_store import PropertyStore
from estatedesk.services.upload_service import MediaUploader


def get_store(request: Request) -> PropertyStore:
    return request.app.state.store


def get_uploader(request: Request) -> MediaUploader:
    return request.app.state.uploader


def get_backend(request: Request) -> Backend:
    return request.app.state.backend


# ---------------------------------------------------------------------------
# API Key authentication
# ---------------------------------------------------------------------------

_api_key_header = APIKeyHeader(
    name="X-API-Key",
    auto_error=False,  # 401 customizado em vez de 403
    description="API key de autenticação. Configurada via API_KEY no .env",
)


async def verify_api_key(
    api_key: Annotated[str | None, Security(_api_key_header)],
) -> str:
    """Valida o header X-API-Key (comparação constant-time).

    Raises:
        HTTPException 401: se a key estiver ausente ou incorreta.
    """
    if not settings.api_key:
        return ""

    if not api_key or not secrets.compare_digest(api_key, settings.api_key):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="API key inválida ou ausente. Usa o header X-API-Key.",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    return api_key


RequireApiKey = Depends(verify_api_key)
