"""FastAPI application factory and startup configuration.

Autenticação aplicada via router dependencies (`dependencies=[RequireApiKey]`)
em vez de um middleware global, para manter /health, /docs e os URLs
públicos de media acessíveis.

No startup o lifespan constrói o backend configurado (Supabase ou SQL), o
lookup de localizações, o property store e o uploader, e carrega a coleção.
"""
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from estatedesk.config import BACKEND_SUPABASE, settings
from estatedesk.core.exceptions import (
    BackendError,
    MediaUploadExhaustedError,
    NotFoundError,
    TerminalBackendError,
    ValidationError,
)
from estatedesk.core.logging import get_logger, set_correlation_id, setup_logging
from estatedesk.api.v1.properties import router as properties_router
from estatedesk.api.v1.media import public_router as media_public_router
from estatedesk.api.v1.media import router as media_router
from estatedesk.api.deps import RequireApiKey
from estatedesk.api.responses import fail, ok
from estatedesk.database import async_session_factory
from estatedesk.services.backend_client import Backend, SupabaseBackend
from estatedesk.services.location_service import LocationLookupService
from estatedesk.services.property_store import PropertyStore
from estatedesk.services.sql_backend import SqlBackend
from estatedesk.services.upload_service import MediaUploader

logger = get_logger(__name__)


def storage_buckets() -> dict:
    # O bucket genérico só aceita imagens, como o bucket 'uploads' do Supabase.
    return {
        settings.image_bucket: ("image/",),
        settings.video_bucket: ("video/",),
        settings.fallback_bucket: ("image/",),
    }


def build_backend() -> Backend:
    if settings.backend == BACKEND_SUPABASE:
        return SupabaseBackend(settings.supabase_url, settings.supabase_key)
    return SqlBackend(
        async_session_factory,
        public_base_url=settings.public_base_url,
        buckets=storage_buckets(),
    )


def build_store(backend: Backend, lookup: LocationLookupService | None = None) -> PropertyStore:
    return PropertyStore(
        backend,
        table=settings.properties_table,
        lookup=lookup,
        max_attempts=settings.retry_max_attempts,
        base_delay=settings.retry_base_delay,
    )


def build_uploader(backend: Backend) -> MediaUploader:
    return MediaUploader(
        backend,
        image_bucket=settings.image_bucket,
        video_bucket=settings.video_bucket,
        fallback_bucket=settings.fallback_bucket,
        inline_limit=settings.inline_upload_limit_bytes,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan — startup and shutdown events."""
    setup_logging()
    logger.info("Starting %s v%s (backend=%s)", settings.app_name, settings.app_version, settings.backend)

    if not settings.api_key:
        logger.warning(
            "API_KEY não configurada — endpoints desprotegidos. "
            "Define API_KEY no .env antes de ir a produção."
        )

    backend = build_backend()
    lookup = LocationLookupService(backend)
    app.state.backend = backend
    app.state.store = build_store(backend, lookup)
    app.state.uploader = build_uploader(backend)

    # Carregar a coleção; se o backend falhar o serviço arranca vazio
    # e POST /api/v1/properties/refresh pode ser chamado mais tarde.
    try:
        await app.state.store.refresh()
    except BackendError as e:
        logger.warning("Initial property load failed: %s. Starting with an empty collection.", str(e))

    yield

    await backend.aclose()
    logger.info("Shutting down %s", settings.app_name)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Property listing management backend — listings, media uploads and analytics.",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @application.middleware("http")
    async def add_trace_id(request: Request, call_next):
        request.state.trace_id = request.headers.get("X-Trace-Id") or str(uuid4())
        set_correlation_id(request.state.trace_id)
        response = await call_next(request)
        response.headers["X-Trace-Id"] = request.state.trace_id
        return response

    @application.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        trace_id = getattr(request.state, "trace_id", None)
        logger.exception("Unhandled exception [trace_id=%s]", trace_id, exc_info=exc)
        return fail(500, "Erro interno", request, errors=["Internal server error"])

    @application.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return fail(404, str(exc), request)

    @application.exception_handler(ValidationError)
    async def validation_handler(request: Request, exc: ValidationError):
        return fail(422, exc.message, request, data=exc.detail)

    @application.exception_handler(MediaUploadExhaustedError)
    async def upload_exhausted_handler(request: Request, exc: MediaUploadExhaustedError):
        return fail(
            502,
            exc.message,
            request,
            errors=[f.message for f in exc.failures],
            data={
                "uploaded_urls": exc.uploaded_urls,
                "failures": [f.detail for f in exc.failures],
            },
        )

    @application.exception_handler(BackendError)
    async def backend_error_handler(request: Request, exc: BackendError):
        attempts = exc.attempts if isinstance(exc, TerminalBackendError) else 1
        return fail(502, str(exc), request, data={"code": exc.code, "attempts": attempts})

    # /health e os URLs públicos de media ficam sem API key.
    _auth = [RequireApiKey]

    application.include_router(properties_router, prefix="/api/v1/properties", tags=["properties"], dependencies=_auth)
    application.include_router(media_router, prefix="/api/v1/media", tags=["media"], dependencies=_auth)
    application.include_router(media_public_router, prefix="/api/v1/media", tags=["media"])

    @application.get("/health", tags=["system"])
    async def health_check(request: Request):
        backend_status = "ok"
        try:
            await request.app.state.backend.select(settings.properties_table, {"id": str(uuid4())})
        except BackendError as e:
            backend_status = f"error: {str(e)}"

        return ok(
            {
                "status": "healthy" if backend_status == "ok" else "unhealthy",
                "version": settings.app_version,
                "backend": settings.backend,
                "backend_status": backend_status,
                "properties_loaded": len(request.app.state.store.list()),
            },
            "Health check completed",
            request,
        )

    return application


app = create_app()
