"""Application settings loaded from environment variables."""
from typing import List
from pathlib import Path
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Caminho absoluto para o ficheiro .env
ENV_FILE = Path(__file__).parent.parent / ".env"

BACKEND_SUPABASE = "supabase"
BACKEND_SQL = "sql"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "EstateDesk"
    app_version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"
    cors_origins: List[str] = ["http://localhost:5173", "http://localhost:8000"]
    api_key: str = ""

    # Backend
    backend: str = BACKEND_SQL
    supabase_url: str = ""
    supabase_key: str = ""
    database_url: str = "sqlite+aiosqlite:///./estatedesk.db"
    properties_table: str = "properties"

    # Media storage
    image_bucket: str = "property-images"
    video_bucket: str = "property-videos"
    fallback_bucket: str = "uploads"
    inline_upload_limit_bytes: int = 10 * 1024 * 1024
    public_base_url: str = "http://localhost:8000"

    # Schema-cache retry
    retry_max_attempts: int = 3
    retry_base_delay: float = 1.0

    default_page_size: int = 10

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v):
        if not v.startswith(("postgresql+asyncpg://", "sqlite+aiosqlite://")):
            raise ValueError("database_url must use async driver")
        return v

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        normalized = (v or "").strip().lower()
        if normalized not in (BACKEND_SUPABASE, BACKEND_SQL):
            raise ValueError(f"backend must be '{BACKEND_SUPABASE}' or '{BACKEND_SQL}'")
        return normalized

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            import json
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(",")]
        return v

    @field_validator("retry_max_attempts")
    @classmethod
    def validate_retry_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError("retry_max_attempts must be at least 1")
        return v

    @field_validator("api_key")
    @classmethod
    def validate_api_key(cls, v: str) -> str:
        if not v:
            import warnings
            warnings.warn(
                "API_KEY não configurada — endpoints desprotegidos.",
                stacklevel=2,
            )
        return v


settings = Settings()
