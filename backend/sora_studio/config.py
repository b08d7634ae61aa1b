from __future__ import annotations
"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from urllib.parse import quote_plus

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Sora Studio application settings.

    Loaded from environment variables or .env file.
    """

    # --- Application ---
    APP_NAME: str = "Sora Studio"
    DEBUG: bool = True
    CORS_ORIGINS: str = "http://localhost:3000,http://127.0.0.1:3000,http://localhost:8000"

    # --- Database (MySQL 8.0+ by default) ---
    DB_HOST: str = "localhost"
    DB_PORT: int = 3306
    DB_USER: str = "root"
    DB_PASSWORD: str = ""
    DB_NAME: str = "sora_studio"
    # Full SQLAlchemy URL; takes precedence over the DB_* parts when set
    DB_URL: str = ""
    # Create missing tables at startup (development; production uses Alembic)
    AUTO_CREATE_TABLES: bool = False

    # --- Database retry wrapper ---
    DB_QUERY_TIMEOUT: float = 30.0
    DB_MAX_RETRIES: int = 3
    DB_RETRY_DELAY: float = 1.0
    DB_RETRY_BACKOFF: float = 2.0
    DB_SLOW_QUERY_THRESHOLD: float = 5.0

    @property
    def DATABASE_URL(self) -> str:
        """Async connection string (asyncmy driver unless DB_URL is given)."""
        if self.DB_URL:
            return self.DB_URL
        encoded_password = quote_plus(self.DB_PASSWORD)
        return (
            f"mysql+asyncmy://{self.DB_USER}:{encoded_password}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
            "?charset=utf8mb4"
        )

    # --- Redis (Celery broker + result backend) ---
    REDIS_URL: str = "redis://localhost:6379/0"

    # --- Video provider ---
    AI_PROVIDER: str = "openai"  # openai | azure
    OPENAI_API_KEY: str = ""
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    AZURE_API_KEY: str = ""
    AZURE_ENDPOINT: str = ""
    AZURE_API_VERSION: str = "preview"
    PROVIDER_TIMEOUT: float = 60.0
    DOWNLOAD_TIMEOUT: float = 300.0

    # --- Generation defaults ---
    DEFAULT_MODEL: str = "sora-2"
    DEFAULT_SECONDS: str = "4"
    DEFAULT_SIZE: str = "1280x720"

    # --- Background polling ---
    POLL_BACKEND: str = "celery"  # celery | local
    POLL_INTERVAL_SECONDS: float = 5.0
    GENERATE_MAX_POLL_ATTEMPTS: int = 150
    REMIX_MAX_POLL_ATTEMPTS: int = 60

    # --- Storage ---
    STORAGE_BACKEND: str = "local"  # local | supabase
    MEDIA_VOLUME: str = "media_volume"
    PUBLIC_BASE_URL: str = "http://localhost:8000"
    STORAGE_BUCKET: str = "videos"

    # --- Supabase (storage + auth) ---
    SUPABASE_URL: str = ""
    SUPABASE_SERVICE_KEY: str = ""
    SUPABASE_JWT_SECRET: str = ""

    # --- Auth ---
    AUTH_ENABLED: bool = False
    AUTH_AUDIENCE: str = "authenticated"

    # --- Maintenance ---
    FAILED_VIDEO_RETENTION_DAYS: int = 7

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings singleton."""
    return Settings()
