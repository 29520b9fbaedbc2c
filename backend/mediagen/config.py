from __future__ import annotations
"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from urllib.parse import quote_plus

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """MediaGen application settings.

    Loaded from environment variables or .env file.
    """

    # --- Application ---
    APP_NAME: str = "MediaGen"
    DEBUG: bool = False
    USE_MOCK_API: bool = False
    APP_URL: str = "http://localhost:8000"

    # --- Database (MySQL 8.0+) ---
    DB_HOST: str = "127.0.0.1"
    DB_PORT: int = 3306
    DB_USER: str = "root"
    DB_PASSWORD: str = ""
    DB_NAME: str = "mediagen"
    DB_URL: str = ""  # full SQLAlchemy URL, overrides the DB_* fields when set
    DB_AUTO_CREATE: bool = False  # create_all at startup (local SQLite dev only)

    @property
    def DATABASE_URL(self) -> str:
        """Async MySQL connection string using asyncmy driver."""
        if self.DB_URL:
            return self.DB_URL
        encoded_password = quote_plus(self.DB_PASSWORD)
        return (
            f"mysql+asyncmy://{self.DB_USER}:{encoded_password}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
            "?charset=utf8mb4"
        )

    # --- Redis ---
    REDIS_URL: str = "redis://localhost:6379/0"
    NOTIFY_PUBSUB_ENABLED: bool = True

    # --- Owned media storage ---
    MEDIA_VOLUME: str = "media_volume"
    MEDIA_BASE_URL: str = "http://localhost:8000/media"

    # --- Volcengine Ark (Seedance video / Seedream image) ---
    ARK_API_KEY: str = ""
    ARK_ENDPOINT: str = "https://ark.cn-beijing.volces.com/api/v3"

    # --- Kling ---
    KLING_API_KEY: str = ""
    KLING_BASE_URL: str = "https://api-beijing.klingai.com/v1"

    # --- Provider defaults ---
    PROVIDER_TIMEOUT: float = 30.0
    DEFAULT_VIDEO_PROVIDER: str = "volcano"
    DEFAULT_IMAGE_PROVIDER: str = "volcano"
    DEFAULT_MUSIC_PROVIDER: str = "mock"

    # --- Query coordination ---
    QUERY_DAMPING_SECONDS: float = 10.0

    # --- Reconciliation sweep ---
    SWEEP_BATCH_LIMIT: int = 100
    SWEEP_INTERVAL_MINUTES: int = 10
    CRON_SECRET: str = ""

    # --- Asset migration ---
    ASSET_UPLOAD_BACKEND: str = "inprocess"  # "inprocess" or "celery"
    ASSET_UPLOAD_WORKERS: int = 2
    ASSET_DOWNLOAD_RETRIES: int = 3
    ASSET_DOWNLOAD_TIMEOUT: float = 300.0
    ASSET_RECOVERY_LIMIT: int = 200

    # --- Identity (set by the upstream auth gateway) ---
    USER_ID_HEADER: str = "X-User-Id"

    # --- Credits ---
    FREE_TIER_CREDIT_LIMIT: int = 3

    @property
    def default_providers(self) -> dict[str, str]:
        return {
            "video": self.DEFAULT_VIDEO_PROVIDER,
            "image": self.DEFAULT_IMAGE_PROVIDER,
            "music": self.DEFAULT_MUSIC_PROVIDER,
        }

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings singleton."""
    return Settings()
