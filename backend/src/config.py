"""Application configuration via environment variables.

Provides type-safe settings loading using pydantic-settings.
Environment variables can be loaded from a .env file.

Retention windows configured here are defaults: values stored in the
``configuration`` table override them at runtime (see
``lifecycle.context.load_retention_settings``).
"""

from typing import Optional
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Environment Variables:
        DATABASE_URL: SQLAlchemy connection string
        CELERY_BROKER_URL: Celery broker (Redis)
        CELERY_RESULT_BACKEND: Celery result backend
        STORAGE_BACKEND: "local" (uploads directory) or "s3"
        UPLOADS_DIR: Directory holding uploaded blobs (local backend)
        S3_*: S3-compatible storage settings (s3 backend)
        *_SWEEP_INTERVAL_HOURS: Cadence of each background sweep
        TRASH_RETENTION_DAYS: Days a trashed file stays restorable (default 5)
        ACCOUNT_PURGE_DAYS: Days a soft-deleted account is kept (default 90)
        AUDIT_LOG_RETENTION_DAYS: Audit log age limit (default 90)
        AUDIT_LOG_MAX_SIZE_MB: Audit log size budget (default 100)
        LOG_LEVEL: Logging level (default INFO)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Database
    DATABASE_URL: str = "sqlite:///./data/fileshare.db"

    # Redis / Celery
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/0"

    # Physical storage
    STORAGE_BACKEND: str = "local"
    UPLOADS_DIR: str = "./uploads"
    S3_ENDPOINT_URL: Optional[str] = None
    S3_ACCESS_KEY_ID: str = "minioadmin"
    S3_SECRET_ACCESS_KEY: str = "minioadmin"
    S3_BUCKET_NAME: str = "fileshare-uploads"
    S3_REGION: str = "us-east-1"

    # Sweep cadence
    EXPIRATION_SWEEP_INTERVAL_HOURS: float = 6
    FILE_REQUEST_SWEEP_INTERVAL_HOURS: float = 24
    ACCOUNT_PURGE_SWEEP_INTERVAL_HOURS: float = 24
    AUDIT_PURGE_SWEEP_INTERVAL_HOURS: float = 24
    SWEEP_BATCH_SIZE: int = 500

    # Retention windows
    TRASH_RETENTION_DAYS: int = 5
    ACCOUNT_PURGE_DAYS: int = 90
    AUDIT_LOG_RETENTION_DAYS: int = 90
    AUDIT_LOG_MAX_SIZE_MB: int = 100
    FILE_REQUEST_GRACE_DAYS: int = 10
    ORPHAN_BLOB_MIN_AGE_HOURS: int = 24

    # Application
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True
    ENVIRONMENT: str = "development"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance.

    Call get_settings.cache_clear() to reload settings.
    """
    return Settings()
