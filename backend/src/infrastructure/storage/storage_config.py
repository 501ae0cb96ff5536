"""Blob store selection from application settings.

STORAGE_BACKEND=local stores blobs under UPLOADS_DIR; STORAGE_BACKEND=s3 uses
the S3_* settings (AWS S3 when S3_ENDPOINT_URL is unset, MinIO otherwise).
"""

from config import Settings
from .blob_store_port import BlobStorePort
from .local_blob_store import LocalBlobStore
from .s3_blob_store import S3BlobStore


def validate_storage_settings(settings: Settings) -> None:
    """Validate storage settings.

    Raises:
        ValueError: If configuration is invalid
    """
    backend = settings.STORAGE_BACKEND.lower()
    if backend not in ("local", "s3"):
        raise ValueError(
            f"Invalid STORAGE_BACKEND: {settings.STORAGE_BACKEND}. Must be 'local' or 's3'"
        )

    if backend == "local":
        if not settings.UPLOADS_DIR:
            raise ValueError("UPLOADS_DIR is required for the local storage backend")
        return

    if not settings.S3_BUCKET_NAME:
        raise ValueError("S3_BUCKET_NAME is required for the s3 storage backend")
    if not settings.S3_ACCESS_KEY_ID or not settings.S3_SECRET_ACCESS_KEY:
        raise ValueError("S3_ACCESS_KEY_ID and S3_SECRET_ACCESS_KEY are required")
    if settings.S3_ENDPOINT_URL and not settings.S3_ENDPOINT_URL.startswith(("http://", "https://")):
        raise ValueError(
            f"Invalid S3_ENDPOINT_URL: {settings.S3_ENDPOINT_URL}. "
            "Must start with http:// or https://"
        )


def build_blob_store(settings: Settings) -> BlobStorePort:
    """Create the blob store configured by settings."""
    validate_storage_settings(settings)

    if settings.STORAGE_BACKEND.lower() == "local":
        return LocalBlobStore(settings.UPLOADS_DIR)

    return S3BlobStore(
        endpoint_url=settings.S3_ENDPOINT_URL,
        access_key=settings.S3_ACCESS_KEY_ID,
        secret_key=settings.S3_SECRET_ACCESS_KEY,
        bucket_name=settings.S3_BUCKET_NAME,
        region=settings.S3_REGION,
    )
