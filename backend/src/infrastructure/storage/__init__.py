"""Physical blob storage adapters."""

from .blob_store_port import BlobStorePort, BlobStoreError, BlobDeleteResult, BlobInfo
from .local_blob_store import LocalBlobStore
from .s3_blob_store import S3BlobStore
from .storage_config import build_blob_store, validate_storage_settings

__all__ = [
    "BlobStorePort",
    "BlobStoreError",
    "BlobDeleteResult",
    "BlobInfo",
    "LocalBlobStore",
    "S3BlobStore",
    "build_blob_store",
    "validate_storage_settings",
]
