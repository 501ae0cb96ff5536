"""Local disk blob store - uploads directory with one file per file id."""

import logging
import os
from pathlib import Path
from typing import BinaryIO, Iterator

from .blob_store_port import BlobStorePort, BlobStoreError, BlobDeleteResult, BlobInfo

logger = logging.getLogger(__name__)


class LocalBlobStore(BlobStorePort):
    """Blob store backed by a directory; blob path is ``uploads_dir / file_id``.

    Example:
        store = LocalBlobStore("/data/uploads")
        store.delete_blob("a1b2c3")  # DELETED or NOT_FOUND
    """

    def __init__(self, uploads_dir: str):
        self.uploads_dir = Path(uploads_dir)
        self.uploads_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, blob_id: str) -> Path:
        # File ids are opaque tokens; refuse anything that could leave the directory
        if not blob_id or "/" in blob_id or "\\" in blob_id or blob_id in (".", ".."):
            raise BlobStoreError(f"Invalid blob id: {blob_id!r}")
        return self.uploads_dir / blob_id

    def delete_blob(self, blob_id: str) -> BlobDeleteResult:
        path = self._path(blob_id)
        try:
            path.unlink()
        except FileNotFoundError:
            logger.debug(f"Blob already absent: {blob_id}")
            return BlobDeleteResult.NOT_FOUND
        except OSError as e:
            raise BlobStoreError(f"Failed to delete blob {blob_id}: {e}") from e

        logger.debug(f"Deleted blob: {blob_id}")
        return BlobDeleteResult.DELETED

    def read_blob(self, blob_id: str) -> BinaryIO:
        path = self._path(blob_id)
        try:
            return open(path, "rb")
        except FileNotFoundError:
            raise
        except OSError as e:
            raise BlobStoreError(f"Failed to read blob {blob_id}: {e}") from e

    def list_blobs(self, modified_before: int) -> Iterator[BlobInfo]:
        try:
            entries = list(os.scandir(self.uploads_dir))
        except OSError as e:
            raise BlobStoreError(f"Failed to list {self.uploads_dir}: {e}") from e

        for entry in entries:
            # Dotfiles are in-progress uploads or markers, never blobs
            if not entry.is_file() or entry.name.startswith("."):
                continue
            try:
                stat = entry.stat()
            except FileNotFoundError:
                # Removed while listing
                continue
            if int(stat.st_mtime) < modified_before:
                yield BlobInfo(
                    blob_id=entry.name,
                    size_bytes=stat.st_size,
                    modified_at=int(stat.st_mtime),
                )
