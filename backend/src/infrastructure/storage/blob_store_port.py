"""Blob Store Port - interface for the physical storage of uploaded bytes.

Each file's bytes are stored under its file id. The lifecycle engine only
needs three operations: delete, read, and listing for orphan reconciliation.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO, Iterator


class BlobStoreError(Exception):
    """Storage failure other than the blob being absent."""
    pass


class BlobDeleteResult(str, Enum):
    """Outcome of a blob deletion.

    NOT_FOUND is a success: the blob is gone either way.
    """
    DELETED = "DELETED"
    NOT_FOUND = "NOT_FOUND"


@dataclass
class BlobInfo:
    """A stored blob as seen by a listing.

    Attributes:
        blob_id: File id the blob is stored under
        size_bytes: Blob size in bytes
        modified_at: Unix seconds of the last write
    """
    blob_id: str
    size_bytes: int
    modified_at: int


class BlobStorePort(ABC):
    """Port interface for the physical blob store.

    Implementations must treat a missing blob on delete as NOT_FOUND and raise
    BlobStoreError for anything else (permissions, I/O, network).
    """

    @abstractmethod
    def delete_blob(self, blob_id: str) -> BlobDeleteResult:
        """Delete the blob stored under blob_id.

        Returns:
            BlobDeleteResult.DELETED or BlobDeleteResult.NOT_FOUND

        Raises:
            BlobStoreError: Deletion failed for a reason other than absence
        """
        pass

    @abstractmethod
    def read_blob(self, blob_id: str) -> BinaryIO:
        """Open the blob for reading (caller must close).

        Raises:
            FileNotFoundError: Blob does not exist
            BlobStoreError: Read failed
        """
        pass

    @abstractmethod
    def list_blobs(self, modified_before: int) -> Iterator[BlobInfo]:
        """Yield blobs last written before the given Unix time.

        Raises:
            BlobStoreError: Listing failed
        """
        pass
