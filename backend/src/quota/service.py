"""Storage quota accounting.

``users.storage_used_mb`` is a cache of the sum of a user's non-deleted file
sizes. It is recomputed from the files table rather than adjusted
incrementally, so it can be rebuilt at any time and never drifts.
"""

import logging
from typing import Optional

from lifecycle.errors import StoreError
from lifecycle.store import RetentionStore

logger = logging.getLogger(__name__)

BYTES_PER_MB = 1024 * 1024


def bytes_to_mb(size_bytes: int) -> int:
    """Whole megabytes, rounded down.

    Example:
        >>> bytes_to_mb(3 * 1024 * 1024 - 1)
        2
    """
    return size_bytes // BYTES_PER_MB


class QuotaAccountant:
    """Recomputes per-user storage usage."""

    def __init__(self, store: RetentionStore):
        self.store = store

    def recompute(self, user_id: int) -> Optional[int]:
        """Recompute and store one user's usage.

        Returns:
            Usage in MB; 0 when the user row does not exist; None when the
            store failed (logged, the cached value is left as it was)
        """
        try:
            used_mb = self.store.recompute_quota(user_id, bytes_to_mb)
        except StoreError as e:
            logger.error(
                f"Quota recompute failed for user {user_id}: {e}",
                exc_info=True,
                extra={"user_id": user_id},
            )
            return None

        if used_mb is None:
            logger.debug(f"Quota recompute skipped, user {user_id} does not exist")
            return 0
        return used_mb

    def recompute_all(self, batch_size: int = 500) -> int:
        """Recompute every user's usage; returns the number of users processed."""
        processed = 0
        after_id = None
        while True:
            user_ids = self.store.all_user_ids(after_id=after_id, limit=batch_size)
            if not user_ids:
                break
            for user_id in user_ids:
                self.recompute(user_id)
                processed += 1
            after_id = user_ids[-1]
        return processed
