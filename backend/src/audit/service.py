"""Audit recorder for lifecycle events.

Every lifecycle entry point writes exactly one entry through this service.
Entries are appended in their own transaction so that an audit failure never
rolls back, or is rolled back by, the transition it describes; a failed write
is logged and counted, never raised.

Audit Events:
- FILE_UPLOADED, FILE_DOWNLOADED, FILE_UPDATED
- FILE_TRASHED, FILE_RESTORED, FILE_PURGED
- USER_SOFT_DELETED, USER_PURGED
- DOWNLOAD_ACCOUNT_SOFT_DELETED, DOWNLOAD_ACCOUNT_PURGED
- FILE_REQUEST_PURGED
- AUDIT_LOG_CLEANUP
"""

import json
import logging
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import sessionmaker

from database import session_scope
from models import AuditLog
from observability.metrics import audit_write_failures_total
from .actions import AUDIT_LOG_CLEANUP, ENTITY_SYSTEM
from .schemas import AuditLogFilter, AuditStats

logger = logging.getLogger(__name__)

# Per-row storage overhead added to the summed column lengths (row header,
# integer columns, index entries)
ROW_OVERHEAD_BYTES = 64

BYTES_PER_MB = 1024 * 1024


def _json_details(details: Optional[Dict[str, Any]]) -> str:
    if not details:
        return "{}"
    return json.dumps(details, default=str, sort_keys=True)


class AuditRecorder:
    """Append-only audit log with compliance queries and rolling purge."""

    def __init__(self, session_factory: sessionmaker, clock: Callable[[], int]):
        self.session_factory = session_factory
        self.clock = clock

    def record(
        self,
        action: str,
        actor_id: Optional[str],
        entity_type: str,
        entity_id: Optional[str],
        details: Optional[Dict[str, Any]] = None,
        actor_email: Optional[str] = None,
        success: bool = True,
        error_msg: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Optional[int]:
        """Append one audit entry.

        Args:
            action: Action tag (see audit.actions)
            actor_id: Acting party ("system", "admin", or a user id)
            entity_type: Subject type tag
            entity_id: Subject id (soft reference; the subject may be gone)
            details: JSON-serializable context
            success: Whether the audited action succeeded
            error_msg: Failure reason when success is False

        Returns:
            The new entry id, or None when the write failed
        """
        entry = AuditLog(
            timestamp=self.clock(),
            user_id=actor_id,
            user_email=actor_email or "",
            action=action,
            entity_type=entity_type,
            entity_id=None if entity_id is None else str(entity_id),
            details=_json_details(details),
            ip_address=ip_address,
            user_agent=user_agent,
            success=success,
            error_msg=error_msg,
        )

        try:
            with session_scope(self.session_factory) as session:
                session.add(entry)
                session.flush()
                entry_id = entry.id
        except Exception as e:
            audit_write_failures_total.inc()
            logger.error(
                f"Failed to write audit entry {action} for {entity_type} {entity_id}: {e}",
                exc_info=True,
                extra={"actor": actor_id},
            )
            return None

        return entry_id

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def _apply_filter(self, stmt, audit_filter: AuditLogFilter):
        if audit_filter.user_id:
            stmt = stmt.where(AuditLog.user_id == audit_filter.user_id)
        if audit_filter.action:
            stmt = stmt.where(AuditLog.action == audit_filter.action)
        if audit_filter.entity_type:
            stmt = stmt.where(AuditLog.entity_type == audit_filter.entity_type)
        if audit_filter.entity_id:
            stmt = stmt.where(AuditLog.entity_id == audit_filter.entity_id)
        if audit_filter.start_date:
            stmt = stmt.where(AuditLog.timestamp >= audit_filter.start_date)
        if audit_filter.end_date:
            stmt = stmt.where(AuditLog.timestamp <= audit_filter.end_date)
        if audit_filter.success is not None:
            stmt = stmt.where(AuditLog.success.is_(audit_filter.success))
        if audit_filter.search:
            pattern = f"%{audit_filter.search}%"
            stmt = stmt.where(
                or_(
                    AuditLog.user_email.ilike(pattern),
                    AuditLog.action.ilike(pattern),
                    AuditLog.details.ilike(pattern),
                    AuditLog.entity_id.ilike(pattern),
                )
            )
        return stmt

    def query(self, audit_filter: Optional[AuditLogFilter] = None) -> List[AuditLog]:
        """Entries matching the filter, newest first."""
        audit_filter = audit_filter or AuditLogFilter()
        stmt = self._apply_filter(select(AuditLog), audit_filter)
        stmt = (
            stmt.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
            .limit(audit_filter.limit)
            .offset(audit_filter.offset)
        )
        with session_scope(self.session_factory) as session:
            return list(session.scalars(stmt))

    def count(self, audit_filter: Optional[AuditLogFilter] = None) -> int:
        """Number of entries matching the filter (limit/offset ignored)."""
        audit_filter = audit_filter or AuditLogFilter()
        stmt = self._apply_filter(select(func.count(AuditLog.id)), audit_filter)
        with session_scope(self.session_factory) as session:
            return session.scalar(stmt) or 0

    def estimate_size_bytes(self) -> int:
        """Estimated storage used by the audit table.

        Sum of the text column lengths plus a fixed per-row overhead; the
        figure is portable across databases and only has to be monotonic in
        the number and size of entries.
        """
        text_columns = (
            AuditLog.user_id,
            AuditLog.user_email,
            AuditLog.action,
            AuditLog.entity_type,
            AuditLog.entity_id,
            AuditLog.details,
            AuditLog.ip_address,
            AuditLog.user_agent,
            AuditLog.error_msg,
        )
        row_length = sum(func.coalesce(func.length(column), 0) for column in text_columns)
        stmt = select(func.count(AuditLog.id), func.coalesce(func.sum(row_length), 0))

        with session_scope(self.session_factory) as session:
            rows, text_bytes = session.execute(stmt).one()

        return int(text_bytes) + int(rows) * ROW_OVERHEAD_BYTES

    def stats(self, now: Optional[int] = None) -> AuditStats:
        now = self.clock() if now is None else now
        with session_scope(self.session_factory) as session:
            total = session.scalar(select(func.count(AuditLog.id))) or 0
            top_actions = session.execute(
                select(AuditLog.action, func.count(AuditLog.id).label("count"))
                .group_by(AuditLog.action)
                .order_by(func.count(AuditLog.id).desc())
                .limit(10)
            ).all()
            recent = session.scalar(
                select(func.count(AuditLog.id)).where(AuditLog.timestamp >= now - 24 * 3600)
            ) or 0
            failed = session.scalar(
                select(func.count(AuditLog.id)).where(AuditLog.success.is_(False))
            ) or 0

        return AuditStats(
            total_logs=total,
            top_actions={action: count for action, count in top_actions},
            logs_last_24h=recent,
            failed_actions=failed,
            size_bytes=self.estimate_size_bytes(),
        )

    # ------------------------------------------------------------------
    # Rolling purge
    # ------------------------------------------------------------------

    def purge_older_than(self, days: int, now: Optional[int] = None) -> int:
        """Delete entries older than ``days``.

        Returns:
            Number of entries deleted
        """
        now = self.clock() if now is None else now
        cutoff = now - days * 24 * 3600

        with session_scope(self.session_factory) as session:
            deleted = session.execute(delete(AuditLog).where(AuditLog.timestamp < cutoff)).rowcount

        if deleted:
            logger.info(f"Audit purge by age deleted {deleted} entries older than {days} days")
            self.record(
                AUDIT_LOG_CLEANUP,
                actor_id="system",
                actor_email="system",
                entity_type=ENTITY_SYSTEM,
                entity_id="audit_logs",
                details={"reason": "age", "retention_days": days, "deleted": deleted},
            )
        return deleted

    def purge_to_size(self, max_mb: float) -> int:
        """Delete the oldest entries until the estimated size fits ``max_mb``.

        The number of rows removed is estimated from the average row size,
        and at least one row is removed whenever the table is over budget.

        Returns:
            Number of entries deleted
        """
        max_bytes = int(max_mb * BYTES_PER_MB)
        current = self.estimate_size_bytes()
        if current <= max_bytes:
            return 0

        total = self.count()
        if total == 0:
            return 0

        avg_row_size = max(current // total, 1)
        rows_to_delete = max((current - max_bytes) // avg_row_size, 1)

        with session_scope(self.session_factory) as session:
            oldest = list(session.scalars(
                select(AuditLog.id)
                .order_by(AuditLog.timestamp.asc(), AuditLog.id.asc())
                .limit(rows_to_delete)
            ))
            deleted = session.execute(delete(AuditLog).where(AuditLog.id.in_(oldest))).rowcount

        if deleted:
            logger.info(
                f"Audit purge by size deleted {deleted} entries "
                f"(estimated {current} bytes, budget {max_bytes} bytes)"
            )
            self.record(
                AUDIT_LOG_CLEANUP,
                actor_id="system",
                actor_email="system",
                entity_type=ENTITY_SYSTEM,
                entity_id="audit_logs",
                details={
                    "reason": "size",
                    "max_size_mb": max_mb,
                    "estimated_size_bytes": current,
                    "deleted": deleted,
                },
            )
        return deleted
