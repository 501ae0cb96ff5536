"""Append-only audit log for lifecycle events."""

from .service import AuditRecorder
from .schemas import AuditLogFilter, AuditStats

__all__ = ["AuditRecorder", "AuditLogFilter", "AuditStats"]
