"""Pydantic schemas for audit log queries.

Audit entries are read-only once written; these schemas describe the filters
accepted by compliance queries and the summary returned by ``stats``.
"""

from typing import Dict, Optional

from pydantic import BaseModel, Field, model_validator


class AuditLogFilter(BaseModel):
    """Filter for audit log queries.

    All criteria are optional and combined with AND. ``search`` matches
    case-insensitively against email, action, details and entity id.
    """
    user_id: Optional[str] = Field(None, description="Actor id (user id or role tag)")
    action: Optional[str] = Field(None, description="Exact action tag, e.g. FILE_PURGED")
    entity_type: Optional[str] = Field(None, description="File, User, DownloadAccount, ...")
    entity_id: Optional[str] = Field(None, description="Subject id")
    start_date: Optional[int] = Field(None, ge=0, description="Earliest timestamp (inclusive)")
    end_date: Optional[int] = Field(None, ge=0, description="Latest timestamp (inclusive)")
    search: Optional[str] = Field(None, description="Free-text search term")
    success: Optional[bool] = Field(None, description="Only successful / failed entries")
    limit: int = Field(50, ge=1, le=1000, description="Maximum entries returned")
    offset: int = Field(0, ge=0, description="Entries skipped")

    @model_validator(mode="after")
    def validate_date_range(self) -> "AuditLogFilter":
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self


class AuditStats(BaseModel):
    """Audit log summary for the compliance page."""
    total_logs: int = Field(..., ge=0)
    top_actions: Dict[str, int] = Field(default_factory=dict, description="Up to 10 most frequent actions")
    logs_last_24h: int = Field(..., ge=0)
    failed_actions: int = Field(..., ge=0)
    size_bytes: int = Field(..., ge=0, description="Estimated table size")

    @property
    def size_mb(self) -> float:
        return self.size_bytes / (1024 * 1024)
