"""Pydantic schemas for retention settings and sweep statistics.

This module defines retention-related schemas:
- RetentionSettings: Effective retention windows used by the lifecycle engine
- RetentionSettingsUpdate: Partial update written to the configuration table
- SweepStatistics: Statistics about one sweep run
"""

from typing import Optional

from pydantic import BaseModel, Field, model_validator

# Keys of the configuration table that override environment defaults
CONFIG_KEYS = ("trash_retention_days", "audit_log_retention_days", "audit_log_max_size_mb")


class RetentionSettings(BaseModel):
    """Retention windows for files, accounts, file requests and audit logs.

    All periods are in days unless stated otherwise. A trash retention of 0
    makes trashed files purgeable on the next sweep.

    Defaults:
    - Trash: 5 days
    - Soft-deleted accounts: 90 days
    - Audit logs: 90 days or 100 MB, whichever is hit first
    - Expired file requests: 10 days after expiry
    """

    trash_retention_days: int = Field(
        default=5,
        ge=0,
        le=3650,
        description="Days a trashed file stays restorable (0-3650)"
    )

    account_purge_days: int = Field(
        default=90,
        ge=1,
        le=3650,
        description="Days a soft-deleted account is kept before purge (1-3650)"
    )

    audit_log_retention_days: int = Field(
        default=90,
        ge=1,
        le=3650,
        description="Audit log retention period in days (1-3650)"
    )

    audit_log_max_size_mb: int = Field(
        default=100,
        ge=1,
        le=10000,
        description="Audit log size budget in MB (1-10000)"
    )

    file_request_grace_days: int = Field(
        default=10,
        ge=0,
        le=365,
        description="Days an expired file request is kept (0-365)"
    )

    orphan_blob_min_age_hours: int = Field(
        default=24,
        ge=1,
        le=24 * 365,
        description="Minimum age of a blob without a file row before it is deleted"
    )

    sweep_batch_size: int = Field(
        default=500,
        ge=1,
        le=10000,
        description="Candidates fetched per keyset page"
    )

    @classmethod
    def from_settings(cls, settings) -> "RetentionSettings":
        """Build from application settings (environment defaults)."""
        return cls(
            trash_retention_days=settings.TRASH_RETENTION_DAYS,
            account_purge_days=settings.ACCOUNT_PURGE_DAYS,
            audit_log_retention_days=settings.AUDIT_LOG_RETENTION_DAYS,
            audit_log_max_size_mb=settings.AUDIT_LOG_MAX_SIZE_MB,
            file_request_grace_days=settings.FILE_REQUEST_GRACE_DAYS,
            orphan_blob_min_age_hours=settings.ORPHAN_BLOB_MIN_AGE_HOURS,
            sweep_batch_size=settings.SWEEP_BATCH_SIZE,
        )


class RetentionSettingsUpdate(BaseModel):
    """Runtime override of retention settings (partial updates allowed).

    Only the keys persisted in the configuration table can be overridden.
    """

    trash_retention_days: Optional[int] = Field(
        None,
        ge=0,
        le=3650,
        description="Days a trashed file stays restorable"
    )

    audit_log_retention_days: Optional[int] = Field(
        None,
        ge=1,
        le=3650,
        description="Audit log retention period in days"
    )

    audit_log_max_size_mb: Optional[int] = Field(
        None,
        ge=1,
        le=10000,
        description="Audit log size budget in MB"
    )


class SweepStatistics(BaseModel):
    """Statistics from one sweep run.

    Tracks how many candidates were processed and how each ended. Used for
    monitoring and alerting on sweep health.
    """

    sweep: str = Field(
        description="Sweep name (expiration, trash_purge, ...)"
    )

    started_at: int = Field(
        ge=0,
        description="Unix time the sweep evaluated its predicates against"
    )

    duration_seconds: float = Field(
        default=0.0,
        ge=0.0,
        description="Sweep execution duration in seconds"
    )

    processed: int = Field(
        default=0,
        ge=0,
        description="Candidates handled"
    )

    succeeded: int = Field(
        default=0,
        ge=0,
        description="Candidates whose transition was applied"
    )

    noop: int = Field(
        default=0,
        ge=0,
        description="Candidates already in the target state or no longer eligible"
    )

    failed: int = Field(
        default=0,
        ge=0,
        description="Candidates whose transition failed (retried next run)"
    )

    blob_errors: int = Field(
        default=0,
        ge=0,
        description="Physical deletions that failed for a reason other than absence"
    )

    orphans_deleted: int = Field(
        default=0,
        ge=0,
        description="Blobs without a file row that were removed"
    )

    records_deleted: int = Field(
        default=0,
        ge=0,
        description="Rows removed in bulk (audit purge)"
    )

    @model_validator(mode="after")
    def validate_counts(self) -> "SweepStatistics":
        if self.succeeded + self.noop + self.failed > self.processed:
            raise ValueError("succeeded + noop + failed cannot exceed processed")
        return self

    @property
    def has_errors(self) -> bool:
        """Whether any errors occurred during execution."""
        return self.failed > 0 or self.blob_errors > 0

    @property
    def is_anomaly(self) -> bool:
        """Whether deletion volume exceeds normal thresholds (alert condition)."""
        return self.succeeded > 10000
