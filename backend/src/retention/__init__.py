"""Retention sweeps and the retention service facade.

This module provides:
- Recurring sweeps: expiration, trash purge, file request purge,
  account purge, audit purge
- RetentionService: the lifecycle operations exposed to the application
- Celery tasks wrapping each sweep
"""

from .schemas import (
    RetentionSettings,
    RetentionSettingsUpdate,
    SweepStatistics,
)

# Service, sweeps and tasks are imported lazily to avoid circular dependencies
# Use: from retention.service import RetentionService
# Use: from retention.tasks import expiration_sweep_task

__all__ = [
    "RetentionSettings",
    "RetentionSettingsUpdate",
    "SweepStatistics",
]
