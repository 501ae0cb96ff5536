"""Observability for the lifecycle engine.

Provides structured logging, sweep run correlation and Prometheus metrics.
"""

from .logging_config import configure_logging, JSONFormatter, SweepIDFilter
from .sweep_context import sweep_id_var, get_sweep_id, set_sweep_id, sweep_run
from .metrics import (
    lifecycle_transitions_total,
    blob_delete_errors_total,
    sweep_duration_seconds,
    sweep_items_total,
    sweep_last_run_timestamp,
    audit_write_failures_total,
)

__all__ = [
    # Logging
    "configure_logging",
    "JSONFormatter",
    "SweepIDFilter",
    # Sweep run id
    "sweep_id_var",
    "get_sweep_id",
    "set_sweep_id",
    "sweep_run",
    # Metrics
    "lifecycle_transitions_total",
    "blob_delete_errors_total",
    "sweep_duration_seconds",
    "sweep_items_total",
    "sweep_last_run_timestamp",
    "audit_write_failures_total",
]
