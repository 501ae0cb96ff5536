"""Prometheus metrics for the lifecycle engine.

Defines operational metrics for monitoring sweeps and transitions.
"""

from prometheus_client import Counter, Histogram, Gauge

# Transition metrics
lifecycle_transitions_total = Counter(
    "fileshare_lifecycle_transitions_total",
    "Lifecycle transitions attempted",
    ["entity_type", "transition", "outcome"]  # outcome: applied|noop|not_found|failed
)

blob_delete_errors_total = Counter(
    "fileshare_blob_delete_errors_total",
    "Physical blob deletions that failed for a reason other than absence",
)

# Sweep metrics
sweep_duration_seconds = Histogram(
    "fileshare_sweep_duration_seconds",
    "Time spent in one sweep run in seconds",
    ["sweep"],  # sweep: expiration|trash_purge|file_request_purge|account_purge|audit_purge
    buckets=[0.1, 0.5, 1.0, 5.0, 15.0, 60.0, 300.0, 900.0]
)

sweep_items_total = Counter(
    "fileshare_sweep_items_total",
    "Candidates handled by sweeps",
    ["sweep", "status"]  # status: succeeded|noop|failed
)

sweep_last_run_timestamp = Gauge(
    "fileshare_sweep_last_run_timestamp_seconds",
    "Unix time of the last completed sweep run",
    ["sweep"]
)

# Audit metrics
audit_write_failures_total = Counter(
    "fileshare_audit_write_failures_total",
    "Audit entries that could not be written",
)
