#!/usr/bin/env python
"""Run retention sweeps once, outside Celery.

Useful for cron-driven deployments without a worker, and for checking what
a sweep would pick up after changing retention settings.

Usage:
    python backend/scripts/run_sweeps.py                 # all sweeps
    python backend/scripts/run_sweeps.py expiration audit_purge

Sweeps: expiration, trash_purge, file_request_purge, account_purge, audit_purge

Environment Variables:
    DATABASE_URL: SQLAlchemy connection string
    STORAGE_BACKEND / UPLOADS_DIR / S3_*: Blob storage settings
    (see config.Settings for retention windows)
"""

import sys
from pathlib import Path

# Add backend/src to Python path
backend_src = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(backend_src))

from config import get_settings
from lifecycle.context import open_context
from observability.logging_config import configure_logging
from retention.sweeps import (
    run_account_purge_sweep,
    run_audit_purge_sweep,
    run_expiration_sweep,
    run_file_request_purge_sweep,
    run_trash_purge_sweep,
)

SWEEPS = {
    "expiration": run_expiration_sweep,
    "trash_purge": run_trash_purge_sweep,
    "file_request_purge": run_file_request_purge_sweep,
    "account_purge": run_account_purge_sweep,
    "audit_purge": run_audit_purge_sweep,
}


def main():
    """Run the requested sweeps in order."""
    names = sys.argv[1:] or list(SWEEPS)
    unknown = [name for name in names if name not in SWEEPS]
    if unknown:
        print(f"ERROR: Unknown sweep(s): {', '.join(unknown)}")
        print(f"Available: {', '.join(SWEEPS)}")
        sys.exit(1)

    settings = get_settings()
    configure_logging(level=settings.LOG_LEVEL, json_format=settings.LOG_JSON)

    failed = False
    with open_context(settings) as ctx:
        now = ctx.now()
        for name in names:
            statistics = SWEEPS[name](ctx, now)
            print(
                f"{name}: processed={statistics.processed} applied={statistics.succeeded} "
                f"noop={statistics.noop} failed={statistics.failed} "
                f"duration={statistics.duration_seconds:.2f}s"
            )
            failed = failed or statistics.has_errors

    if failed:
        sys.exit(2)


if __name__ == "__main__":
    main()
