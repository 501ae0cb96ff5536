"""Celery tasks for the retention sweeps.

This module defines one scheduled task per sweep:
- retention.expiration_sweep: expiration sweep chained with the trash purge (every 6h)
- retention.file_request_purge: expired file request purge (every 24h)
- retention.account_purge: soft-deleted account purge (every 24h)
- retention.audit_purge: rolling audit log purge (every 24h)

Every task opens its own LifecycleContext, so configuration-table overrides
are picked up on each run. Tasks are idempotent - safe to run multiple
times; a second run in succession finds nothing left to do.
"""

import logging
from typing import Any, Dict

from celery import shared_task

from lifecycle.context import open_context
from .sweeps import (
    run_account_purge_sweep,
    run_audit_purge_sweep,
    run_expiration_sweep,
    run_file_request_purge_sweep,
    run_trash_purge_sweep,
)

logger = logging.getLogger(__name__)


def _run(task_name: str, *sweeps) -> Dict[str, Any]:
    """Run sweeps in order in one context and convert the statistics for the Celery result.

    Errors are logged and returned as a failed status instead of raised
    (the task always completes).
    """
    logger.info(f"Task {task_name} started")
    try:
        with open_context() as ctx:
            now = ctx.now()
            result: Dict[str, Any] = {'status': 'completed'}
            for sweep in sweeps:
                statistics = sweep(ctx, now)
                result[statistics.sweep] = statistics.model_dump()
                result['has_errors'] = result.get('has_errors', False) or statistics.has_errors
    except Exception as e:
        logger.error(
            f"Task {task_name} failed",
            exc_info=True,
            extra={"sweep": task_name},
        )
        # Return error status but don't raise (allow task to complete)
        return {
            'status': 'failed',
            'error': str(e),
        }

    logger.info(f"Task {task_name} completed", extra={"sweep": task_name, "stats": result})
    return result


@shared_task(name="retention.expiration_sweep", bind=True)
def expiration_sweep_task(self) -> Dict[str, Any]:
    """Trash expired files, then purge trashed files past the retention window.

    Returns:
        Dict with status and one statistics entry per sweep
        ('expiration', 'trash_purge')
    """
    return _run("retention.expiration_sweep", run_expiration_sweep, run_trash_purge_sweep)


@shared_task(name="retention.file_request_purge", bind=True)
def file_request_purge_task(self) -> Dict[str, Any]:
    """Delete file requests whose expiry lies beyond the grace window."""
    return _run("retention.file_request_purge", run_file_request_purge_sweep)


@shared_task(name="retention.account_purge", bind=True)
def account_purge_task(self) -> Dict[str, Any]:
    """Purge soft-deleted users and download accounts past the account window."""
    return _run("retention.account_purge", run_account_purge_sweep)


@shared_task(name="retention.audit_purge", bind=True)
def audit_purge_task(self) -> Dict[str, Any]:
    """Drop audit entries past the age limit, then trim to the size budget."""
    return _run("retention.audit_purge", run_audit_purge_sweep)
