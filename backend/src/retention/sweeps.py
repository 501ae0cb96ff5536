"""Recurring retention sweeps.

Each sweep is a function of (context, now): it selects due candidates in
keyset pages and hands each one to the same lifecycle entry point that
explicit user and admin actions use. Sweeps hold no lock between selecting
and transitioning; the entry points' conditional statements resolve races.

Sweeps:
1. Expiration: trash files whose time or download limit is exceeded
2. Trash purge: purge trashed files past the retention window, then delete
   orphaned blobs (blobs without a file row)
3. File request purge: delete requests expired longer than the grace window
4. Account purge: purge soft-deleted users and download accounts
5. Audit purge: drop audit entries by age, then by size

A failing candidate is logged and counted; the sweep moves on and the next
run retries it.
"""

import logging
import time
from dataclasses import dataclass, replace
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

from infrastructure.storage import BlobStoreError
from lifecycle.accounts import purge_download_account, purge_user
from lifecycle.context import LifecycleContext
from lifecycle.errors import StoreError
from lifecycle.files import delete_blob_quietly, purge_file, purge_file_request, trash_file
from lifecycle.schemas import SYSTEM_ACTOR, TransitionOutcome, TransitionResult
from lifecycle.store import DueKind
from observability.metrics import (
    sweep_duration_seconds,
    sweep_items_total,
    sweep_last_run_timestamp,
)
from observability.sweep_context import sweep_run
from .schemas import SweepStatistics

logger = logging.getLogger(__name__)

EXPIRATION = "expiration"
TRASH_PURGE = "trash_purge"
FILE_REQUEST_PURGE = "file_request_purge"
ACCOUNT_PURGE = "account_purge"
AUDIT_PURGE = "audit_purge"


@dataclass
class _Tally:
    processed: int = 0
    succeeded: int = 0
    noop: int = 0
    failed: int = 0
    blob_errors: int = 0

    def add(self, sweep: str, result: TransitionResult) -> None:
        self.processed += 1
        if not result.ok:
            self.failed += 1
            status = "failed"
        elif result.outcome == TransitionOutcome.APPLIED:
            self.succeeded += 1
            status = "succeeded"
        else:
            self.noop += 1
            status = "noop"
        if result.details.get("blob") == "error":
            self.blob_errors += 1
        sweep_items_total.labels(sweep=sweep, status=status).inc()


def _pin_clock(ctx: LifecycleContext, now: Optional[int]) -> LifecycleContext:
    """Context whose clock is frozen at the sweep's evaluation time."""
    if now is None:
        now = ctx.now()
    return replace(ctx, clock=lambda: now)


def _drain(
    ctx: LifecycleContext,
    sweep: str,
    kind: DueKind,
    window_days: int,
    handle: Callable[[object], TransitionResult],
    tally: _Tally,
) -> None:
    """Feed every due candidate to ``handle``, one keyset page at a time."""
    now = ctx.now()
    batch_size = ctx.settings.sweep_batch_size
    after_id = None
    while True:
        try:
            candidate_ids = ctx.store.get_due(kind, now, window_days, after_id=after_id, limit=batch_size)
        except StoreError as e:
            logger.error(
                f"Sweep {sweep} could not select {kind.value} candidates: {e}",
                exc_info=True,
                extra={"sweep": sweep},
            )
            return

        for candidate_id in candidate_ids:
            tally.add(sweep, handle(candidate_id))

        if len(candidate_ids) < batch_size:
            return
        after_id = candidate_ids[-1]


def _finish(sweep: str, now: int, started: float, tally: _Tally, **extra) -> SweepStatistics:
    duration = time.monotonic() - started
    sweep_duration_seconds.labels(sweep=sweep).observe(duration)
    sweep_last_run_timestamp.labels(sweep=sweep).set(now)

    statistics = SweepStatistics(
        sweep=sweep,
        started_at=now,
        duration_seconds=duration,
        processed=tally.processed,
        succeeded=tally.succeeded,
        noop=tally.noop,
        failed=tally.failed,
        blob_errors=tally.blob_errors,
        **extra,
    )

    logger.info(
        f"Sweep {sweep} completed: {statistics.succeeded} applied, "
        f"{statistics.noop} unchanged, {statistics.failed} failed",
        extra={"sweep": sweep, "stats": statistics.model_dump()},
    )
    if statistics.has_errors:
        logger.warning(
            f"Sweep {sweep} completed with errors",
            extra={"sweep": sweep, "stats": statistics.model_dump()},
        )
    if statistics.is_anomaly:
        logger.warning(
            f"Sweep {sweep} changed an unusually large number of entities: {statistics.succeeded}",
            extra={"sweep": sweep},
        )
    return statistics


def run_expiration_sweep(ctx: LifecycleContext, now: Optional[int] = None) -> SweepStatistics:
    """Trash every file whose time or download limit is exceeded (actor "system")."""
    ctx = _pin_clock(ctx, now)
    tally = _Tally()
    started = time.monotonic()

    with sweep_run(EXPIRATION):
        logger.info("Expiration sweep started", extra={"sweep": EXPIRATION})
        _drain(
            ctx,
            EXPIRATION,
            DueKind.EXPIRED_FILES,
            0,
            lambda file_id: trash_file(ctx, file_id, SYSTEM_ACTOR, reason="expired", only_if_due=True),
            tally,
        )
        return _finish(EXPIRATION, ctx.now(), started, tally)


def reconcile_orphan_blobs(ctx: LifecycleContext, min_age_hours: Optional[int] = None) -> int:
    """Delete blobs older than ``min_age_hours`` that have no file row.

    Completes purges that stopped between the row delete and the blob
    delete. Fresh blobs are left alone: their upload may not be registered
    yet.

    Returns:
        Number of orphaned blobs removed
    """
    if min_age_hours is None:
        min_age_hours = ctx.settings.orphan_blob_min_age_hours
    modified_before = ctx.now() - min_age_hours * 3600
    batch_size = ctx.settings.sweep_batch_size

    removed = 0
    batch = []

    def flush() -> int:
        existing = ctx.store.existing_file_ids(batch)
        count = 0
        for blob_id in batch:
            if blob_id in existing:
                continue
            if delete_blob_quietly(ctx, blob_id) == "deleted":
                logger.info(f"Deleted orphaned blob {blob_id}", extra={"file_id": blob_id})
                count += 1
        batch.clear()
        return count

    try:
        for blob in ctx.blob_store.list_blobs(modified_before):
            batch.append(blob.blob_id)
            if len(batch) >= batch_size:
                removed += flush()
        if batch:
            removed += flush()
    except (BlobStoreError, StoreError) as e:
        logger.error(f"Orphan blob reconciliation stopped: {e}", exc_info=True)

    return removed


def run_trash_purge_sweep(
    ctx: LifecycleContext,
    now: Optional[int] = None,
    retention_days: Optional[int] = None,
) -> SweepStatistics:
    """Purge every trashed file past the retention window, then reconcile orphaned blobs."""
    ctx = _pin_clock(ctx, now)
    if retention_days is None:
        retention_days = ctx.settings.trash_retention_days
    tally = _Tally()
    started = time.monotonic()

    with sweep_run(TRASH_PURGE):
        logger.info(
            f"Trash purge sweep started (retention {retention_days} days)",
            extra={"sweep": TRASH_PURGE},
        )
        _drain(
            ctx,
            TRASH_PURGE,
            DueKind.TRASHED_FILES_PAST_RETENTION,
            retention_days,
            lambda file_id: purge_file(ctx, file_id, SYSTEM_ACTOR, retention_days=retention_days),
            tally,
        )
        orphans = reconcile_orphan_blobs(ctx)
        return _finish(TRASH_PURGE, ctx.now(), started, tally, orphans_deleted=orphans)


def run_file_request_purge_sweep(ctx: LifecycleContext, now: Optional[int] = None) -> SweepStatistics:
    """Delete file requests expired for longer than the grace window."""
    ctx = _pin_clock(ctx, now)
    grace_days = ctx.settings.file_request_grace_days
    tally = _Tally()
    started = time.monotonic()

    with sweep_run(FILE_REQUEST_PURGE):
        logger.info("File request purge sweep started", extra={"sweep": FILE_REQUEST_PURGE})
        _drain(
            ctx,
            FILE_REQUEST_PURGE,
            DueKind.EXPIRED_FILE_REQUESTS,
            grace_days,
            lambda request_id: purge_file_request(ctx, request_id, SYSTEM_ACTOR, grace_days=grace_days),
            tally,
        )
        return _finish(FILE_REQUEST_PURGE, ctx.now(), started, tally)


def run_account_purge_sweep(
    ctx: LifecycleContext,
    now: Optional[int] = None,
    age_days: Optional[int] = None,
) -> SweepStatistics:
    """Purge soft-deleted users and download accounts past the account window."""
    ctx = _pin_clock(ctx, now)
    if age_days is None:
        age_days = ctx.settings.account_purge_days
    tally = _Tally()
    started = time.monotonic()

    with sweep_run(ACCOUNT_PURGE):
        logger.info(
            f"Account purge sweep started (age {age_days} days)",
            extra={"sweep": ACCOUNT_PURGE},
        )
        _drain(
            ctx,
            ACCOUNT_PURGE,
            DueKind.SOFT_DELETED_USERS,
            age_days,
            lambda user_id: purge_user(ctx, user_id, age_days=age_days),
            tally,
        )
        _drain(
            ctx,
            ACCOUNT_PURGE,
            DueKind.SOFT_DELETED_DOWNLOAD_ACCOUNTS,
            age_days,
            lambda account_id: purge_download_account(ctx, account_id, age_days=age_days),
            tally,
        )
        return _finish(ACCOUNT_PURGE, ctx.now(), started, tally)


def run_audit_purge_sweep(ctx: LifecycleContext, now: Optional[int] = None) -> SweepStatistics:
    """Rolling audit purge: entries past the age limit, then oldest entries over the size budget.

    Each of the two passes counts as one processed item.
    """
    ctx = _pin_clock(ctx, now)
    tally = _Tally()
    deleted = 0
    started = time.monotonic()

    passes = (
        ("age", lambda: ctx.audit.purge_older_than(ctx.settings.audit_log_retention_days, ctx.now())),
        ("size", lambda: ctx.audit.purge_to_size(ctx.settings.audit_log_max_size_mb)),
    )

    with sweep_run(AUDIT_PURGE):
        logger.info("Audit purge sweep started", extra={"sweep": AUDIT_PURGE})
        for name, run_pass in passes:
            tally.processed += 1
            try:
                removed = run_pass()
            except SQLAlchemyError as e:
                tally.failed += 1
                sweep_items_total.labels(sweep=AUDIT_PURGE, status="failed").inc()
                logger.error(f"Audit purge by {name} failed: {e}", exc_info=True, extra={"sweep": AUDIT_PURGE})
                continue

            deleted += removed
            status = "succeeded" if removed else "noop"
            if removed:
                tally.succeeded += 1
            else:
                tally.noop += 1
            sweep_items_total.labels(sweep=AUDIT_PURGE, status=status).inc()

        return _finish(AUDIT_PURGE, ctx.now(), started, tally, records_deleted=deleted)
