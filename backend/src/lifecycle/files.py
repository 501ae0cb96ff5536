"""File lifecycle entry points.

Transitions:
- trash_file:   ACTIVE/EXPIRED → TRASHED, then quota recompute for the owner
- restore_file: TRASHED → ACTIVE
- purge_file:   TRASHED (past retention) → PURGED, then blob delete and quota recompute

Plus the mutations that feed the lifecycle: register_upload, record_download,
update_file_settings, and purge_file_request for expired upload requests.

Every entry point commits its store change first; blob deletion, quota
recompute and the audit entry follow. Nothing here raises for store or blob
failures: the outcome is returned as a TransitionResult and audited.
"""

import logging
from typing import Optional

from audit import actions
from infrastructure.storage import BlobDeleteResult, BlobStoreError
from models import DownloadLog, File
from observability.metrics import blob_delete_errors_total
from .context import LifecycleContext
from .errors import StoreError
from .recording import complete_transition
from .schemas import Actor, SYSTEM_ACTOR, TransitionOutcome, TransitionResult

logger = logging.getLogger(__name__)


def _failed(entity_type: str, entity_id, transition: str, error: Exception, **details) -> TransitionResult:
    return TransitionResult(
        entity_type=entity_type,
        entity_id=str(entity_id),
        transition=transition,
        outcome=TransitionOutcome.FAILED,
        error=str(error),
        details=details,
    )


def trash_file(
    ctx: LifecycleContext,
    file_id: str,
    actor: Actor,
    reason: str = "user",
    only_if_due: bool = False,
) -> TransitionResult:
    """Move a file to the trash.

    Args:
        ctx: Lifecycle context
        file_id: File to trash
        actor: Deleting party, recorded in ``deleted_by``
        reason: Why the file is trashed ("user", "admin", "expired", "account_deleted")
        only_if_due: Only trash if the file is still due for trashing (expiration sweep)

    Returns:
        TransitionResult; NOOP when already trashed (or no longer due), NOT_FOUND when missing
    """
    now = ctx.now()
    try:
        outcome, owner_id = ctx.store.trash_file(file_id, actor.id, now, only_if_due=only_if_due)
    except StoreError as e:
        logger.error(f"Failed to trash file {file_id}: {e}", exc_info=True, extra={"file_id": file_id})
        result = _failed(actions.ENTITY_FILE, file_id, "trash", e, reason=reason)
        return complete_transition(ctx, result, actions.FILE_TRASHED, actor)

    if outcome == TransitionOutcome.APPLIED:
        ctx.quota.recompute(owner_id)

    result = TransitionResult(
        entity_type=actions.ENTITY_FILE,
        entity_id=file_id,
        transition="trash",
        outcome=outcome,
        details={"reason": reason, "user_id": owner_id},
    )
    return complete_transition(ctx, result, actions.FILE_TRASHED, actor)


def restore_file(ctx: LifecycleContext, file_id: str, actor: Actor) -> TransitionResult:
    """Take a file out of the trash.

    The owner's usage is not recomputed here; the next recompute (upload,
    trash, purge or recompute_all) picks the restored file up.
    """
    try:
        outcome, owner_id = ctx.store.restore_file(file_id)
    except StoreError as e:
        logger.error(f"Failed to restore file {file_id}: {e}", exc_info=True, extra={"file_id": file_id})
        return complete_transition(ctx, _failed(actions.ENTITY_FILE, file_id, "restore", e), actions.FILE_RESTORED, actor)

    result = TransitionResult(
        entity_type=actions.ENTITY_FILE,
        entity_id=file_id,
        transition="restore",
        outcome=outcome,
        details={"user_id": owner_id},
    )
    return complete_transition(ctx, result, actions.FILE_RESTORED, actor)


def delete_blob_quietly(ctx: LifecycleContext, file_id: str) -> str:
    """Delete a file's blob; returns "deleted", "not_found" or "error".

    Absence counts as success. Any other failure is logged as a warning and
    left to the orphan reconciliation of the trash-purge sweep.
    """
    try:
        deleted = ctx.blob_store.delete_blob(file_id)
    except BlobStoreError as e:
        blob_delete_errors_total.inc()
        logger.warning(
            f"Blob delete failed for purged file {file_id}: {e}",
            extra={"file_id": file_id},
        )
        return "error"

    return "deleted" if deleted == BlobDeleteResult.DELETED else "not_found"


def purge_file(
    ctx: LifecycleContext,
    file_id: str,
    actor: Actor = SYSTEM_ACTOR,
    retention_days: Optional[int] = None,
    recompute_quota: bool = True,
    force: bool = False,
) -> TransitionResult:
    """Permanently delete a trashed file whose retention window has elapsed.

    Order: download logs and file row (one transaction), then the blob, then
    the owner's quota, then the audit entry. When the row is already gone
    the blob delete is still attempted so that a retry after a crash
    completes the purge.

    Args:
        ctx: Lifecycle context
        file_id: File to purge
        actor: Purging party
        retention_days: Retention window (defaults to the effective trash
            retention; 0 purges any trashed file immediately)
        recompute_quota: False inside an account purge
        force: Purge regardless of state (owner account purge)
    """
    if retention_days is None:
        retention_days = ctx.settings.trash_retention_days

    details = {"retention_days": retention_days}
    if force:
        details["force"] = True

    now = ctx.now()
    try:
        outcome, owner_id = ctx.store.purge_file(file_id, now, retention_days, force=force)
    except StoreError as e:
        logger.error(f"Failed to purge file {file_id}: {e}", exc_info=True, extra={"file_id": file_id})
        result = _failed(actions.ENTITY_FILE, file_id, "purge", e, **details)
        return complete_transition(ctx, result, actions.FILE_PURGED, actor)

    # NOOP means the row still exists but is not eligible: its blob must stay
    if outcome in (TransitionOutcome.APPLIED, TransitionOutcome.NOT_FOUND):
        details["blob"] = delete_blob_quietly(ctx, file_id)

    if outcome == TransitionOutcome.APPLIED and recompute_quota:
        ctx.quota.recompute(owner_id)

    if owner_id is not None:
        details["user_id"] = owner_id

    result = TransitionResult(
        entity_type=actions.ENTITY_FILE,
        entity_id=file_id,
        transition="purge",
        outcome=outcome,
        details=details,
    )
    return complete_transition(ctx, result, actions.FILE_PURGED, actor)


def register_upload(ctx: LifecycleContext, file: File, actor: Optional[Actor] = None) -> TransitionResult:
    """Record a new upload whose blob has already been written under ``file.id``."""
    actor = actor or Actor.for_user(file.user_id)
    if not file.upload_date:
        file.upload_date = ctx.now()

    try:
        ctx.store.insert_file(file)
    except StoreError as e:
        logger.error(f"Failed to register upload {file.id}: {e}", exc_info=True, extra={"file_id": file.id})
        return complete_transition(ctx, _failed(actions.ENTITY_FILE, file.id, "upload", e), actions.FILE_UPLOADED, actor)

    ctx.quota.recompute(file.user_id)

    result = TransitionResult(
        entity_type=actions.ENTITY_FILE,
        entity_id=file.id,
        transition="upload",
        outcome=TransitionOutcome.APPLIED,
        details={"name": file.name, "size_bytes": file.size_bytes, "user_id": file.user_id},
    )
    return complete_transition(ctx, result, actions.FILE_UPLOADED, actor)


def record_download(
    ctx: LifecycleContext,
    file_id: str,
    download_account_id: Optional[int] = None,
    email: Optional[str] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> TransitionResult:
    """Count one download of an active file and append its download log row.

    NOOP when the file exists but is not downloadable (trashed, expired or
    out of downloads).
    """
    if download_account_id is not None:
        actor = Actor(id=str(download_account_id), email=email)
    else:
        actor = Actor(id="anonymous", email=email)

    now = ctx.now()
    try:
        file = ctx.store.get_file(file_id)
        if file is None:
            outcome = TransitionOutcome.NOT_FOUND
        else:
            log = DownloadLog(
                file_id=file_id,
                download_account_id=download_account_id,
                email=email,
                ip_address=ip_address,
                user_agent=user_agent,
                downloaded_at=now,
                file_size=file.size_bytes,
                file_name=file.name,
                is_authenticated=download_account_id is not None,
            )
            outcome = ctx.store.record_download(log, now)
    except StoreError as e:
        logger.error(f"Failed to record download of {file_id}: {e}", exc_info=True, extra={"file_id": file_id})
        return complete_transition(ctx, _failed(actions.ENTITY_FILE, file_id, "download", e), actions.FILE_DOWNLOADED, actor)

    result = TransitionResult(
        entity_type=actions.ENTITY_FILE,
        entity_id=file_id,
        transition="download",
        outcome=outcome,
        details={"download_account_id": download_account_id},
    )
    return complete_transition(ctx, result, actions.FILE_DOWNLOADED, actor)


def update_file_settings(
    ctx: LifecycleContext,
    file_id: str,
    actor: Actor,
    downloads_remaining: int,
    expire_at: int,
    unlimited_downloads: bool = False,
    unlimited_time: bool = False,
) -> TransitionResult:
    """Change a live file's expiry and download limits.

    Extending the limits of an EXPIRED file that the expiration sweep has not
    reached yet makes it ACTIVE again. Trashed files are not changed (NOOP).
    """
    try:
        outcome, owner_id = ctx.store.update_file_limits(
            file_id,
            downloads_remaining=downloads_remaining,
            expire_at=expire_at,
            unlimited_downloads=unlimited_downloads,
            unlimited_time=unlimited_time,
        )
    except StoreError as e:
        logger.error(f"Failed to update file {file_id}: {e}", exc_info=True, extra={"file_id": file_id})
        return complete_transition(ctx, _failed(actions.ENTITY_FILE, file_id, "update", e), actions.FILE_UPDATED, actor)

    result = TransitionResult(
        entity_type=actions.ENTITY_FILE,
        entity_id=file_id,
        transition="update",
        outcome=outcome,
        details={
            "downloads_remaining": downloads_remaining,
            "expire_at": expire_at,
            "unlimited_downloads": unlimited_downloads,
            "unlimited_time": unlimited_time,
            "user_id": owner_id,
        },
    )
    return complete_transition(ctx, result, actions.FILE_UPDATED, actor)


def purge_file_request(
    ctx: LifecycleContext,
    request_id: int,
    actor: Actor = SYSTEM_ACTOR,
    grace_days: Optional[int] = None,
) -> TransitionResult:
    """Delete a file request whose expiry lies further back than the grace window."""
    if grace_days is None:
        grace_days = ctx.settings.file_request_grace_days

    try:
        outcome = ctx.store.delete_expired_file_request(request_id, ctx.now(), grace_days)
    except StoreError as e:
        logger.error(f"Failed to purge file request {request_id}: {e}", exc_info=True, extra={"request_id": request_id})
        result = _failed(actions.ENTITY_FILE_REQUEST, request_id, "purge", e, grace_days=grace_days)
        return complete_transition(ctx, result, actions.FILE_REQUEST_PURGED, actor)

    result = TransitionResult(
        entity_type=actions.ENTITY_FILE_REQUEST,
        entity_id=str(request_id),
        transition="purge",
        outcome=outcome,
        details={"grace_days": grace_days},
    )
    return complete_transition(ctx, result, actions.FILE_REQUEST_PURGED, actor)
