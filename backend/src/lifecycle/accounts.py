"""Account lifecycle entry points.

Accounts (users and download accounts) follow ACTIVE → SOFT_DELETED → PURGED:

- Soft delete anonymizes the email (the original is kept for the retention
  window), deactivates the account and cascades: a user's files go to the
  trash, a download account's download history gets the placeholder email.
- Purge, once the account window has elapsed, removes everything that still
  references the account and then the row itself, as ordered cleanup steps.
"""

import logging
from typing import List, Optional

from audit import actions
from .cleanup import CleanupStep, run_cleanup_steps
from .context import LifecycleContext
from .errors import CleanupStepError, LifecycleError, StoreError
from .files import purge_file, trash_file
from .recording import complete_transition
from .schemas import Actor, SYSTEM_ACTOR, TransitionOutcome, TransitionResult
from .states import AccountKind, is_due_for_purge

logger = logging.getLogger(__name__)

_PURGE_ACTIONS = {
    AccountKind.USER: actions.USER_PURGED,
    AccountKind.DOWNLOAD_ACCOUNT: actions.DOWNLOAD_ACCOUNT_PURGED,
}


def _soft_delete(ctx: LifecycleContext, kind: AccountKind, account_id: int, actor: Actor):
    """Soft-delete the account row; returns (result, placeholder email)."""
    try:
        outcome, placeholder = ctx.store.soft_delete_account(kind, account_id, actor.id, ctx.now())
    except StoreError as e:
        logger.error(
            f"Failed to soft-delete {kind.value} {account_id}: {e}",
            exc_info=True,
            extra={"account_id": account_id},
        )
        result = TransitionResult(
            entity_type=kind.value,
            entity_id=str(account_id),
            transition="soft_delete",
            outcome=TransitionOutcome.FAILED,
            error=str(e),
        )
        return result, None

    result = TransitionResult(
        entity_type=kind.value,
        entity_id=str(account_id),
        transition="soft_delete",
        outcome=outcome,
    )
    return result, placeholder


def _trash_user_files(ctx: LifecycleContext, user_id: int, actor: Actor) -> dict:
    """Trash every non-deleted file of a user; failures are logged per file."""
    trashed = 0
    failed: List[str] = []
    after_id = None
    while True:
        try:
            file_ids = ctx.store.user_file_ids(
                user_id, live_only=True, after_id=after_id, limit=ctx.settings.sweep_batch_size
            )
        except StoreError as e:
            logger.error(
                f"Could not list files of user {user_id} for cascade: {e}",
                exc_info=True,
                extra={"user_id": user_id},
            )
            return {"files_trashed": trashed, "files_failed": failed, "cascade_error": str(e)}

        if not file_ids:
            break

        for file_id in file_ids:
            result = trash_file(ctx, file_id, actor, reason="account_deleted")
            if result.changed:
                trashed += 1
            elif not result.ok:
                failed.append(file_id)
                logger.warning(
                    f"Cascade trash failed for file {file_id} of user {user_id}",
                    extra={"file_id": file_id, "user_id": user_id},
                )
        after_id = file_ids[-1]

    return {"files_trashed": trashed, "files_failed": failed}


def soft_delete_user(ctx: LifecycleContext, user_id: int, actor: Actor) -> TransitionResult:
    """Soft-delete a user and trash all of the user's files.

    The cascade also runs when the user was already soft-deleted, so calling
    this again picks up files a previous cascade failed on. A cascade
    failure does not undo the account transition.
    """
    result, _ = _soft_delete(ctx, AccountKind.USER, user_id, actor)

    if result.outcome in (TransitionOutcome.APPLIED, TransitionOutcome.NOOP):
        result.details.update(_trash_user_files(ctx, user_id, actor))

    return complete_transition(ctx, result, actions.USER_SOFT_DELETED, actor)


def soft_delete_download_account(ctx: LifecycleContext, account_id: int, actor: Actor) -> TransitionResult:
    """Soft-delete a download account and anonymize its download history.

    Files shared with the account are not touched.
    """
    result, placeholder = _soft_delete(ctx, AccountKind.DOWNLOAD_ACCOUNT, account_id, actor)

    if placeholder and result.outcome in (TransitionOutcome.APPLIED, TransitionOutcome.NOOP):
        try:
            result.details["logs_anonymized"] = ctx.store.anonymize_download_logs(account_id, placeholder)
        except StoreError as e:
            logger.error(
                f"Could not anonymize download logs of account {account_id}: {e}",
                exc_info=True,
                extra={"account_id": account_id},
            )
            result.details["cascade_error"] = str(e)

    return complete_transition(ctx, result, actions.DOWNLOAD_ACCOUNT_SOFT_DELETED, actor)


def _purge_all_user_files(ctx: LifecycleContext, user_id: int, actor: Actor) -> int:
    purged = 0
    failed = 0
    after_id = None
    while True:
        file_ids = ctx.store.user_file_ids(
            user_id, live_only=False, after_id=after_id, limit=ctx.settings.sweep_batch_size
        )
        if not file_ids:
            break
        for file_id in file_ids:
            result = purge_file(ctx, file_id, actor, recompute_quota=False, force=True)
            if result.changed:
                purged += 1
            elif not result.ok:
                failed += 1
        after_id = file_ids[-1]

    if failed:
        raise LifecycleError(f"{failed} file(s) of user {user_id} could not be purged")
    return purged


def _purge_account(
    ctx: LifecycleContext,
    kind: AccountKind,
    account_id: int,
    age_days: Optional[int],
    actor: Actor,
    steps: List[CleanupStep],
) -> TransitionResult:
    if age_days is None:
        age_days = ctx.settings.account_purge_days

    action = _PURGE_ACTIONS[kind]
    result = TransitionResult(
        entity_type=kind.value,
        entity_id=str(account_id),
        transition="purge",
        outcome=TransitionOutcome.APPLIED,
        details={"age_days": age_days},
    )

    now = ctx.now()
    try:
        account = ctx.store.get_account(kind, account_id)
    except StoreError as e:
        logger.error(f"Failed to load {kind.value} {account_id}: {e}", exc_info=True, extra={"account_id": account_id})
        result.outcome, result.error = TransitionOutcome.FAILED, str(e)
        return complete_transition(ctx, result, action, actor)

    if account is None:
        result.outcome = TransitionOutcome.NOT_FOUND
        return complete_transition(ctx, result, action, actor)

    if not is_due_for_purge(account.deleted_at, now, age_days):
        result.outcome = TransitionOutcome.NOOP
        return complete_transition(ctx, result, action, actor)

    delete_row = CleanupStep(
        "delete_account",
        lambda: ctx.store.delete_account(kind, account_id, now, age_days),
    )

    try:
        completed = run_cleanup_steps(steps + [delete_row], kind.value, account_id)
    except CleanupStepError as e:
        result.outcome, result.error = TransitionOutcome.FAILED, str(e)
        result.details["failed_step"] = e.step
        return complete_transition(ctx, result, action, actor)

    result.outcome = completed.pop("delete_account")
    result.details.update(completed)
    return complete_transition(ctx, result, action, actor)


def purge_user(
    ctx: LifecycleContext,
    user_id: int,
    age_days: Optional[int] = None,
    actor: Actor = SYSTEM_ACTOR,
) -> TransitionResult:
    """Permanently delete a soft-deleted user past the account window.

    Steps: purge every remaining file of the user (without quota
    recompute), delete the user's file requests, delete the user row.
    """
    steps = [
        CleanupStep("purge_files", lambda: _purge_all_user_files(ctx, user_id, actor)),
        CleanupStep(
            "delete_file_requests",
            lambda: ctx.store.delete_cascade_dependents(AccountKind.USER, user_id),
        ),
    ]
    return _purge_account(ctx, AccountKind.USER, user_id, age_days, actor, steps)


def purge_download_account(
    ctx: LifecycleContext,
    account_id: int,
    age_days: Optional[int] = None,
    actor: Actor = SYSTEM_ACTOR,
) -> TransitionResult:
    """Permanently delete a soft-deleted download account past the account window.

    Steps: delete the account's download logs, delete the account row.
    Per-file download counters are left as they are.
    """
    steps = [
        CleanupStep(
            "delete_download_logs",
            lambda: ctx.store.delete_cascade_dependents(AccountKind.DOWNLOAD_ACCOUNT, account_id),
        ),
    ]
    return _purge_account(ctx, AccountKind.DOWNLOAD_ACCOUNT, account_id, age_days, actor, steps)
