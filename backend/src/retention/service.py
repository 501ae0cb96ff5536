"""Retention service - lifecycle operations exposed to the application.

The request path (user and admin actions) and the scheduled sweeps share
the same entry points; this facade binds them to one LifecycleContext.

Operations:
- trash_file / restore_file / purge_file: single file transitions
- purge_old_trash: trash purge sweep with an explicit retention window
- soft_delete_user / soft_delete_download_account: account soft delete with cascade
- purge_old_accounts: account purge sweep, returns the number of accounts removed
- update_settings: persist retention overrides in the configuration table
"""

import logging
from typing import Optional

from lifecycle import accounts, files
from lifecycle.context import LifecycleContext, load_retention_settings
from lifecycle.errors import StoreError
from lifecycle.schemas import Actor, SYSTEM_ACTOR, TransitionResult
from .schemas import RetentionSettings, RetentionSettingsUpdate, SweepStatistics
from .sweeps import run_account_purge_sweep, run_trash_purge_sweep

logger = logging.getLogger(__name__)


class RetentionService:
    """Lifecycle operations bound to one context.

    None of the operations raise for "already in target state" or "not
    found"; check ``TransitionResult.ok`` for failure.
    """

    def __init__(self, ctx: LifecycleContext):
        self.ctx = ctx

    def get_retention_settings(self) -> RetentionSettings:
        """Effective settings (configuration table overrides applied)."""
        return self.ctx.settings

    def trash_file(self, file_id: str, actor: Actor) -> TransitionResult:
        reason = "admin" if actor.id == "admin" else "user"
        return files.trash_file(self.ctx, file_id, actor, reason=reason)

    def restore_file(self, file_id: str, actor: Actor) -> TransitionResult:
        return files.restore_file(self.ctx, file_id, actor)

    def purge_file(self, file_id: str, actor: Actor, retention_days: Optional[int] = None) -> TransitionResult:
        """Purge one trashed file; ``retention_days=0`` purges it right away."""
        return files.purge_file(self.ctx, file_id, actor, retention_days=retention_days)

    def purge_old_trash(self, retention_days: Optional[int] = None) -> SweepStatistics:
        return run_trash_purge_sweep(self.ctx, retention_days=retention_days)

    def soft_delete_user(self, user_id: int, actor: Actor) -> TransitionResult:
        return accounts.soft_delete_user(self.ctx, user_id, actor)

    def soft_delete_download_account(self, account_id: int, actor: Actor) -> TransitionResult:
        return accounts.soft_delete_download_account(self.ctx, account_id, actor)

    def purge_old_accounts(self, age_days: Optional[int] = None) -> int:
        """Purge soft-deleted accounts older than ``age_days``.

        Returns:
            Number of accounts removed
        """
        statistics = run_account_purge_sweep(self.ctx, age_days=age_days)
        return statistics.succeeded

    def update_settings(self, update: RetentionSettingsUpdate, actor: Actor = SYSTEM_ACTOR) -> RetentionSettings:
        """Persist retention overrides and reload the effective settings.

        Raises:
            StoreError: The configuration table could not be written
        """
        values = {
            key: str(value)
            for key, value in update.model_dump(exclude_none=True).items()
        }
        if not values:
            return self.ctx.settings

        try:
            self.ctx.store.set_config_values(values)
        except StoreError:
            logger.error(f"Failed to store retention settings {values}", exc_info=True)
            raise

        self.ctx.settings = load_retention_settings(self.ctx.store, self.ctx.settings)
        logger.info(f"Retention settings updated by {actor.id}: {values}", extra={"actor": actor.id})
        return self.ctx.settings
