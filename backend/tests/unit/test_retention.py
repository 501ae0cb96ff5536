"""Unit tests for retention module.

Tests retention settings validation, configuration-table overrides, sweep
statistics and the RetentionService facade.
"""

import pytest
from pydantic import ValidationError

from config import Settings
from lifecycle.context import load_retention_settings
from lifecycle.errors import StoreError
from lifecycle.schemas import Actor, TransitionOutcome
from models import DownloadAccount, File, User
from retention.schemas import RetentionSettings, RetentionSettingsUpdate, SweepStatistics
from retention.service import RetentionService

DAY = 86400


class TestRetentionSettings:
    """Test RetentionSettings schema validation."""

    def test_default_values(self):
        """Test the default retention windows."""
        settings = RetentionSettings()

        assert settings.trash_retention_days == 5
        assert settings.account_purge_days == 90
        assert settings.audit_log_retention_days == 90
        assert settings.audit_log_max_size_mb == 100
        assert settings.file_request_grace_days == 10

    def test_zero_trash_retention_is_allowed(self):
        assert RetentionSettings(trash_retention_days=0).trash_retention_days == 0

    def test_negative_retention_rejected(self):
        with pytest.raises(ValidationError) as exc:
            RetentionSettings(trash_retention_days=-1)

        assert "greater than or equal to 0" in str(exc.value)

    def test_account_window_minimum(self):
        with pytest.raises(ValidationError):
            RetentionSettings(account_purge_days=0)

    def test_from_settings(self):
        settings = Settings(TRASH_RETENTION_DAYS=7, AUDIT_LOG_MAX_SIZE_MB=20, SWEEP_BATCH_SIZE=50)

        retention = RetentionSettings.from_settings(settings)

        assert retention.trash_retention_days == 7
        assert retention.audit_log_max_size_mb == 20
        assert retention.sweep_batch_size == 50
        assert retention.account_purge_days == 90


class TestRetentionSettingsUpdate:
    """Test partial updates to retention settings."""

    def test_partial_update(self):
        """Test that partial updates only include provided fields."""
        update = RetentionSettingsUpdate(trash_retention_days=14)

        data = update.model_dump(exclude_none=True)

        assert data == {"trash_retention_days": 14}

    def test_validation_on_update(self):
        """Test that validation still applies to partial updates."""
        with pytest.raises(ValidationError):
            RetentionSettingsUpdate(audit_log_retention_days=0)


class TestLoadRetentionSettings:
    """Test configuration-table overrides on top of environment defaults."""

    def test_no_overrides_returns_defaults(self, ctx):
        defaults = RetentionSettings(trash_retention_days=7)

        assert load_retention_settings(ctx.store, defaults) is defaults

    def test_stored_values_override(self, ctx):
        ctx.store.set_config_values({"trash_retention_days": "2", "audit_log_max_size_mb": "50"})

        settings = load_retention_settings(ctx.store, RetentionSettings())

        assert settings.trash_retention_days == 2
        assert settings.audit_log_max_size_mb == 50
        assert settings.account_purge_days == 90

    def test_invalid_values_are_ignored(self, ctx):
        ctx.store.set_config_values({"trash_retention_days": "soon"})
        assert load_retention_settings(ctx.store, RetentionSettings()).trash_retention_days == 5

        ctx.store.set_config_values({"trash_retention_days": "-3"})
        assert load_retention_settings(ctx.store, RetentionSettings()).trash_retention_days == 5

    def test_unreadable_table_falls_back(self, ctx, monkeypatch):
        def broken(*args, **kwargs):
            raise StoreError("no such table: configuration")

        monkeypatch.setattr(ctx.store, "get_config_values", broken)
        defaults = RetentionSettings()

        assert load_retention_settings(ctx.store, defaults) is defaults


class TestSweepStatistics:
    """Test SweepStatistics schema."""

    def test_has_errors(self):
        """Test error detection."""
        assert not SweepStatistics(sweep="expiration", started_at=0, processed=2, succeeded=2).has_errors
        assert SweepStatistics(sweep="expiration", started_at=0, processed=2, failed=1).has_errors
        assert SweepStatistics(sweep="trash_purge", started_at=0, processed=1, succeeded=1, blob_errors=1).has_errors

    def test_is_anomaly(self):
        """Test anomaly detection (>10k entities changed)."""
        normal = SweepStatistics(sweep="expiration", started_at=0, processed=5000, succeeded=5000)
        assert not normal.is_anomaly

        large = SweepStatistics(sweep="expiration", started_at=0, processed=10001, succeeded=10001)
        assert large.is_anomaly

    def test_counts_cannot_exceed_processed(self):
        with pytest.raises(ValidationError):
            SweepStatistics(sweep="expiration", started_at=0, processed=1, succeeded=1, failed=1)


class TestRetentionService:
    """Test RetentionService against a real database and blob store."""

    @pytest.fixture
    def service(self, ctx) -> RetentionService:
        return RetentionService(ctx)

    def test_admin_trash_and_restore(self, service, make_user, make_file, fetch):
        user = make_user()
        file = make_file(user.id)

        trashed = service.trash_file(file.id, Actor("admin"))
        restored = service.restore_file(file.id, Actor.for_user(user.id))

        assert trashed.details["reason"] == "admin"
        assert restored.outcome == TransitionOutcome.APPLIED
        assert fetch(File, file.id).deleted_at == 0

    def test_purge_file_immediately(self, service, make_user, make_file, fetch):
        user = make_user()
        file = make_file(user.id)
        service.trash_file(file.id, Actor.for_user(user.id))

        result = service.purge_file(file.id, Actor("admin"), retention_days=0)

        assert result.outcome == TransitionOutcome.APPLIED
        assert fetch(File, file.id) is None

    def test_purge_old_trash(self, service, clock, make_user, make_file, fetch):
        user = make_user()
        file = make_file(user.id)
        service.trash_file(file.id, Actor.for_user(user.id))
        clock.advance(days=2)

        statistics = service.purge_old_trash(retention_days=2)

        assert statistics.succeeded == 1
        assert fetch(File, file.id) is None

    def test_account_lifecycle(self, service, clock, make_user, make_download_account, fetch):
        user = make_user()
        account = make_download_account()
        service.soft_delete_user(user.id, Actor("admin"))
        service.soft_delete_download_account(account.id, Actor("admin"))
        clock.advance(days=30)

        assert service.purge_old_accounts() == 0
        assert service.purge_old_accounts(age_days=30) == 2
        assert fetch(User, user.id) is None
        assert fetch(DownloadAccount, account.id) is None

    def test_update_settings(self, service, ctx):
        settings = service.update_settings(RetentionSettingsUpdate(trash_retention_days=1), Actor("admin"))

        assert settings.trash_retention_days == 1
        assert service.get_retention_settings().trash_retention_days == 1
        assert ctx.store.get_config_values(["trash_retention_days"]) == {"trash_retention_days": "1"}

    def test_empty_update_is_noop(self, service):
        before = service.get_retention_settings()

        assert service.update_settings(RetentionSettingsUpdate()) is before

    def test_update_uses_new_window(self, service, clock, make_user, make_file, fetch):
        """Test a lowered trash window applies to the next purge sweep"""
        user = make_user()
        file = make_file(user.id)
        service.trash_file(file.id, Actor.for_user(user.id))
        clock.advance(days=1)

        assert service.purge_old_trash().succeeded == 0
        service.update_settings(RetentionSettingsUpdate(trash_retention_days=1))
        assert service.purge_old_trash().succeeded == 1
        assert fetch(File, file.id) is None
