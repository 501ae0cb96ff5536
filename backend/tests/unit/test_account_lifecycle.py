"""Unit tests for account lifecycle entry points

Tests soft delete with anonymization and cascade, and the ordered purge
steps for users and download accounts.
"""

from sqlalchemy import select

from audit.schemas import AuditLogFilter
from database import session_scope
from lifecycle.accounts import (
    purge_download_account,
    purge_user,
    soft_delete_download_account,
    soft_delete_user,
)
from lifecycle.errors import StoreError
from lifecycle.files import trash_file
from lifecycle.schemas import Actor, SYSTEM_ACTOR, TransitionOutcome
from models import DownloadAccount, DownloadLog, File, FileRequest, User

DAY = 86400


def log_emails(session_factory, account_id):
    with session_scope(session_factory) as session:
        return list(session.scalars(
            select(DownloadLog.email).where(DownloadLog.download_account_id == account_id)
        ))


class TestSoftDeleteUser:
    """Test ACTIVE → SOFT_DELETED for users"""

    def test_user_is_anonymized(self, ctx, clock, make_user, fetch):
        user = make_user(email="ann@example.com")

        result = soft_delete_user(ctx, user.id, Actor("admin"))

        assert result.outcome == TransitionOutcome.APPLIED
        stored = fetch(User, user.id)
        assert stored.email == "deleted_user_ann@example.com@deleted.local"
        assert stored.original_email == "ann@example.com"
        assert stored.is_active is False
        assert stored.deleted_at == clock.now
        assert stored.deleted_by == "admin"

    def test_cascade_trashes_live_files(self, ctx, clock, make_user, make_file, fetch):
        """Test every live file is trashed with the deleting party as actor"""
        user = make_user()
        live_a = make_file(user.id)
        live_b = make_file(user.id)
        already = make_file(user.id)
        trash_file(ctx, already.id, Actor.for_user(user.id))
        clock.advance(hours=1)

        result = soft_delete_user(ctx, user.id, Actor("admin"))

        assert result.details["files_trashed"] == 2
        assert result.details["files_failed"] == []
        for file in (live_a, live_b):
            stored = fetch(File, file.id)
            assert stored.deleted_at == clock.now
            assert stored.deleted_by == "admin"
        assert fetch(File, already.id).deleted_by == str(user.id)

    def test_reinvoking_picks_up_stragglers(self, ctx, make_user, make_file, fetch):
        """Test a second call is a no-op for the account but re-runs the cascade"""
        user = make_user(email="ann@example.com")
        soft_delete_user(ctx, user.id, Actor("admin"))
        straggler = make_file(user.id)

        result = soft_delete_user(ctx, user.id, Actor("admin"))

        assert result.outcome == TransitionOutcome.NOOP
        assert result.details["files_trashed"] == 1
        assert fetch(File, straggler.id).deleted_at > 0
        assert fetch(User, user.id).email == "deleted_user_ann@example.com@deleted.local"

    def test_cascade_failure_keeps_account_deleted(self, ctx, make_user, make_file, fetch, monkeypatch):
        user = make_user()
        file = make_file(user.id)

        def broken(*args, **kwargs):
            raise StoreError("disk I/O error")

        monkeypatch.setattr(ctx.store, "trash_file", broken)

        result = soft_delete_user(ctx, user.id, Actor("admin"))

        assert result.outcome == TransitionOutcome.APPLIED
        assert result.details["files_failed"] == [file.id]
        assert fetch(User, user.id).deleted_at > 0
        assert fetch(File, file.id).deleted_at == 0

    def test_missing_user(self, ctx):
        result = soft_delete_user(ctx, 4242, Actor("admin"))

        assert result.outcome == TransitionOutcome.NOT_FOUND
        assert result.ok is True

    def test_audit_entry(self, ctx, make_user):
        user = make_user()

        soft_delete_user(ctx, user.id, Actor("admin", "admin@example.com"))

        entries = ctx.audit.query(AuditLogFilter(action="USER_SOFT_DELETED"))
        assert len(entries) == 1
        assert entries[0].entity_type == "User"
        assert entries[0].entity_id == str(user.id)
        assert entries[0].user_email == "admin@example.com"


class TestSoftDeleteDownloadAccount:
    """Test ACTIVE → SOFT_DELETED for download accounts"""

    def test_account_and_logs_are_anonymized(
        self, ctx, make_user, make_file, make_download_account, make_download_log, fetch, session_factory
    ):
        user = make_user()
        file = make_file(user.id)
        account = make_download_account(email="bob@example.com")
        other = make_download_account(email="eve@example.com")
        make_download_log(file, account)
        make_download_log(file, account)
        make_download_log(file, other)

        result = soft_delete_download_account(ctx, account.id, Actor.for_user(account.id))

        placeholder = "deleted_download_bob@example.com@deleted.local"
        assert result.outcome == TransitionOutcome.APPLIED
        assert result.details["logs_anonymized"] == 2
        stored = fetch(DownloadAccount, account.id)
        assert stored.email == placeholder
        assert stored.original_email == "bob@example.com"
        assert stored.is_active is False
        assert log_emails(session_factory, account.id) == [placeholder, placeholder]
        assert log_emails(session_factory, other.id) == ["eve@example.com"]

    def test_shared_files_are_untouched(self, ctx, make_user, make_file, make_download_account, make_download_log, fetch):
        user = make_user()
        file = make_file(user.id)
        account = make_download_account()
        make_download_log(file, account)

        soft_delete_download_account(ctx, account.id, Actor("admin"))

        assert fetch(File, file.id).deleted_at == 0

    def test_second_call_is_noop(self, ctx, make_download_account):
        account = make_download_account()
        soft_delete_download_account(ctx, account.id, Actor("admin"))

        result = soft_delete_download_account(ctx, account.id, Actor("admin"))

        assert result.outcome == TransitionOutcome.NOOP
        assert result.details["logs_anonymized"] == 0


class TestPurgeUser:
    """Test SOFT_DELETED → PURGED for users"""

    def test_purge_before_window_is_noop(self, ctx, clock, make_user, fetch):
        user = make_user()
        soft_delete_user(ctx, user.id, Actor("admin"))
        clock.advance(days=89)

        result = purge_user(ctx, user.id)

        assert result.outcome == TransitionOutcome.NOOP
        assert fetch(User, user.id) is not None

    def test_active_user_is_not_purged(self, ctx, make_user, fetch):
        user = make_user()

        result = purge_user(ctx, user.id, age_days=1)

        assert result.outcome == TransitionOutcome.NOOP
        assert fetch(User, user.id) is not None

    def test_missing_user(self, ctx):
        assert purge_user(ctx, 999).outcome == TransitionOutcome.NOT_FOUND

    def test_purge_removes_files_requests_and_row(
        self, ctx, clock, make_user, make_file, make_file_request, make_download_log, fetch, uploads_dir, audit_actions
    ):
        user = make_user()
        files = [make_file(user.id), make_file(user.id)]
        make_download_log(files[0])
        request = make_file_request(user.id)
        soft_delete_user(ctx, user.id, Actor("admin"))
        clock.advance(days=90)

        result = purge_user(ctx, user.id)

        assert result.outcome == TransitionOutcome.APPLIED
        assert result.details["purge_files"] == 2
        assert result.details["delete_file_requests"] == 1
        assert fetch(User, user.id) is None
        assert fetch(FileRequest, request.id) is None
        for file in files:
            assert fetch(File, file.id) is None
            assert not (uploads_dir / file.id).exists()
            assert audit_actions(file.id)[-1] == "FILE_PURGED"
        assert audit_actions(user.id)[-1] == "USER_PURGED"

    def test_failed_step_stops_and_retry_completes(self, ctx, clock, make_user, make_file_request, fetch, monkeypatch):
        """Test a failing cleanup step leaves the row for the next run"""
        user = make_user()
        make_file_request(user.id)
        soft_delete_user(ctx, user.id, Actor("admin"))
        clock.advance(days=91)

        def broken(*args, **kwargs):
            raise StoreError("constraint failed")

        with monkeypatch.context() as patch:
            patch.setattr(ctx.store, "delete_cascade_dependents", broken)
            result = purge_user(ctx, user.id)

        assert result.outcome == TransitionOutcome.FAILED
        assert result.details["failed_step"] == "delete_file_requests"
        assert fetch(User, user.id) is not None

        retry = purge_user(ctx, user.id)

        assert retry.outcome == TransitionOutcome.APPLIED
        assert fetch(User, user.id) is None


class TestPurgeDownloadAccount:
    """Test SOFT_DELETED → PURGED for download accounts"""

    def test_purge_removes_logs_and_keeps_file_counters(
        self, ctx, clock, make_user, make_file, make_download_account, make_download_log, fetch, session_factory
    ):
        user = make_user()
        file = make_file(user.id, download_count=3)
        account = make_download_account()
        make_download_log(file, account)
        soft_delete_download_account(ctx, account.id, SYSTEM_ACTOR)
        clock.advance(days=90)

        result = purge_download_account(ctx, account.id)

        assert result.outcome == TransitionOutcome.APPLIED
        assert result.details["delete_download_logs"] == 1
        assert fetch(DownloadAccount, account.id) is None
        assert log_emails(session_factory, account.id) == []
        assert fetch(File, file.id).download_count == 3

    def test_purge_is_idempotent(self, ctx, clock, make_download_account):
        account = make_download_account()
        soft_delete_download_account(ctx, account.id, SYSTEM_ACTOR)
        clock.advance(days=90)
        purge_download_account(ctx, account.id)

        result = purge_download_account(ctx, account.id)

        assert result.outcome == TransitionOutcome.NOT_FOUND
        assert result.ok is True
