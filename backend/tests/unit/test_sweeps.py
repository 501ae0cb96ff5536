"""Unit tests for the retention sweeps

Tests candidate selection, keyset paging, per-item failure isolation,
orphan blob reconciliation and the statistics each sweep returns.
"""

import os

import pytest

from audit.schemas import AuditLogFilter
from lifecycle.accounts import soft_delete_download_account, soft_delete_user
from lifecycle.context import LifecycleContext
from lifecycle.errors import StoreError
from lifecycle.files import trash_file
from lifecycle.schemas import Actor, SYSTEM_ACTOR
from lifecycle.store import RetentionStore
from models import DownloadAccount, File, FileRequest, User
from retention.schemas import RetentionSettings
from retention.sweeps import (
    reconcile_orphan_blobs,
    run_account_purge_sweep,
    run_audit_purge_sweep,
    run_expiration_sweep,
    run_file_request_purge_sweep,
    run_trash_purge_sweep,
)

DAY = 86400


@pytest.fixture
def small_batch_ctx(session_factory, blob_store, clock) -> LifecycleContext:
    """Context with a page size of 2 to exercise keyset paging"""
    return LifecycleContext(
        session_factory=session_factory,
        blob_store=blob_store,
        settings=RetentionSettings(sweep_batch_size=2),
        clock=clock,
    )


class TestExpirationSweep:
    """Test trashing of files past their limits"""

    def test_trashes_only_due_files(self, ctx, clock, make_user, make_file, fetch):
        user = make_user()
        expired = make_file(user.id, expire_at=clock.now - 1)
        exhausted = make_file(user.id, downloads_remaining=0)
        unlimited = make_file(user.id, expire_at=clock.now - 1, unlimited_time=True)
        active = make_file(user.id, expire_at=clock.now + DAY)

        statistics = run_expiration_sweep(ctx)

        assert statistics.sweep == "expiration"
        assert statistics.processed == 2
        assert statistics.succeeded == 2
        for file in (expired, exhausted):
            stored = fetch(File, file.id)
            assert stored.deleted_at == clock.now
            assert stored.deleted_by == "system"
        for file in (unlimited, active):
            assert fetch(File, file.id).deleted_at == 0

    def test_pages_through_all_candidates(self, small_batch_ctx, make_user, make_file, fetch):
        user = make_user()
        files = [make_file(user.id, downloads_remaining=0) for _ in range(5)]

        statistics = run_expiration_sweep(small_batch_ctx)

        assert statistics.processed == 5
        assert all(fetch(File, file.id).deleted_at > 0 for file in files)

    def test_second_run_finds_nothing(self, ctx, make_user, make_file):
        user = make_user()
        make_file(user.id, downloads_remaining=0)
        run_expiration_sweep(ctx)

        statistics = run_expiration_sweep(ctx)

        assert statistics.processed == 0

    def test_failing_item_is_skipped(self, small_batch_ctx, make_user, make_file, fetch, monkeypatch):
        """Test one failing candidate does not stop the sweep"""
        user = make_user()
        files = sorted((make_file(user.id, downloads_remaining=0) for _ in range(3)), key=lambda f: f.id)
        poisoned = files[1].id
        original = RetentionStore.trash_file

        def flaky(self, file_id, *args, **kwargs):
            if file_id == poisoned:
                raise StoreError("database is locked")
            return original(self, file_id, *args, **kwargs)

        # sweeps rebuild the store on a pinned clock, so patch the class
        monkeypatch.setattr(RetentionStore, "trash_file", flaky)

        statistics = run_expiration_sweep(small_batch_ctx)

        assert statistics.processed == 3
        assert statistics.succeeded == 2
        assert statistics.failed == 1
        assert statistics.has_errors is True
        assert fetch(File, poisoned).deleted_at == 0

    def test_explicit_now(self, ctx, clock, make_user, make_file, fetch):
        """Test the sweep evaluates against the given time"""
        user = make_user()
        file = make_file(user.id, expire_at=clock.now + 3600)

        run_expiration_sweep(ctx, now=clock.now + 7200)

        assert fetch(File, file.id).deleted_at == clock.now + 7200


class TestTrashPurgeSweep:
    """Test purging of trashed files and orphan reconciliation"""

    def test_purges_files_past_retention(self, ctx, clock, make_user, make_file, fetch, uploads_dir):
        user = make_user()
        old = make_file(user.id)
        recent = make_file(user.id)
        trash_file(ctx, old.id, SYSTEM_ACTOR)
        clock.advance(days=3)
        trash_file(ctx, recent.id, SYSTEM_ACTOR)
        clock.advance(days=2)

        statistics = run_trash_purge_sweep(ctx)

        assert statistics.succeeded == 1
        assert fetch(File, old.id) is None
        assert not (uploads_dir / old.id).exists()
        assert fetch(File, recent.id) is not None

    def test_explicit_retention(self, ctx, clock, make_user, make_file, fetch):
        user = make_user()
        file = make_file(user.id)
        trash_file(ctx, file.id, SYSTEM_ACTOR)
        clock.advance(days=1)

        statistics = run_trash_purge_sweep(ctx, retention_days=1)

        assert statistics.succeeded == 1
        assert fetch(File, file.id) is None

    def test_configured_retention(self, session_factory, blob_store, clock, make_user, make_file, fetch):
        ctx = LifecycleContext(
            session_factory=session_factory,
            blob_store=blob_store,
            settings=RetentionSettings(trash_retention_days=10),
            clock=clock,
        )
        user = make_user()
        file = make_file(user.id)
        trash_file(ctx, file.id, SYSTEM_ACTOR)
        clock.advance(days=6)

        assert run_trash_purge_sweep(ctx).processed == 0
        assert fetch(File, file.id) is not None

    def test_reconciles_old_orphans_only(self, ctx, clock, make_user, make_file, uploads_dir):
        user = make_user()
        kept = make_file(user.id)
        old_orphan = uploads_dir / "orphan-old"
        new_orphan = uploads_dir / "orphan-new"
        old_orphan.write_bytes(b"x")
        new_orphan.write_bytes(b"x")
        two_days_ago = clock.now - 2 * DAY
        for path in (old_orphan, uploads_dir / kept.id):
            os.utime(path, (two_days_ago, two_days_ago))
        os.utime(new_orphan, (clock.now - 3600, clock.now - 3600))

        statistics = run_trash_purge_sweep(ctx)

        assert statistics.orphans_deleted == 1
        assert not old_orphan.exists()
        assert new_orphan.exists()
        assert (uploads_dir / kept.id).exists()

    def test_reconcile_pages_existence_checks(self, small_batch_ctx, clock, uploads_dir):
        old = clock.now - 2 * DAY
        for index in range(5):
            path = uploads_dir / f"orphan-{index}"
            path.write_bytes(b"x")
            os.utime(path, (old, old))

        assert reconcile_orphan_blobs(small_batch_ctx) == 5


class TestFileRequestPurgeSweep:
    """Test deletion of expired file requests"""

    def test_purges_past_grace_only(self, ctx, clock, make_user, make_file_request, fetch, audit_actions):
        user = make_user()
        stale = make_file_request(user.id, expires_at=clock.now - 11 * DAY)
        recent = make_file_request(user.id, expires_at=clock.now - 2 * DAY)
        endless = make_file_request(user.id, expires_at=0)

        statistics = run_file_request_purge_sweep(ctx)

        assert statistics.succeeded == 1
        assert fetch(FileRequest, stale.id) is None
        assert fetch(FileRequest, recent.id) is not None
        assert fetch(FileRequest, endless.id) is not None
        assert audit_actions(stale.id) == ["FILE_REQUEST_PURGED"]


class TestAccountPurgeSweep:
    """Test purging of soft-deleted accounts"""

    def test_purges_both_account_kinds(self, ctx, clock, make_user, make_download_account, fetch):
        user = make_user()
        account = make_download_account()
        keep = make_user()
        soft_delete_user(ctx, user.id, Actor("admin"))
        soft_delete_download_account(ctx, account.id, Actor("admin"))
        clock.advance(days=90)
        soft_delete_user(ctx, keep.id, Actor("admin"))

        statistics = run_account_purge_sweep(ctx)

        assert statistics.succeeded == 2
        assert fetch(User, user.id) is None
        assert fetch(DownloadAccount, account.id) is None
        assert fetch(User, keep.id) is not None

    def test_explicit_age(self, ctx, clock, make_user, fetch):
        user = make_user()
        soft_delete_user(ctx, user.id, Actor("admin"))
        clock.advance(days=30)

        assert run_account_purge_sweep(ctx, age_days=30).succeeded == 1
        assert fetch(User, user.id) is None


class TestAuditPurgeSweep:
    """Test the rolling audit purge"""

    def test_purges_old_entries(self, ctx, clock):
        for index in range(3):
            ctx.audit.record("FILE_TRASHED", "system", "File", f"f{index}")
        clock.advance(days=91)

        statistics = run_audit_purge_sweep(ctx)

        assert statistics.records_deleted == 3
        assert statistics.processed == 2
        assert statistics.succeeded == 1
        assert statistics.noop == 1
        assert ctx.audit.count(AuditLogFilter(action="FILE_TRASHED")) == 0

    def test_nothing_to_purge(self, ctx):
        statistics = run_audit_purge_sweep(ctx)

        assert statistics.records_deleted == 0
        assert statistics.noop == 2
