"""Pytest fixtures for lifecycle engine testing.

Provides reusable test fixtures for:
- SQLite database in a temporary directory (schema created from the models)
- Local blob store in a temporary directory
- Controllable clock
- LifecycleContext wired to all of the above
- Factories for users, download accounts, files, download logs and file requests

Usage:
    def test_trash(ctx, make_user, make_file):
        user = make_user()
        file = make_file(user.id)
        assert trash_file(ctx, file.id, SYSTEM_ACTOR).changed
"""

import os
import sys
import uuid
from pathlib import Path

# Adjust imports based on your project structure
backend_src = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(backend_src))

# Settings read at import time (workers.celery_app) must not point at real services
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")

import pytest
from sqlalchemy import select

from database import create_db_engine, create_schema, create_session_factory, session_scope
from infrastructure.storage import LocalBlobStore
from lifecycle.context import LifecycleContext
from models import AuditLog, DownloadAccount, DownloadLog, File, FileRequest, User
from retention.schemas import RetentionSettings

DAY = 86400

# Fixed starting point for the fake clock (2023-11-14T22:13:20Z)
T0 = 1_700_000_000


class FakeClock:
    """Clock returning a settable Unix time."""

    def __init__(self, now: int = T0):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, days: float = 0, hours: float = 0, seconds: int = 0) -> int:
        self.now += int(days * DAY + hours * 3600 + seconds)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def engine(tmp_path):
    """SQLite database file with all tables created."""
    engine = create_db_engine(f"sqlite:///{tmp_path / 'fileshare.db'}")
    create_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def uploads_dir(tmp_path) -> Path:
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest.fixture
def blob_store(uploads_dir) -> LocalBlobStore:
    return LocalBlobStore(str(uploads_dir))


@pytest.fixture
def retention_settings() -> RetentionSettings:
    return RetentionSettings()


@pytest.fixture
def ctx(session_factory, blob_store, retention_settings, clock) -> LifecycleContext:
    return LifecycleContext(
        session_factory=session_factory,
        blob_store=blob_store,
        settings=retention_settings,
        clock=clock,
    )


def _add(session_factory, row):
    with session_scope(session_factory) as session:
        session.add(row)
    return row


@pytest.fixture
def make_user(session_factory, clock):
    """Factory for users; the email defaults to a unique address."""
    def _make(email=None, **overrides):
        values = {
            "name": "Test User",
            "email": email or f"user-{uuid.uuid4().hex[:8]}@example.com",
            "storage_quota_mb": 1000,
            "created_at": clock.now,
        }
        values.update(overrides)
        return _add(session_factory, User(**values))
    return _make


@pytest.fixture
def make_download_account(session_factory, clock):
    def _make(email=None, **overrides):
        values = {
            "name": "Recipient",
            "email": email or f"recipient-{uuid.uuid4().hex[:8]}@example.com",
            "created_at": clock.now,
        }
        values.update(overrides)
        return _add(session_factory, DownloadAccount(**values))
    return _make


@pytest.fixture
def make_file(session_factory, uploads_dir, clock):
    """Factory for files; writes a blob of ``size_bytes`` zero bytes unless blob=False.

    Files default to 10 remaining downloads and no expiry.
    """
    def _make(user_id, size_bytes=1024, blob=True, **overrides):
        values = {
            "id": uuid.uuid4().hex,
            "user_id": user_id,
            "name": "report.pdf",
            "size_bytes": size_bytes,
            "upload_date": clock.now,
            "downloads_remaining": 10,
        }
        values.update(overrides)
        file = File(**values)
        if blob:
            (uploads_dir / file.id).write_bytes(b"\0" * min(size_bytes, 4096))
        return _add(session_factory, file)
    return _make


@pytest.fixture
def make_download_log(session_factory, clock):
    def _make(file, download_account=None, **overrides):
        values = {
            "file_id": file.id,
            "download_account_id": download_account.id if download_account else None,
            "email": download_account.email if download_account else None,
            "downloaded_at": clock.now,
            "file_size": file.size_bytes,
            "file_name": file.name,
            "is_authenticated": download_account is not None,
        }
        values.update(overrides)
        return _add(session_factory, DownloadLog(**values))
    return _make


@pytest.fixture
def make_file_request(session_factory, clock):
    def _make(user_id, expires_at=0, **overrides):
        values = {
            "user_id": user_id,
            "request_token": uuid.uuid4().hex,
            "title": "Please upload",
            "created_at": clock.now,
            "expires_at": expires_at,
        }
        values.update(overrides)
        return _add(session_factory, FileRequest(**values))
    return _make


@pytest.fixture
def fetch(session_factory):
    """Fetch a fresh copy of a row by model and primary key (None when gone)."""
    def _fetch(model, key):
        with session_scope(session_factory) as session:
            return session.get(model, key)
    return _fetch


@pytest.fixture
def audit_actions(session_factory):
    """Audit actions in write order, optionally only those about one entity."""
    def _actions(entity_id=None):
        stmt = select(AuditLog.action).order_by(AuditLog.id)
        if entity_id is not None:
            stmt = stmt.where(AuditLog.entity_id == str(entity_id))
        with session_scope(session_factory) as session:
            return list(session.scalars(stmt))
    return _actions
