"""Retention store - transactional persistence for lifecycle transitions.

Every transition is one short transaction built around a conditional UPDATE
or DELETE, so a transition that races another (sweep vs. user action, two
sweeps, a vanished row) degrades to a no-op instead of an error. No lock is
held between ``get_due`` and the transition that follows it.

Database errors are raised as StoreError; the caller decides whether the
candidate is skipped or the transition is reported failed.
"""

import logging
from contextlib import contextmanager
from enum import Enum
from typing import Any, Dict, Generator, Iterable, List, Optional, Tuple

from sqlalchemy import and_, case, delete, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from database import session_scope
from models import ConfigValue, DownloadAccount, DownloadLog, File, FileRequest, User
from .errors import StoreError
from .schemas import TransitionOutcome
from .states import AccountKind, SECONDS_PER_DAY, anonymize_email, retention_cutoff

logger = logging.getLogger(__name__)


class DueKind(str, Enum):
    """Due predicates understood by get_due."""
    EXPIRED_FILES = "expired_files"
    TRASHED_FILES_PAST_RETENTION = "trashed_files_past_retention"
    EXPIRED_FILE_REQUESTS = "expired_file_requests"
    SOFT_DELETED_USERS = "soft_deleted_users"
    SOFT_DELETED_DOWNLOAD_ACCOUNTS = "soft_deleted_download_accounts"


_ACCOUNT_MODELS = {
    AccountKind.USER: User,
    AccountKind.DOWNLOAD_ACCOUNT: DownloadAccount,
}


def due_for_trash_clause(now: int):
    """SQL mirror of states.is_due_for_trash."""
    return and_(
        File.deleted_at == 0,
        or_(
            and_(File.expire_at > 0, File.expire_at < now, File.unlimited_time.is_(False)),
            and_(File.downloads_remaining <= 0, File.unlimited_downloads.is_(False)),
        ),
    )


class RetentionStore:
    """Store operations used by the lifecycle engine.

    Returned ORM objects are detached snapshots (the session factory is built
    with expire_on_commit=False); mutate rows only through the methods here.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    @contextmanager
    def transaction(self) -> Generator[Session, None, None]:
        """One transaction; database errors surface as StoreError."""
        try:
            with session_scope(self.session_factory) as session:
                yield session
        except SQLAlchemyError as e:
            raise StoreError(str(e)) from e

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_file(self, file_id: str) -> Optional[File]:
        with self.transaction() as session:
            return session.get(File, file_id)

    def get_account(self, kind: AccountKind, account_id: int):
        with self.transaction() as session:
            return session.get(_ACCOUNT_MODELS[kind], account_id)

    def get_due(
        self,
        kind: DueKind,
        now: int,
        window_days: int = 0,
        after_id: Optional[Any] = None,
        limit: int = 500,
    ) -> List[Any]:
        """Ids of entities matching a due predicate, one keyset page at a time.

        Args:
            kind: Which predicate to evaluate
            now: Current Unix time
            window_days: Retention / grace window for the purge predicates
            after_id: Last id of the previous page (None for the first page)
            limit: Page size

        Returns:
            Up to ``limit`` ids in ascending order, all greater than after_id
        """
        cutoff = retention_cutoff(now, window_days)

        if kind == DueKind.EXPIRED_FILES:
            column, condition = File.id, due_for_trash_clause(now)
        elif kind == DueKind.TRASHED_FILES_PAST_RETENTION:
            column, condition = File.id, and_(File.deleted_at > 0, File.deleted_at <= cutoff)
        elif kind == DueKind.EXPIRED_FILE_REQUESTS:
            column = FileRequest.id
            condition = and_(FileRequest.expires_at > 0, FileRequest.expires_at < cutoff)
        elif kind == DueKind.SOFT_DELETED_USERS:
            column, condition = User.id, and_(User.deleted_at > 0, User.deleted_at <= cutoff)
        elif kind == DueKind.SOFT_DELETED_DOWNLOAD_ACCOUNTS:
            column = DownloadAccount.id
            condition = and_(DownloadAccount.deleted_at > 0, DownloadAccount.deleted_at <= cutoff)
        else:
            raise ValueError(f"Unknown due predicate: {kind}")

        stmt = select(column).where(condition)
        if after_id is not None:
            stmt = stmt.where(column > after_id)
        stmt = stmt.order_by(column).limit(limit)

        with self.transaction() as session:
            return list(session.scalars(stmt))

    def user_file_ids(
        self,
        user_id: int,
        live_only: bool = True,
        after_id: Optional[str] = None,
        limit: int = 500,
    ) -> List[str]:
        """Ids of a user's files (only non-deleted ones when live_only)."""
        stmt = select(File.id).where(File.user_id == user_id)
        if live_only:
            stmt = stmt.where(File.deleted_at == 0)
        if after_id is not None:
            stmt = stmt.where(File.id > after_id)
        stmt = stmt.order_by(File.id).limit(limit)

        with self.transaction() as session:
            return list(session.scalars(stmt))

    def existing_file_ids(self, file_ids: Iterable[str]) -> set:
        ids = list(file_ids)
        if not ids:
            return set()
        with self.transaction() as session:
            return set(session.scalars(select(File.id).where(File.id.in_(ids))))

    def get_config_values(self, keys: Iterable[str]) -> Dict[str, str]:
        with self.transaction() as session:
            rows = session.execute(
                select(ConfigValue.key, ConfigValue.value).where(ConfigValue.key.in_(list(keys)))
            )
            return {key: value for key, value in rows}

    def set_config_values(self, values: Dict[str, str]) -> None:
        with self.transaction() as session:
            for key, value in values.items():
                session.merge(ConfigValue(key=key, value=value))

    # ------------------------------------------------------------------
    # File transitions
    # ------------------------------------------------------------------

    def trash_file(
        self,
        file_id: str,
        actor_id: str,
        now: int,
        only_if_due: bool = False,
    ) -> Tuple[TransitionOutcome, Optional[int]]:
        """ACTIVE/EXPIRED → TRASHED.

        Args:
            only_if_due: Re-check the due predicate inside the UPDATE so a file
                whose limits were extended after selection is left alone

        Returns:
            (outcome, owner user id or None when the file does not exist)
        """
        conditions = [File.id == file_id, File.deleted_at == 0]
        if only_if_due:
            conditions.append(due_for_trash_clause(now))

        with self.transaction() as session:
            result = session.execute(
                update(File)
                .where(*conditions)
                .values(deleted_at=now, deleted_by=actor_id)
                .execution_options(synchronize_session=False)
            )
            owner_id = session.scalar(select(File.user_id).where(File.id == file_id))

        if owner_id is None:
            return TransitionOutcome.NOT_FOUND, None
        if result.rowcount == 0:
            return TransitionOutcome.NOOP, owner_id
        return TransitionOutcome.APPLIED, owner_id

    def restore_file(self, file_id: str) -> Tuple[TransitionOutcome, Optional[int]]:
        """TRASHED → ACTIVE."""
        with self.transaction() as session:
            result = session.execute(
                update(File)
                .where(File.id == file_id, File.deleted_at > 0)
                .values(deleted_at=0, deleted_by=None)
                .execution_options(synchronize_session=False)
            )
            owner_id = session.scalar(select(File.user_id).where(File.id == file_id))

        if owner_id is None:
            return TransitionOutcome.NOT_FOUND, None
        if result.rowcount == 0:
            return TransitionOutcome.NOOP, owner_id
        return TransitionOutcome.APPLIED, owner_id

    def purge_file(
        self,
        file_id: str,
        now: int,
        retention_days: int,
        force: bool = False,
    ) -> Tuple[TransitionOutcome, Optional[int]]:
        """TRASHED → PURGED: delete dependent download logs, then the file row.

        Without ``force`` the file must be trashed and its retention window
        elapsed; the DELETE repeats that condition so a restore racing the
        purge wins. ``force`` purges in any state (used when the owner
        account is purged).
        """
        conditions = [File.id == file_id]
        if not force:
            conditions += [File.deleted_at > 0, File.deleted_at <= retention_cutoff(now, retention_days)]

        with self.transaction() as session:
            owner_id = session.scalar(select(File.user_id).where(File.id == file_id))
            if owner_id is None:
                return TransitionOutcome.NOT_FOUND, None

            eligible = session.scalar(select(File.id).where(*conditions))
            if eligible is None:
                return TransitionOutcome.NOOP, owner_id

            session.execute(delete(DownloadLog).where(DownloadLog.file_id == file_id))
            result = session.execute(delete(File).where(*conditions))
            if result.rowcount == 0:
                # Restored between the check and the delete
                session.rollback()
                return TransitionOutcome.NOOP, owner_id

        return TransitionOutcome.APPLIED, owner_id

    def insert_file(self, file: File) -> File:
        with self.transaction() as session:
            session.add(file)
        return file

    def update_file_limits(
        self,
        file_id: str,
        downloads_remaining: int,
        expire_at: int,
        unlimited_downloads: bool,
        unlimited_time: bool,
    ) -> Tuple[TransitionOutcome, Optional[int]]:
        """Change expiry and download limits of a file that is not in the trash."""
        with self.transaction() as session:
            result = session.execute(
                update(File)
                .where(File.id == file_id, File.deleted_at == 0)
                .values(
                    downloads_remaining=downloads_remaining,
                    expire_at=expire_at,
                    unlimited_downloads=unlimited_downloads,
                    unlimited_time=unlimited_time,
                )
                .execution_options(synchronize_session=False)
            )
            owner_id = session.scalar(select(File.user_id).where(File.id == file_id))

        if owner_id is None:
            return TransitionOutcome.NOT_FOUND, None
        if result.rowcount == 0:
            return TransitionOutcome.NOOP, owner_id
        return TransitionOutcome.APPLIED, owner_id

    def record_download(self, log: DownloadLog, now: int) -> TransitionOutcome:
        """Count a download against a live file and append its log row.

        The counter update is conditional on the file still being
        downloadable at ``now``; otherwise nothing is written.
        """
        with self.transaction() as session:
            result = session.execute(
                update(File)
                .where(
                    File.id == log.file_id,
                    File.deleted_at == 0,
                    or_(File.unlimited_downloads.is_(True), File.downloads_remaining > 0),
                    or_(File.unlimited_time.is_(True), File.expire_at == 0, File.expire_at > now),
                )
                .values(
                    download_count=File.download_count + 1,
                    # Unlimited files keep their counter untouched
                    downloads_remaining=case(
                        (File.unlimited_downloads.is_(True), File.downloads_remaining),
                        else_=File.downloads_remaining - 1,
                    ),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                exists = session.scalar(select(File.id).where(File.id == log.file_id))
                return TransitionOutcome.NOOP if exists else TransitionOutcome.NOT_FOUND

            if log.download_account_id is not None:
                session.execute(
                    update(DownloadAccount)
                    .where(DownloadAccount.id == log.download_account_id)
                    .values(download_count=DownloadAccount.download_count + 1, last_used=now)
                    .execution_options(synchronize_session=False)
                )
            session.add(log)

        return TransitionOutcome.APPLIED

    # ------------------------------------------------------------------
    # Account transitions
    # ------------------------------------------------------------------

    def soft_delete_account(
        self,
        kind: AccountKind,
        account_id: int,
        actor_id: str,
        now: int,
    ) -> Tuple[TransitionOutcome, Optional[str]]:
        """ACTIVE → SOFT_DELETED: anonymize email, keep the original, deactivate.

        Returns:
            (outcome, the account's current email placeholder or None when missing)
        """
        model = _ACCOUNT_MODELS[kind]
        with self.transaction() as session:
            row = session.execute(
                select(model.email, model.deleted_at).where(model.id == account_id)
            ).first()
            if row is None:
                return TransitionOutcome.NOT_FOUND, None
            email, deleted_at = row
            if deleted_at > 0:
                return TransitionOutcome.NOOP, email

            placeholder = anonymize_email(email, kind)
            result = session.execute(
                update(model)
                .where(model.id == account_id, model.deleted_at == 0)
                .values(
                    email=placeholder,
                    original_email=email,
                    is_active=False,
                    deleted_at=now,
                    deleted_by=actor_id,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                # Soft-deleted concurrently
                current = session.scalar(select(model.email).where(model.id == account_id))
                return TransitionOutcome.NOOP, current

        return TransitionOutcome.APPLIED, placeholder

    def anonymize_download_logs(self, account_id: int, placeholder: str) -> int:
        """Replace the email on an account's download history; returns rows changed."""
        with self.transaction() as session:
            result = session.execute(
                update(DownloadLog)
                .where(
                    DownloadLog.download_account_id == account_id,
                    or_(DownloadLog.email.is_(None), DownloadLog.email != placeholder),
                )
                .values(email=placeholder)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount

    def delete_cascade_dependents(self, kind: AccountKind, account_id: int) -> int:
        """Delete rows that reference an account and would block its removal.

        User: the user's file requests. DownloadAccount: its download logs.
        Files are not handled here; they go through purge_file.
        """
        with self.transaction() as session:
            if kind == AccountKind.USER:
                result = session.execute(delete(FileRequest).where(FileRequest.user_id == account_id))
            else:
                result = session.execute(
                    delete(DownloadLog).where(DownloadLog.download_account_id == account_id)
                )
            return result.rowcount

    def delete_account(
        self,
        kind: AccountKind,
        account_id: int,
        now: int,
        age_days: int,
    ) -> TransitionOutcome:
        """SOFT_DELETED → PURGED, only once the purge window has elapsed."""
        model = _ACCOUNT_MODELS[kind]
        with self.transaction() as session:
            result = session.execute(
                delete(model).where(
                    model.id == account_id,
                    model.deleted_at > 0,
                    model.deleted_at <= retention_cutoff(now, age_days),
                )
            )
            if result.rowcount:
                return TransitionOutcome.APPLIED
            exists = session.scalar(select(model.id).where(model.id == account_id))
        return TransitionOutcome.NOOP if exists is not None else TransitionOutcome.NOT_FOUND

    # ------------------------------------------------------------------
    # File requests
    # ------------------------------------------------------------------

    def delete_expired_file_request(self, request_id: int, now: int, grace_days: int) -> TransitionOutcome:
        cutoff = now - grace_days * SECONDS_PER_DAY
        with self.transaction() as session:
            result = session.execute(
                delete(FileRequest).where(
                    FileRequest.id == request_id,
                    FileRequest.expires_at > 0,
                    FileRequest.expires_at < cutoff,
                )
            )
            if result.rowcount:
                return TransitionOutcome.APPLIED
            exists = session.scalar(select(FileRequest.id).where(FileRequest.id == request_id))
        return TransitionOutcome.NOOP if exists is not None else TransitionOutcome.NOT_FOUND

    # ------------------------------------------------------------------
    # Quota
    # ------------------------------------------------------------------

    def recompute_quota(self, user_id: int, bytes_to_mb) -> Optional[int]:
        """Sum the user's non-deleted file sizes and store the MB figure.

        Returns:
            The stored value, or None when the user row does not exist
        """
        with self.transaction() as session:
            total_bytes = session.scalar(
                select(func.coalesce(func.sum(File.size_bytes), 0)).where(
                    File.user_id == user_id, File.deleted_at == 0
                )
            )
            used_mb = bytes_to_mb(int(total_bytes or 0))
            result = session.execute(
                update(User)
                .where(User.id == user_id)
                .values(storage_used_mb=used_mb)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                return None
        return used_mb

    def all_user_ids(self, after_id: Optional[int] = None, limit: int = 500) -> List[int]:
        stmt = select(User.id)
        if after_id is not None:
            stmt = stmt.where(User.id > after_id)
        with self.transaction() as session:
            return list(session.scalars(stmt.order_by(User.id).limit(limit)))
