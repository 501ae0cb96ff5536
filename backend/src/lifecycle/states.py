"""File and account lifecycle states and the pure decision logic over them.

File state flow:
    ACTIVE → EXPIRED (limits exceeded, pending trash) → TRASHED → PURGED
    ACTIVE → TRASHED (explicit delete), TRASHED → ACTIVE (restore)
    EXPIRED → ACTIVE (limits extended before the sweep ran)

Account state flow:
    ACTIVE → SOFT_DELETED → PURGED

Every function here is a function of the row and the clock only; the store
mirrors the same predicates in SQL.
"""

from enum import Enum
from typing import Dict, List, Optional

SECONDS_PER_DAY = 86400

ANONYMIZED_EMAIL_DOMAIN = "@deleted.local"
ANONYMIZED_USER_PREFIX = "deleted_user_"
ANONYMIZED_DOWNLOAD_PREFIX = "deleted_download_"


class FileState(str, Enum):
    """Derived lifecycle state of a file"""
    ACTIVE = "ACTIVE"      # Visible and downloadable
    EXPIRED = "EXPIRED"    # Time or download limit exceeded, awaiting the expiration sweep
    TRASHED = "TRASHED"    # Soft-deleted, restorable until the retention window elapses
    PURGED = "PURGED"      # Row and blob removed (terminal)


class AccountState(str, Enum):
    """Lifecycle state of a user or download account"""
    ACTIVE = "ACTIVE"
    SOFT_DELETED = "SOFT_DELETED"  # Anonymized, purged after the account window
    PURGED = "PURGED"              # Row removed (terminal)


class AccountKind(str, Enum):
    USER = "User"
    DOWNLOAD_ACCOUNT = "DownloadAccount"


FILE_TRANSITIONS: Dict[FileState, List[FileState]] = {
    FileState.ACTIVE: [FileState.EXPIRED, FileState.TRASHED],
    FileState.EXPIRED: [FileState.TRASHED, FileState.ACTIVE],
    FileState.TRASHED: [FileState.ACTIVE, FileState.PURGED],
    FileState.PURGED: [],
}

ACCOUNT_TRANSITIONS: Dict[AccountState, List[AccountState]] = {
    AccountState.ACTIVE: [AccountState.SOFT_DELETED],
    AccountState.SOFT_DELETED: [AccountState.PURGED],
    AccountState.PURGED: [],
}


def can_transition(from_state: Optional[FileState], to_state: FileState) -> bool:
    """Validate if a file state transition is allowed

    Example:
        >>> can_transition(FileState.TRASHED, FileState.ACTIVE)
        True
        >>> can_transition(FileState.PURGED, FileState.ACTIVE)
        False
    """
    if from_state is None:
        return to_state == FileState.ACTIVE
    return to_state in FILE_TRANSITIONS.get(from_state, [])


def can_transition_account(from_state: AccountState, to_state: AccountState) -> bool:
    return to_state in ACCOUNT_TRANSITIONS.get(from_state, [])


def is_time_limit_exceeded(file, now: int) -> bool:
    """Expiry set (non-zero), already passed, and the file is not unlimited-time."""
    return (not file.unlimited_time) and file.expire_at > 0 and file.expire_at < now


def is_download_limit_reached(file) -> bool:
    return (not file.unlimited_downloads) and file.downloads_remaining <= 0


def is_active(file, now: int) -> bool:
    """Whether a file is visible and usable at ``now``.

    Active iff not soft-deleted AND (unlimited time OR no expiry OR now <
    expiry) AND (unlimited downloads OR downloads remaining > 0).
    """
    if file.deleted_at != 0:
        return False
    time_ok = file.unlimited_time or file.expire_at == 0 or now < file.expire_at
    downloads_ok = file.unlimited_downloads or file.downloads_remaining > 0
    return time_ok and downloads_ok


def is_due_for_trash(file, now: int) -> bool:
    """Not yet soft-deleted and either limit has been exceeded.

    A file whose expiry equals ``now`` exactly is neither active nor due; it
    becomes due one second later.
    """
    if file.deleted_at != 0:
        return False
    return is_time_limit_exceeded(file, now) or is_download_limit_reached(file)


def retention_cutoff(now: int, days: int) -> int:
    """Latest deleted_at that satisfies ``now - deleted_at >= days * 86400``."""
    return now - days * SECONDS_PER_DAY


def is_due_for_purge(deleted_at: int, now: int, days: int) -> bool:
    """Soft-deleted and the retention window has fully elapsed."""
    return deleted_at > 0 and deleted_at <= retention_cutoff(now, days)


def file_state(file, now: int) -> FileState:
    """Derive the lifecycle state of a file row (None row means PURGED)."""
    if file is None:
        return FileState.PURGED
    if file.deleted_at > 0:
        return FileState.TRASHED
    if is_active(file, now):
        return FileState.ACTIVE
    return FileState.EXPIRED


def account_state(account) -> AccountState:
    if account is None:
        return AccountState.PURGED
    if account.deleted_at > 0:
        return AccountState.SOFT_DELETED
    return AccountState.ACTIVE


def anonymize_email(email: str, kind: AccountKind) -> str:
    """Placeholder written over an account's email on soft delete.

    Example:
        >>> anonymize_email("ann@example.com", AccountKind.USER)
        'deleted_user_ann@example.com@deleted.local'
    """
    prefix = ANONYMIZED_USER_PREFIX if kind == AccountKind.USER else ANONYMIZED_DOWNLOAD_PREFIX
    return f"{prefix}{email}{ANONYMIZED_EMAIL_DOMAIN}"
