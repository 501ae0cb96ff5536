"""Audit action and entity type tags written by the lifecycle engine."""

# File actions
FILE_UPLOADED = "FILE_UPLOADED"
FILE_DOWNLOADED = "FILE_DOWNLOADED"
FILE_UPDATED = "FILE_UPDATED"
FILE_TRASHED = "FILE_TRASHED"
FILE_RESTORED = "FILE_RESTORED"
FILE_PURGED = "FILE_PURGED"

# Account actions
USER_SOFT_DELETED = "USER_SOFT_DELETED"
USER_PURGED = "USER_PURGED"
DOWNLOAD_ACCOUNT_SOFT_DELETED = "DOWNLOAD_ACCOUNT_SOFT_DELETED"
DOWNLOAD_ACCOUNT_PURGED = "DOWNLOAD_ACCOUNT_PURGED"

# File request actions
FILE_REQUEST_PURGED = "FILE_REQUEST_PURGED"

# System actions
AUDIT_LOG_CLEANUP = "AUDIT_LOG_CLEANUP"

# Entity types
ENTITY_FILE = "File"
ENTITY_USER = "User"
ENTITY_DOWNLOAD_ACCOUNT = "DownloadAccount"
ENTITY_FILE_REQUEST = "FileRequest"
ENTITY_SYSTEM = "System"
