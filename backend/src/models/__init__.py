"""SQLAlchemy models for the file lifecycle engine"""

from .base import Base
from .account import User, DownloadAccount
from .file import File
from .download_log import DownloadLog
from .file_request import FileRequest
from .audit_log import AuditLog
from .configuration import ConfigValue

__all__ = [
    "Base",
    "User",
    "DownloadAccount",
    "File",
    "DownloadLog",
    "FileRequest",
    "AuditLog",
    "ConfigValue",
]
