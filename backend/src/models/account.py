"""User and DownloadAccount SQLAlchemy models

Both account kinds share the soft-delete columns used by the lifecycle
engine: ``original_email`` keeps the address that ``email`` held before
anonymization, ``deleted_at`` is 0 while the account is live.
"""

from sqlalchemy import Column, Text, BigInteger, Integer, Boolean, Index
from sqlalchemy.orm import relationship

from .base import Base


class User(Base):
    """Uploading user. Owns files and file requests."""
    __tablename__ = "users"
    __table_args__ = (
        Index("ix_users_email", "email"),
        Index("ix_users_deleted_at", "deleted_at"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(Text, nullable=False, default="")
    email = Column(Text, nullable=False)
    original_email = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    storage_quota_mb = Column(BigInteger, nullable=False, default=0)
    storage_used_mb = Column(BigInteger, nullable=False, default=0)
    created_at = Column(BigInteger, nullable=False, default=0)
    deleted_at = Column(BigInteger, nullable=False, default=0)
    deleted_by = Column(Text, nullable=True)

    # Relationships
    files = relationship("File", back_populates="owner")

    def to_dict(self):
        """Convert user to dictionary representation"""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "original_email": self.original_email,
            "is_active": self.is_active,
            "storage_quota_mb": self.storage_quota_mb,
            "storage_used_mb": self.storage_used_mb,
            "created_at": self.created_at,
            "deleted_at": self.deleted_at,
            "deleted_by": self.deleted_by,
        }


class DownloadAccount(Base):
    """Recipient account used for authenticated downloads."""
    __tablename__ = "download_accounts"
    __table_args__ = (
        Index("ix_download_accounts_email", "email"),
        Index("ix_download_accounts_deleted_at", "deleted_at"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(Text, nullable=False, default="")
    email = Column(Text, nullable=False)
    original_email = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    download_count = Column(Integer, nullable=False, default=0)
    created_at = Column(BigInteger, nullable=False, default=0)
    last_used = Column(BigInteger, nullable=False, default=0)
    deleted_at = Column(BigInteger, nullable=False, default=0)
    deleted_by = Column(Text, nullable=True)

    def to_dict(self):
        """Convert download account to dictionary representation"""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "original_email": self.original_email,
            "is_active": self.is_active,
            "download_count": self.download_count,
            "created_at": self.created_at,
            "last_used": self.last_used,
            "deleted_at": self.deleted_at,
            "deleted_by": self.deleted_by,
        }
