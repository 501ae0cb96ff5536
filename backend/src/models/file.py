"""File SQLAlchemy model"""

from sqlalchemy import Column, Text, ForeignKey, BigInteger, Integer, Boolean, Index
from sqlalchemy.orm import relationship

from .base import Base


class File(Base):
    """Uploaded file metadata.

    The blob itself lives in the physical store under the file id. Timestamps
    are Unix seconds; 0 means "not set" (``expire_at`` = never expires,
    ``deleted_at`` = not in trash). ``deleted_by`` holds the actor id of the
    party that trashed the file ("system" for the expiration sweep).
    """
    __tablename__ = "files"
    __table_args__ = (
        Index("ix_files_user_id_deleted_at", "user_id", "deleted_at"),
        Index("ix_files_deleted_at", "deleted_at"),
    )

    id = Column(Text, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    name = Column(Text, nullable=False, default="")
    size_bytes = Column(BigInteger, nullable=False, default=0)
    sha1 = Column(Text, nullable=False, default="")
    content_type = Column(Text, nullable=True)
    upload_date = Column(BigInteger, nullable=False, default=0)
    expire_at = Column(BigInteger, nullable=False, default=0)
    unlimited_time = Column(Boolean, nullable=False, default=False)
    downloads_remaining = Column(Integer, nullable=False, default=0)
    unlimited_downloads = Column(Boolean, nullable=False, default=False)
    download_count = Column(Integer, nullable=False, default=0)
    deleted_at = Column(BigInteger, nullable=False, default=0)
    deleted_by = Column(Text, nullable=True)

    # Relationships
    owner = relationship("User", back_populates="files")

    @property
    def is_trashed(self) -> bool:
        return self.deleted_at > 0

    def to_dict(self):
        """Convert file to dictionary representation"""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "size_bytes": self.size_bytes,
            "sha1": self.sha1,
            "upload_date": self.upload_date,
            "expire_at": self.expire_at,
            "unlimited_time": self.unlimited_time,
            "downloads_remaining": self.downloads_remaining,
            "unlimited_downloads": self.unlimited_downloads,
            "download_count": self.download_count,
            "deleted_at": self.deleted_at,
            "deleted_by": self.deleted_by,
        }
