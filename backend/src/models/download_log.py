"""DownloadLog SQLAlchemy model"""

from sqlalchemy import Column, Text, ForeignKey, BigInteger, Integer, Boolean, Index

from .base import Base


class DownloadLog(Base):
    """One row per completed download.

    References the file with a real foreign key, so the rows must be removed
    before the file row is purged. ``email`` is anonymized when the download
    account is soft-deleted; size and name are copied at download time so
    transfer statistics do not depend on the file still existing.
    """
    __tablename__ = "download_logs"
    __table_args__ = (
        Index("ix_download_logs_file_id", "file_id"),
        Index("ix_download_logs_download_account_id", "download_account_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    file_id = Column(Text, ForeignKey("files.id", ondelete="RESTRICT"), nullable=False)
    download_account_id = Column(Integer, nullable=True)
    email = Column(Text, nullable=True)
    ip_address = Column(Text, nullable=True)
    user_agent = Column(Text, nullable=True)
    downloaded_at = Column(BigInteger, nullable=False, default=0)
    file_size = Column(BigInteger, nullable=False, default=0)
    file_name = Column(Text, nullable=False, default="")
    is_authenticated = Column(Boolean, nullable=False, default=False)
