"""FileRequest SQLAlchemy model"""

from sqlalchemy import Column, Text, ForeignKey, BigInteger, Integer, Boolean, Index

from .base import Base


class FileRequest(Base):
    """Upload-request token handed out by a user.

    Requests are never soft-deleted: once ``expires_at`` lies further back
    than the grace window the row is removed outright.
    """
    __tablename__ = "file_requests"
    __table_args__ = (
        Index("ix_file_requests_user_id", "user_id"),
        Index("ix_file_requests_expires_at", "expires_at"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    request_token = Column(Text, nullable=False, unique=True)
    title = Column(Text, nullable=False, default="")
    created_at = Column(BigInteger, nullable=False, default=0)
    expires_at = Column(BigInteger, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    used_at = Column(BigInteger, nullable=False, default=0)
