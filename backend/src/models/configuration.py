"""ConfigValue SQLAlchemy model"""

from sqlalchemy import Column, Text

from .base import Base


class ConfigValue(Base):
    """Key/value runtime configuration set from the admin settings page."""
    __tablename__ = "configuration"

    key = Column(Text, primary_key=True)
    value = Column(Text, nullable=False)
