"""UserDevice model - push delivery tokens registered per user."""
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey, Index

from ..database import Base


class UserDevice(Base):
    """A browser or app instance registered for push delivery.

    The token is the record's identity within a user's device registry.
    """

    __tablename__ = "user_devices"

    user_id = Column(String, ForeignKey("user_profiles.id", ondelete="CASCADE"), primary_key=True)
    token = Column(String, primary_key=True)
    name = Column(String, nullable=True)  # Custom label, derived from user_agent when empty
    platform = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)
    enabled = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    last_seen_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_user_devices_user_last_seen", "user_id", "last_seen_at"),
    )
