"""UserProfile model - per-user notification fields in the profile store."""
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Boolean
from sqlalchemy.orm import relationship

from ..database import Base


class UserProfile(Base):
    """Notification-related scalar fields of a user's profile."""

    __tablename__ = "user_profiles"

    id = Column(String, primary_key=True)
    notifications_enabled = Column(Boolean, default=False, nullable=False)  # Mirror of "has an enabled device"
    fcm_token = Column(String, nullable=True)  # Last known active token
    last_token_update = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    devices = relationship("UserDevice", cascade="all, delete-orphan", passive_deletes=True)
