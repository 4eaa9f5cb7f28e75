"""LocalState model - client-side key-value documents."""
from datetime import datetime
from sqlalchemy import Column, String, Text, DateTime

from ..database import LocalBase


class LocalState(LocalBase):
    """A whole JSON document stored under a key."""

    __tablename__ = "local_state"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# Document keys
HISTORY_KEY = "notification_history"
DEDUP_KEY = "notification_dedup"
