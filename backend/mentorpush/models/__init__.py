"""Database models."""
from .user_profile import UserProfile
from .user_device import UserDevice
from .local_state import LocalState, HISTORY_KEY, DEDUP_KEY

__all__ = ["UserProfile", "UserDevice", "LocalState", "HISTORY_KEY", "DEDUP_KEY"]
