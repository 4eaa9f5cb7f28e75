"""Per-user session context, created at sign-in and closed at sign-out."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from .provider import PushProvider


@dataclass
class DeviceEnvironment:
    """Raw environment strings of this client, used for device fingerprints."""
    platform: Optional[str] = None
    user_agent: Optional[str] = None


@dataclass
class PushSession:
    """State shared by the components acting for one signed-in user."""
    user_id: str
    provider: PushProvider
    environment: DeviceEnvironment = field(default_factory=DeviceEnvironment)
    current_token: Optional[str] = None
    signed_in_at: datetime = field(default_factory=datetime.utcnow)
    _cleanups: List[Callable[[], None]] = field(default_factory=list, repr=False)

    def on_close(self, cleanup: Callable[[], None]):
        """Run `cleanup` when the session ends (e.g. detach listeners)."""
        self._cleanups.append(cleanup)

    def close(self):
        while self._cleanups:
            self._cleanups.pop()()
        self.current_token = None
