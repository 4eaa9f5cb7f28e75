"""Notification payload and local history schemas."""
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field


class NotificationContent(BaseModel):
    """Visible part of a push message."""
    title: Optional[str] = None
    body: Optional[str] = None
    icon: Optional[str] = None


class PushPayload(BaseModel):
    """Message as handed over by the push provider or the background worker."""
    notification: NotificationContent = Field(default_factory=NotificationContent)
    data: Dict[str, Any] = Field(default_factory=dict)

    def _text(self, key: str) -> Optional[str]:
        """A data value as text; providers may send numbers for ids."""
        value = self.data.get(key)
        if value is None or value == "":
            return None
        return str(value)

    @property
    def type(self) -> str:
        return self._text("type") or "general"

    @property
    def event_id(self) -> Optional[str]:
        return self._text("eventId")

    @property
    def url(self) -> str:
        return self._text("url") or "/"

    @property
    def raw_type(self) -> Optional[str]:
        """The type as sent, without the "general" fallback."""
        return self._text("type")


class NotificationRecord(BaseModel):
    """One accepted notification in the local history."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str = "Notification"
    body: str = ""
    type: str = "general"
    event_id: Optional[str] = Field(None, alias="eventId")
    url: str = "/"
    timestamp: int  # epoch milliseconds
    read: bool = False
    source: str = "unknown"  # background, foreground, app-open


class DedupEntry(BaseModel):
    """First acceptance of a fingerprint inside the dedup window."""
    timestamp: int  # epoch milliseconds
    source: str = "unknown"
