"""Token lifecycle and delivery path schemas."""
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

from .notification import NotificationRecord, PushPayload


class EnableRequest(BaseModel):
    """Client-reported outcome of the permission prompt and token request."""
    model_config = ConfigDict(populate_by_name=True)

    permission: Literal["granted", "denied", "default"]
    token: Optional[str] = None
    name: Optional[str] = Field(None, max_length=100)
    platform: Optional[str] = None
    user_agent: Optional[str] = Field(None, alias="userAgent")


class RefreshRequest(BaseModel):
    """Client-reported token obtained with a forced refresh."""
    token: Optional[str] = None


class PushStatusResponse(BaseModel):
    """Current state of this device's registration."""
    model_config = ConfigDict(populate_by_name=True)

    state: str
    permission: str
    current_token: Optional[str] = Field(None, alias="currentToken")
    notifications_enabled: bool = Field(False, alias="notificationsEnabled")
    message: Optional[str] = None


class DeliveryRequest(BaseModel):
    """A push event handed over by a delivery path."""
    model_config = ConfigDict(populate_by_name=True)

    payload: PushPayload
    visible: bool = True
    background_active: bool = Field(False, alias="backgroundActive")


class DeliveryResponse(BaseModel):
    """Whether the notification was accepted into the history."""
    accepted: bool
    record: Optional[NotificationRecord] = None
    display: Optional[dict] = None


class ReconcileRequest(BaseModel):
    """Notifications the client found on open."""
    payloads: Optional[List[PushPayload]] = None


class ReconcileResponse(BaseModel):
    accepted: int
    duplicates: int
