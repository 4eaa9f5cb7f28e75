"""Device registry schemas."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class DeviceRecord(BaseModel):
    """A registered delivery token for one device/browser instance."""
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    token: str
    name: Optional[str] = None
    platform: Optional[str] = None
    user_agent: Optional[str] = Field(None, alias="userAgent")
    enabled: bool = True
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    last_seen_at: Optional[datetime] = Field(None, alias="lastSeenAt")


class DeviceResponse(DeviceRecord):
    """Device as shown on the settings page."""
    label: str
    last_seen_label: str = Field(alias="lastSeenLabel")
    is_current: bool = Field(False, alias="isCurrent")


class DeviceRenameRequest(BaseModel):
    """Request to set or clear a device's custom name."""
    name: Optional[str] = Field(None, max_length=100)


class DeviceToggleRequest(BaseModel):
    """Request to enable or disable delivery to one device."""
    enabled: bool


class ConsolidateResponse(BaseModel):
    """Outcome of a duplicate-device consolidation pass."""
    removed: int
    message: str
