"""Pydantic schemas for records and API request/response models."""
from .notification import (
    NotificationContent,
    PushPayload,
    NotificationRecord,
    DedupEntry,
)
from .device import (
    DeviceRecord,
    DeviceResponse,
    DeviceRenameRequest,
    DeviceToggleRequest,
    ConsolidateResponse,
)
from .push import (
    EnableRequest,
    RefreshRequest,
    PushStatusResponse,
    DeliveryRequest,
    DeliveryResponse,
    ReconcileRequest,
    ReconcileResponse,
)

__all__ = [
    "NotificationContent",
    "PushPayload",
    "NotificationRecord",
    "DedupEntry",
    "DeviceRecord",
    "DeviceResponse",
    "DeviceRenameRequest",
    "DeviceToggleRequest",
    "ConsolidateResponse",
    "EnableRequest",
    "RefreshRequest",
    "PushStatusResponse",
    "DeliveryRequest",
    "DeliveryResponse",
    "ReconcileRequest",
    "ReconcileResponse",
]
