"""Failure results for registry and provider operations.

Registry and provider failures are returned to callers as values so the UI
layer can render inline, actionable messaging instead of handling exceptions.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(Enum):
    """Kinds of recoverable (or user-resolvable) failures."""
    PERMISSION_DENIED = "permission_denied"
    PERMISSION_DISMISSED = "permission_dismissed"
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    REGISTRY_UNAVAILABLE = "registry_unavailable"
    NOT_FOUND = "not_found"
    TIMEOUT = "timeout"
    INVALID_STATE = "invalid_state"


# User-facing copy; the corrective action differs per kind
ERROR_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.PERMISSION_DENIED: (
        "Notifications are blocked. Please allow notifications in your browser settings."
    ),
    ErrorKind.PERMISSION_DISMISSED: (
        "Notification permission was not granted. Enable notifications again and "
        "choose Allow when your browser asks."
    ),
    ErrorKind.PROVIDER_UNAVAILABLE: (
        "Failed to enable notifications. Please check that you are online and that "
        "your browser is up to date, then try again."
    ),
    ErrorKind.REGISTRY_UNAVAILABLE: (
        "Could not save your device settings. Please try again."
    ),
    ErrorKind.NOT_FOUND: "This device is no longer registered. Refresh the device list.",
    ErrorKind.TIMEOUT: "The request took too long. Please try again.",
    ErrorKind.INVALID_STATE: "That action is not available right now.",
}


@dataclass
class OperationResult(Generic[T]):
    """Outcome of a registry or provider operation."""
    ok: bool
    value: Optional[T] = None
    error: Optional[ErrorKind] = None
    detail: Optional[str] = None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "OperationResult[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: ErrorKind, detail: Optional[str] = None) -> "OperationResult[T]":
        return cls(ok=False, error=error, detail=detail)

    @property
    def message(self) -> Optional[str]:
        """Actionable copy for the UI, None on success."""
        if self.error is None:
            return None
        return ERROR_MESSAGES[self.error]

    def __bool__(self) -> bool:
        return self.ok
