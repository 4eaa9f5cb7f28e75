"""Push-messaging provider boundary.

The provider hands out delivery tokens, the runtime grants or denies
notification permission, and foreground messages are dispatched to whatever
handlers were registered. Concrete providers implement the two awaitable
calls; handler bookkeeping is shared.
"""
import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional

logger = logging.getLogger(__name__)


class PermissionState(Enum):
    """Runtime notification permission."""
    GRANTED = "granted"
    DENIED = "denied"
    DEFAULT = "default"  # Prompt dismissed or never shown


@dataclass
class TokenConfig:
    """Provider configuration used when acquiring a token."""
    vapid_key: Optional[str] = None


@dataclass
class ForegroundContext:
    """What the client reports about itself when a foreground message arrives."""
    visible: bool = True
    background_active: bool = False


ForegroundHandler = Callable[[Any, ForegroundContext], Awaitable[Any]]


class PushProviderError(Exception):
    """Token acquisition failed (network unreachable, provider rejected, ...)."""


class PushProvider:
    """Base class for push providers."""

    def __init__(self):
        self._foreground_handlers: List[ForegroundHandler] = []

    @property
    def permission(self) -> PermissionState:
        """Current permission without prompting."""
        raise NotImplementedError

    async def request_permission(self) -> PermissionState:
        raise NotImplementedError

    async def acquire_token(self, config: TokenConfig, force_refresh: bool = False) -> Optional[str]:
        raise NotImplementedError

    def on_foreground_message(self, handler: ForegroundHandler) -> Callable[[], None]:
        """Register a handler for messages arriving while the client is visible."""
        self._foreground_handlers.append(handler)

        def unsubscribe():
            if handler in self._foreground_handlers:
                self._foreground_handlers.remove(handler)

        return unsubscribe

    async def dispatch_foreground(self, payload: Any, context: Optional[ForegroundContext] = None) -> list:
        """Hand a foreground message to every registered handler."""
        context = context or ForegroundContext()
        results = []
        for handler in list(self._foreground_handlers):
            result = handler(payload, context)
            if inspect.isawaitable(result):
                result = await result
            results.append(result)
        return results

    @property
    def has_foreground_handlers(self) -> bool:
        return bool(self._foreground_handlers)


class ClientReportedProvider(PushProvider):
    """Provider facade over values the client obtained itself.

    Browsers and apps talk to the push service directly; they report the
    permission outcome and the token they received, and this provider replays
    them to the lifecycle coordinator.
    """

    def __init__(self, permission: PermissionState = PermissionState.DEFAULT, token: Optional[str] = None):
        super().__init__()
        self._permission = permission
        self._token = token

    def report(self, permission: PermissionState, token: Optional[str] = None):
        """Record the latest permission outcome and token from the client."""
        self._permission = permission
        self._token = token

    @property
    def permission(self) -> PermissionState:
        return self._permission

    async def request_permission(self) -> PermissionState:
        return self._permission

    async def acquire_token(self, config: TokenConfig, force_refresh: bool = False) -> Optional[str]:
        if not self._token:
            logger.warning("No token reported by the client")
        return self._token
