"""Token lifecycle coordinator.

Drives one device through registration with the push provider and keeps the
device registry consistent with the provider's current token:

    UNREGISTERED -> PERMISSION_PENDING -> REGISTERED -> ENABLED <-> DISABLED
    ENABLED -> REFRESHING -> ENABLED
    ENABLED/DISABLED -> UNREGISTERED

The machine has no terminal state. Provider and registry failures come back
as OperationResult values; a failed provider call never mutates the registry.
"""
import asyncio
import logging
from enum import Enum
from typing import Optional

from ..errors import ErrorKind, OperationResult
from ..schemas.device import DeviceRecord
from .provider import ForegroundHandler, PermissionState, PushProvider, TokenConfig
from .registry import DeviceRegistryClient
from .session import PushSession

logger = logging.getLogger(__name__)


class DeviceState(Enum):
    UNREGISTERED = "unregistered"
    PERMISSION_PENDING = "permission_pending"
    REGISTERED = "registered"
    ENABLED = "enabled"
    DISABLED = "disabled"
    REFRESHING = "refreshing"


class TokenLifecycleCoordinator:
    """Enable, disable, toggle and refresh flows for the current device."""

    def __init__(
        self,
        session: PushSession,
        registry: DeviceRegistryClient,
        token_config: Optional[TokenConfig] = None,
        foreground_handler: Optional[ForegroundHandler] = None,
        timeout: float = 15.0,
    ):
        self._session = session
        self._registry = registry
        self._token_config = token_config or TokenConfig()
        self._foreground_handler = foreground_handler
        self._timeout = timeout
        self._state = DeviceState.UNREGISTERED
        self._unsubscribe_foreground = None
        session.on_close(self._detach_foreground)

    @property
    def state(self) -> DeviceState:
        return self._state

    @property
    def provider(self) -> PushProvider:
        return self._session.provider

    @property
    def permission(self) -> PermissionState:
        return self.provider.permission

    def _invalid(self, action: str) -> OperationResult:
        logger.warning(f"Cannot {action} while {self._state.value}")
        return OperationResult.failure(ErrorKind.INVALID_STATE, f"cannot {action} while {self._state.value}")

    async def sync_state(self) -> DeviceState:
        """Derive the state from the session's token and the registry."""
        token = self._session.current_token
        if not token:
            self._state = DeviceState.UNREGISTERED
            return self._state

        result = await self._registry.get_device(self._session.user_id, token)
        if not result.ok:
            logger.warning(f"Could not sync device state: {result.detail}")
            return self._state

        if result.value is None:
            self._session.current_token = None
            self._state = DeviceState.UNREGISTERED
        else:
            self._state = DeviceState.ENABLED if result.value.enabled else DeviceState.DISABLED
            self._attach_foreground()
        return self._state

    async def _acquire_token(self, force_refresh: bool = False) -> OperationResult[str]:
        try:
            token = await asyncio.wait_for(
                self.provider.acquire_token(self._token_config, force_refresh=force_refresh),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Token acquisition timed out")
            return OperationResult.failure(ErrorKind.TIMEOUT, "token acquisition timed out")
        except Exception as e:
            logger.error(f"Token acquisition failed: {e}")
            return OperationResult.failure(ErrorKind.PROVIDER_UNAVAILABLE, str(e))

        if not token:
            logger.warning("No push token received from provider")
            return OperationResult.failure(ErrorKind.PROVIDER_UNAVAILABLE, "no token received")
        return OperationResult.success(token)

    async def _request_permission(self) -> OperationResult[PermissionState]:
        try:
            permission = await asyncio.wait_for(self.provider.request_permission(), timeout=self._timeout)
        except asyncio.TimeoutError:
            return OperationResult.failure(ErrorKind.TIMEOUT, "permission request timed out")
        except Exception as e:
            logger.error(f"Permission request failed: {e}")
            return OperationResult.failure(ErrorKind.PROVIDER_UNAVAILABLE, str(e))

        if permission == PermissionState.DENIED:
            return OperationResult.failure(ErrorKind.PERMISSION_DENIED, "permission denied")
        if permission != PermissionState.GRANTED:
            return OperationResult.failure(ErrorKind.PERMISSION_DISMISSED, "permission not granted")
        return OperationResult.success(permission)

    async def enable(self, name: Optional[str] = None) -> OperationResult[str]:
        """Opt in: ask for permission, acquire a token and register this device."""
        if self._state != DeviceState.UNREGISTERED:
            return self._invalid("enable notifications")

        self._state = DeviceState.PERMISSION_PENDING
        permission = await self._request_permission()
        if not permission.ok:
            logger.info(f"Notification permission not granted: {permission.error.value}")
            self._state = DeviceState.UNREGISTERED
            return OperationResult.failure(permission.error, permission.detail)

        acquired = await self._acquire_token()
        if not acquired.ok:
            self._state = DeviceState.UNREGISTERED
            return acquired

        token = acquired.value
        environment = self._session.environment
        registered = await self._registry.upsert_device(
            self._session.user_id,
            token,
            name=name,
            platform=environment.platform or "web",
            user_agent=environment.user_agent or "",
            enabled=True,
        )
        if not registered.ok:
            self._state = DeviceState.UNREGISTERED
            return OperationResult.failure(registered.error, registered.detail)

        self._state = DeviceState.REGISTERED
        self._session.current_token = token
        self._attach_foreground()
        self._state = DeviceState.ENABLED
        logger.info(f"Notifications enabled for user {self._session.user_id} ({token[:16]}...)")

        await self._mirror_profile()
        return OperationResult.success(token)

    async def set_device_enabled(self, token: str, enabled: bool) -> OperationResult[DeviceRecord]:
        """Toggle delivery to one device; only the registry flag changes."""
        is_current = token == self._session.current_token
        if is_current and self._state not in (DeviceState.ENABLED, DeviceState.DISABLED):
            return self._invalid("toggle this device")

        result = await self._registry.set_enabled(self._session.user_id, token, enabled)
        if not result.ok:
            return result

        if is_current:
            self._state = DeviceState.ENABLED if enabled else DeviceState.DISABLED
        await self._mirror_profile()
        return result

    async def refresh_token(self) -> OperationResult[str]:
        """Replace every registry record of the user with one fresh token.

        Recovery path for silently broken delivery: stale tokens are deleted
        rather than merged, so none can linger.
        """
        if self._state != DeviceState.ENABLED:
            return self._invalid("refresh the token")

        self._state = DeviceState.REFRESHING
        acquired = await self._acquire_token(force_refresh=True)
        if not acquired.ok:
            self._state = DeviceState.ENABLED
            return acquired

        user_id = self._session.user_id
        listed = await self._registry.list_devices(user_id)
        if not listed.ok:
            self._state = DeviceState.ENABLED
            return OperationResult.failure(listed.error, listed.detail)

        previous_name = None
        failed_removals = 0
        for device in listed.value:
            if device.token == self._session.current_token:
                previous_name = device.name
            removed = await self._registry.remove_device(user_id, device.token)
            if not removed.ok:
                failed_removals += 1

        new_token = acquired.value
        environment = self._session.environment
        registered = await self._registry.upsert_device(
            user_id,
            new_token,
            name=previous_name,
            platform=environment.platform or "web",
            user_agent=environment.user_agent or "",
            enabled=True,
        )
        if not registered.ok:
            # Old records are gone and the new one could not be written
            self._session.current_token = None
            self._state = DeviceState.UNREGISTERED
            await self._mirror_profile()
            return OperationResult.failure(registered.error, registered.detail)

        self._session.current_token = new_token
        self._state = DeviceState.ENABLED
        logger.info(f"Token refreshed for user {user_id}, replaced {len(listed.value)} device record(s)")
        await self._mirror_profile()

        if failed_removals:
            logger.warning(f"{failed_removals} stale device record(s) could not be removed")
            return OperationResult.failure(
                ErrorKind.REGISTRY_UNAVAILABLE,
                f"{failed_removals} stale device record(s) could not be removed",
            )
        return OperationResult.success(new_token)

    async def disable(self) -> OperationResult[None]:
        """Opt out: remove this device's record entirely."""
        if self._state not in (DeviceState.ENABLED, DeviceState.DISABLED):
            return self._invalid("disable notifications")

        token = self._session.current_token
        removed = await self._registry.remove_device(self._session.user_id, token)
        if not removed.ok:
            return OperationResult.failure(removed.error, removed.detail)

        self._session.current_token = None
        self._detach_foreground()
        self._state = DeviceState.UNREGISTERED
        logger.info(f"Notifications disabled for user {self._session.user_id}")

        await self._mirror_profile()
        return OperationResult.success()

    async def _mirror_profile(self):
        """Keep the profile's scalar mirror fields in line with the registry."""
        user_id = self._session.user_id
        listed = await self._registry.list_devices(user_id)
        if not listed.ok:
            logger.warning(f"Failed to update user notification status (non-fatal): {listed.detail}")
            return

        any_enabled = any(device.enabled for device in listed.value)
        updated = await self._registry.update_profile(
            user_id,
            notifications_enabled=any_enabled,
            fcm_token=self._session.current_token,
        )
        if not updated.ok:
            logger.warning(f"Failed to update user notification status (non-fatal): {updated.detail}")

    def _attach_foreground(self):
        if self._foreground_handler is None or self._unsubscribe_foreground is not None:
            return
        self._unsubscribe_foreground = self.provider.on_foreground_message(self._foreground_handler)

    def _detach_foreground(self):
        if self._unsubscribe_foreground is not None:
            self._unsubscribe_foreground()
            self._unsubscribe_foreground = None
