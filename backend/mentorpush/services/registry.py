"""Device registry client over the remote profile store.

Each user owns a collection of device records keyed by delivery token, plus
the scalar profile fields mirroring the registry (`notifications_enabled`,
`fcm_token`). Every operation returns an OperationResult; store failures are
never raised to the caller.
"""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, delete
from sqlalchemy.exc import OperationalError, ProgrammingError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..errors import ErrorKind, OperationResult
from ..models.user_device import UserDevice
from ..models.user_profile import UserProfile
from ..schemas.device import DeviceRecord
from ..utils.db_utils import call_remote

logger = logging.getLogger(__name__)

_UNSET = object()


def _to_record(device: UserDevice) -> DeviceRecord:
    return DeviceRecord(
        token=device.token,
        name=device.name,
        platform=device.platform,
        user_agent=device.user_agent,
        enabled=bool(device.enabled),
        created_at=device.created_at,
        last_seen_at=device.last_seen_at,
    )


class DeviceRegistryClient:
    """CRUD over a user's device registry."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], timeout: float = 15.0):
        self._session_factory = session_factory
        self._timeout = timeout

    def _ordered_statement(self, user_id: str):
        return (
            select(UserDevice)
            .where(UserDevice.user_id == user_id)
            .order_by(UserDevice.last_seen_at.desc())
        )

    async def list_devices(self, user_id: str) -> OperationResult[List[DeviceRecord]]:
        """All of a user's devices, most recently seen first when possible.

        Ordering is a convenience: if the ordered query cannot run, an
        unordered scan is returned instead.
        """
        async def _list():
            async with self._session_factory() as session:
                try:
                    result = await session.execute(self._ordered_statement(user_id))
                except (OperationalError, ProgrammingError) as e:
                    logger.warning(f"Ordered device query unavailable, using unordered scan: {e}")
                    await session.rollback()
                    result = await session.execute(
                        select(UserDevice).where(UserDevice.user_id == user_id)
                    )
                return [_to_record(device) for device in result.scalars().all()]

        return await call_remote(_list, self._timeout, "List devices")

    async def get_device(self, user_id: str, token: str) -> OperationResult[Optional[DeviceRecord]]:
        async def _get():
            async with self._session_factory() as session:
                device = await session.get(UserDevice, (user_id, token))
                return _to_record(device) if device else None

        return await call_remote(_get, self._timeout, "Get device")

    async def upsert_device(
        self,
        user_id: str,
        token: str,
        name: Optional[str] = None,
        platform: Optional[str] = None,
        user_agent: Optional[str] = None,
        enabled: bool = True,
        seen_at: Optional[datetime] = None,
    ) -> OperationResult[DeviceRecord]:
        """Create the record keyed by token, or overwrite an existing one.

        An existing record keeps its creation time and, unless a new name is
        given, its custom name.
        """
        seen_at = seen_at or datetime.utcnow()

        async def _upsert():
            async with self._session_factory() as session:
                await self._ensure_profile(session, user_id)
                device = await session.get(UserDevice, (user_id, token))
                if device:
                    device.name = name or device.name
                    device.platform = platform
                    device.user_agent = user_agent
                    device.enabled = enabled
                    device.last_seen_at = seen_at
                    logger.info(f"Device token updated: {token[:16]}...")
                else:
                    device = UserDevice(
                        user_id=user_id,
                        token=token,
                        name=name,
                        platform=platform,
                        user_agent=user_agent,
                        enabled=enabled,
                        created_at=seen_at,
                        last_seen_at=seen_at,
                    )
                    session.add(device)
                    logger.info(f"New device registered: {token[:16]}...")
                await session.commit()
                return _to_record(device)

        return await call_remote(_upsert, self._timeout, "Upsert device")

    async def _update(self, user_id: str, token: str, operation: str, **changes) -> OperationResult[DeviceRecord]:
        async def _apply():
            async with self._session_factory() as session:
                device = await session.get(UserDevice, (user_id, token))
                if not device:
                    return None
                for field, value in changes.items():
                    setattr(device, field, value)
                await session.commit()
                return _to_record(device)

        result = await call_remote(_apply, self._timeout, operation)
        if result.ok and result.value is None:
            logger.info(f"{operation}: device {token[:16]}... no longer exists")
            return OperationResult.failure(ErrorKind.NOT_FOUND, "device not found")
        return result

    async def set_enabled(self, user_id: str, token: str, enabled: bool) -> OperationResult[DeviceRecord]:
        """Enable or disable delivery to one device."""
        return await self._update(user_id, token, "Toggle device", enabled=enabled)

    async def rename(self, user_id: str, token: str, name: Optional[str]) -> OperationResult[DeviceRecord]:
        """Set the custom label; an empty name restores the derived one."""
        return await self._update(user_id, token, "Rename device", name=(name or "").strip() or None)

    async def remove_device(self, user_id: str, token: str) -> OperationResult[bool]:
        """Delete a device record. Removing a missing record succeeds too.

        The value tells whether a record was actually deleted.
        """
        async def _remove():
            async with self._session_factory() as session:
                result = await session.execute(
                    delete(UserDevice).where(
                        UserDevice.user_id == user_id,
                        UserDevice.token == token,
                    )
                )
                await session.commit()
                return result.rowcount > 0

        result = await call_remote(_remove, self._timeout, "Remove device")
        if result.ok and result.value:
            logger.info(f"Device removed: {token[:16]}...")
        return result

    # Profile mirror fields

    async def _ensure_profile(self, session: AsyncSession, user_id: str) -> UserProfile:
        profile = await session.get(UserProfile, user_id)
        if not profile:
            profile = UserProfile(id=user_id)
            session.add(profile)
            await session.flush()
        return profile

    async def get_profile(self, user_id: str) -> OperationResult[Optional[dict]]:
        async def _get():
            async with self._session_factory() as session:
                profile = await session.get(UserProfile, user_id)
                if not profile:
                    return None
                return {
                    "notifications_enabled": bool(profile.notifications_enabled),
                    "fcm_token": profile.fcm_token,
                    "last_token_update": profile.last_token_update,
                }

        return await call_remote(_get, self._timeout, "Get profile")

    async def update_profile(
        self,
        user_id: str,
        notifications_enabled: Optional[bool] = None,
        fcm_token=_UNSET,
    ) -> OperationResult[None]:
        """Merge the given scalar fields into the user's profile."""
        async def _update():
            async with self._session_factory() as session:
                profile = await self._ensure_profile(session, user_id)
                if notifications_enabled is not None:
                    profile.notifications_enabled = notifications_enabled
                if fcm_token is not _UNSET:
                    profile.fcm_token = fcm_token
                profile.last_token_update = datetime.utcnow()
                await session.commit()

        return await call_remote(_update, self._timeout, "Update profile")
