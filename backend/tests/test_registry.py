"""Tests for the device registry client."""
from datetime import datetime, timedelta

import pytest
from sqlalchemy import select, text

from mentorpush.database import close_db, create_session_factory, create_store_engine
from mentorpush.errors import ErrorKind
from mentorpush.models.user_device import UserDevice
from mentorpush.services.registry import DeviceRegistryClient

USER = "user-1"
BASE_TIME = datetime(2024, 3, 1, 12, 0, 0)


class UnorderableRegistry(DeviceRegistryClient):
    """Registry whose ordered query the store rejects."""

    def _ordered_statement(self, user_id):
        return (
            select(UserDevice)
            .where(UserDevice.user_id == user_id)
            .order_by(text("no_such_column DESC"))
        )


class TestDeviceRegistry:
    """Tests for device CRUD."""

    @pytest.mark.asyncio
    async def test_empty_registry(self, registry):
        result = await registry.list_devices(USER)
        assert result.ok
        assert result.value == []

    @pytest.mark.asyncio
    async def test_list_most_recent_first(self, registry):
        await registry.upsert_device(USER, "token-a", seen_at=BASE_TIME)
        await registry.upsert_device(USER, "token-b", seen_at=BASE_TIME + timedelta(hours=1))
        await registry.upsert_device(USER, "token-c", seen_at=BASE_TIME - timedelta(hours=1))

        result = await registry.list_devices(USER)
        assert [d.token for d in result.value] == ["token-b", "token-a", "token-c"]

    @pytest.mark.asyncio
    async def test_list_scoped_to_user(self, registry):
        await registry.upsert_device(USER, "token-a")
        await registry.upsert_device("user-2", "token-b")

        result = await registry.list_devices(USER)
        assert [d.token for d in result.value] == ["token-a"]

    @pytest.mark.asyncio
    async def test_ordering_failure_falls_back(self, profile_sessions):
        registry = UnorderableRegistry(profile_sessions)
        await registry.upsert_device(USER, "token-a")
        await registry.upsert_device(USER, "token-b")

        result = await registry.list_devices(USER)
        assert result.ok
        assert sorted(d.token for d in result.value) == ["token-a", "token-b"]

    @pytest.mark.asyncio
    async def test_upsert_creates_record(self, registry):
        result = await registry.upsert_device(
            USER, "token-a", platform="MacIntel", user_agent="Mozilla/5.0", seen_at=BASE_TIME,
        )
        assert result.ok
        device = result.value
        assert device.enabled is True
        assert device.name is None
        assert device.created_at == BASE_TIME
        assert device.last_seen_at == BASE_TIME

    @pytest.mark.asyncio
    async def test_upsert_keeps_created_at_and_name(self, registry):
        later = BASE_TIME + timedelta(days=2)
        await registry.upsert_device(USER, "token-a", name="Work laptop", seen_at=BASE_TIME)
        await registry.set_enabled(USER, "token-a", False)

        result = await registry.upsert_device(USER, "token-a", platform="Win32", seen_at=later)

        device = result.value
        assert device.name == "Work laptop"
        assert device.created_at == BASE_TIME
        assert device.last_seen_at == later
        assert device.platform == "Win32"
        assert device.enabled is True

    @pytest.mark.asyncio
    async def test_get_device(self, registry):
        await registry.upsert_device(USER, "token-a")
        assert (await registry.get_device(USER, "token-a")).value.token == "token-a"
        assert (await registry.get_device(USER, "missing")).value is None

    @pytest.mark.asyncio
    async def test_set_enabled(self, registry):
        await registry.upsert_device(USER, "token-a")
        result = await registry.set_enabled(USER, "token-a", False)
        assert result.ok
        assert result.value.enabled is False
        assert (await registry.get_device(USER, "token-a")).value.enabled is False

    @pytest.mark.asyncio
    async def test_set_enabled_missing_device(self, registry):
        result = await registry.set_enabled(USER, "missing", False)
        assert not result.ok
        assert result.error == ErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_rename_and_clear(self, registry):
        await registry.upsert_device(USER, "token-a")

        renamed = await registry.rename(USER, "token-a", "  Phone  ")
        assert renamed.value.name == "Phone"

        cleared = await registry.rename(USER, "token-a", "")
        assert cleared.value.name is None

    @pytest.mark.asyncio
    async def test_rename_missing_device(self, registry):
        result = await registry.rename(USER, "missing", "Phone")
        assert result.error == ErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_remove_device(self, registry):
        await registry.upsert_device(USER, "token-a")

        result = await registry.remove_device(USER, "token-a")
        assert result.ok
        assert result.value is True
        assert (await registry.list_devices(USER)).value == []

    @pytest.mark.asyncio
    async def test_remove_missing_device_succeeds(self, registry):
        result = await registry.remove_device(USER, "missing")
        assert result.ok
        assert result.value is False

    @pytest.mark.asyncio
    async def test_remove_same_device_twice(self, registry):
        await registry.upsert_device(USER, "token-a")

        first = await registry.remove_device(USER, "token-a")
        second = await registry.remove_device(USER, "token-a")

        assert first.ok and first.value is True
        assert second.ok and second.value is False
        assert (await registry.list_devices(USER)).value == []

    @pytest.mark.asyncio
    async def test_unreachable_store(self):
        engine = create_store_engine("sqlite+aiosqlite:////nonexistent/mentorpush/profiles.db")
        registry = DeviceRegistryClient(create_session_factory(engine), timeout=5)
        try:
            listed = await registry.list_devices(USER)
            upserted = await registry.upsert_device(USER, "token-a")
        finally:
            await close_db(engine)

        assert listed.error == ErrorKind.REGISTRY_UNAVAILABLE
        assert upserted.error == ErrorKind.REGISTRY_UNAVAILABLE
        assert upserted.message


class TestProfileMirror:
    """Tests for the profile scalar fields."""

    @pytest.mark.asyncio
    async def test_unknown_profile(self, registry):
        result = await registry.get_profile("nobody")
        assert result.ok
        assert result.value is None

    @pytest.mark.asyncio
    async def test_update_profile(self, registry):
        await registry.update_profile(USER, notifications_enabled=True, fcm_token="token-a")

        profile = (await registry.get_profile(USER)).value
        assert profile["notifications_enabled"] is True
        assert profile["fcm_token"] == "token-a"
        assert profile["last_token_update"] is not None

    @pytest.mark.asyncio
    async def test_partial_update_keeps_other_fields(self, registry):
        await registry.update_profile(USER, notifications_enabled=True, fcm_token="token-a")
        await registry.update_profile(USER, notifications_enabled=False)

        profile = (await registry.get_profile(USER)).value
        assert profile["notifications_enabled"] is False
        assert profile["fcm_token"] == "token-a"

    @pytest.mark.asyncio
    async def test_upsert_creates_profile(self, registry):
        await registry.upsert_device(USER, "token-a")
        profile = (await registry.get_profile(USER)).value
        assert profile["notifications_enabled"] is False
