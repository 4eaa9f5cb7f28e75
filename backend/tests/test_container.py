"""Tests for the per-user session registry."""
import pytest

from mentorpush.services.container import NotificationServices
from mentorpush.services.lifecycle import DeviceState
from mentorpush.services.provider import ForegroundContext

from conftest import FakeProvider

USER = "user-1"
REMINDER = {
    "notification": {"title": "Event tomorrow", "body": "Mentoring session at 9:00"},
    "data": {"type": "event_reminder", "eventId": "E1"},
}


@pytest.fixture
def services(profile_sessions, local_sessions, clock):
    return NotificationServices(profile_sessions, local_sessions, clock=clock)


class TestSessionManager:
    """Tests for sign-in and sign-out."""

    @pytest.mark.asyncio
    async def test_sign_in_is_idempotent(self, services):
        first = await services.sessions.sign_in(USER)
        second = await services.sessions.sign_in(USER)

        assert first is second
        assert services.sessions.get_session(USER) is first
        assert services.sessions.get_coordinator(USER).state == DeviceState.UNREGISTERED

    @pytest.mark.asyncio
    async def test_sessions_are_per_user(self, services):
        first = await services.sessions.sign_in(USER)
        other = await services.sessions.sign_in("user-2")

        assert first is not other
        assert services.sessions.get_session("user-3") is None
        assert services.sessions.get_coordinator("user-3") is None

    @pytest.mark.asyncio
    async def test_sign_in_with_registered_token(self, services):
        await services.registry.upsert_device(USER, "token-initial-0001")

        session = await services.sessions.sign_in(USER, provider=FakeProvider(), current_token="token-initial-0001")

        assert session.current_token == "token-initial-0001"
        assert services.sessions.get_coordinator(USER).state == DeviceState.ENABLED
        assert session.provider.has_foreground_handlers

    @pytest.mark.asyncio
    async def test_sign_in_with_stale_token(self, services):
        session = await services.sessions.sign_in(USER, current_token="token-gone-0009")

        assert session.current_token is None
        assert services.sessions.get_coordinator(USER).state == DeviceState.UNREGISTERED

    @pytest.mark.asyncio
    async def test_sign_out_closes_session(self, services):
        await services.registry.upsert_device(USER, "token-initial-0001")
        provider = FakeProvider()
        session = await services.sessions.sign_in(USER, provider=provider, current_token="token-initial-0001")

        services.sessions.sign_out(USER)

        assert services.sessions.get_session(USER) is None
        assert session.current_token is None
        assert not provider.has_foreground_handlers
        assert await provider.dispatch_foreground(REMINDER, ForegroundContext()) == []
        assert (await services.registry.get_device(USER, "token-initial-0001")).value is not None

    @pytest.mark.asyncio
    async def test_sign_in_after_sign_out_is_fresh(self, services):
        first = await services.sessions.sign_in(USER)
        services.sessions.sign_out(USER)

        second = await services.sessions.sign_in(USER)

        assert second is not first

    @pytest.mark.asyncio
    async def test_sign_out_unknown_user(self, services):
        services.sessions.sign_out("nobody")
        assert services.sessions.get_session("nobody") is None

    @pytest.mark.asyncio
    async def test_close_all(self, services):
        for user_id in ("user-1", "user-2"):
            await services.sessions.sign_in(user_id)

        services.sessions.close_all()

        assert services.sessions.get_session("user-1") is None
        assert services.sessions.get_session("user-2") is None


class TestNotificationServices:
    """Tests for the wired components."""

    @pytest.mark.asyncio
    async def test_clear_history_forgets_dedup(self, services):
        outcome = await services.background.handle_push_event(REMINDER)
        assert outcome.accepted

        assert await services.clear_history() is True
        assert services.history.list_all() == []
        assert (await services.background.handle_push_event(REMINDER)).accepted
