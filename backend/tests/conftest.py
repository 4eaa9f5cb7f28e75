"""Pytest configuration and shared fixtures."""
import asyncio
from typing import List, Optional

import pytest
import pytest_asyncio

from mentorpush.database import close_db, create_session_factory, create_store_engine, init_db, init_local_db
from mentorpush.services.change_events import ChangeNotifier
from mentorpush.services.dedup import DeduplicationEngine
from mentorpush.services.delivery import DeliveryPipeline
from mentorpush.services.history import HistoryStore
from mentorpush.services.local_storage import LocalStorage
from mentorpush.services.provider import PermissionState, PushProvider, TokenConfig
from mentorpush.services.registry import DeviceRegistryClient


class FakeClock:
    """Controllable replacement for time.time."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeProvider(PushProvider):
    """Push provider returning scripted permissions and tokens."""

    def __init__(
        self,
        permission: PermissionState = PermissionState.GRANTED,
        tokens: Optional[List[Optional[str]]] = None,
        error: Optional[Exception] = None,
        delay: float = 0,
    ):
        super().__init__()
        self._permission = permission
        self._tokens = list(tokens if tokens is not None else ["token-initial-0001"])
        self.error = error
        self.delay = delay
        self.permission_requests = 0
        self.token_requests: List[bool] = []

    @property
    def permission(self) -> PermissionState:
        return self._permission

    async def request_permission(self) -> PermissionState:
        self.permission_requests += 1
        return self._permission

    async def acquire_token(self, config: TokenConfig, force_refresh: bool = False) -> Optional[str]:
        self.token_requests.append(force_refresh)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        if not self._tokens:
            return None
        return self._tokens.pop(0)


class FailingStorage(LocalStorage):
    """Local storage whose every operation fails."""

    def __init__(self):
        pass

    async def get_item(self, key):
        raise OSError("storage disabled")

    async def set_item(self, key, value):
        raise OSError("quota exceeded")

    async def remove_item(self, key):
        raise OSError("storage disabled")


@pytest.fixture
def clock():
    return FakeClock()


@pytest_asyncio.fixture
async def local_sessions(tmp_path):
    engine = create_store_engine(f"sqlite+aiosqlite:///{tmp_path / 'local_state.db'}")
    await init_local_db(engine)
    yield create_session_factory(engine)
    await close_db(engine)


@pytest_asyncio.fixture
async def profile_sessions(tmp_path):
    engine = create_store_engine(f"sqlite+aiosqlite:///{tmp_path / 'profiles.db'}")
    await init_db(engine)
    yield create_session_factory(engine)
    await close_db(engine)


@pytest.fixture
def storage(local_sessions):
    return LocalStorage(local_sessions)


@pytest.fixture
def notifier():
    return ChangeNotifier()


@pytest.fixture
def history(storage, notifier):
    return HistoryStore(storage, notifier)


@pytest.fixture
def dedup(storage, clock):
    return DeduplicationEngine(storage, window_seconds=10, clock=clock)


@pytest.fixture
def pipeline(dedup, history, clock):
    return DeliveryPipeline(dedup, history, clock=clock)


@pytest.fixture
def registry(profile_sessions):
    return DeviceRegistryClient(profile_sessions, timeout=5)


@pytest.fixture
def provider():
    return FakeProvider(tokens=["token-initial-0001", "token-refreshed-0002"])
