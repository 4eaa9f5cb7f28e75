"""Wiring of the notification components and the per-user session registry."""
import logging
import time
from typing import Callable, Dict, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config import Settings, settings as default_settings
from .change_events import ChangeNotifier
from .consolidator import DuplicateDeviceConsolidator
from .dedup import DeduplicationEngine
from .delivery import AppOpenReconciler, BackgroundReceiver, DeliveryPipeline, ForegroundListener
from .history import HistoryStore
from .lifecycle import TokenLifecycleCoordinator
from .local_storage import LocalStorage
from .provider import ClientReportedProvider, PushProvider, TokenConfig
from .registry import DeviceRegistryClient
from .scheduler import SchedulerService
from .session import DeviceEnvironment, PushSession

logger = logging.getLogger(__name__)


class SessionManager:
    """Owns one session and lifecycle coordinator per signed-in user."""

    def __init__(self, services: "NotificationServices"):
        self._services = services
        self._sessions: Dict[str, Tuple[PushSession, TokenLifecycleCoordinator]] = {}

    async def sign_in(
        self,
        user_id: str,
        provider: Optional[PushProvider] = None,
        environment: Optional[DeviceEnvironment] = None,
        current_token: Optional[str] = None,
    ) -> PushSession:
        """Start (or return) the session for a user."""
        if user_id in self._sessions:
            return self._sessions[user_id][0]

        session = PushSession(
            user_id=user_id,
            provider=provider or ClientReportedProvider(),
            environment=environment or DeviceEnvironment(),
            current_token=current_token,
        )
        coordinator = TokenLifecycleCoordinator(
            session,
            self._services.registry,
            token_config=self._services.token_config,
            foreground_handler=self._services.foreground,
            timeout=self._services.settings.remote_call_timeout_seconds,
        )
        self._sessions[user_id] = (session, coordinator)
        await coordinator.sync_state()
        logger.info(f"Session started for user {user_id} ({coordinator.state.value})")
        return session

    def get_session(self, user_id: str) -> Optional[PushSession]:
        entry = self._sessions.get(user_id)
        return entry[0] if entry else None

    def get_coordinator(self, user_id: str) -> Optional[TokenLifecycleCoordinator]:
        entry = self._sessions.get(user_id)
        return entry[1] if entry else None

    def sign_out(self, user_id: str):
        entry = self._sessions.pop(user_id, None)
        if entry:
            entry[0].close()
            logger.info(f"Session closed for user {user_id}")

    def close_all(self):
        for user_id in list(self._sessions):
            self.sign_out(user_id)


class NotificationServices:
    """All notification components for one client, built from two stores."""

    def __init__(
        self,
        profile_sessions: async_sessionmaker[AsyncSession],
        local_sessions: async_sessionmaker[AsyncSession],
        settings: Optional[Settings] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings or default_settings
        self.token_config = TokenConfig(vapid_key=self.settings.vapid_key)

        self.notifier = ChangeNotifier()
        self.storage = LocalStorage(local_sessions)
        self.dedup = DeduplicationEngine(self.storage, self.settings.dedup_window_seconds, clock=clock)
        self.history = HistoryStore(self.storage, self.notifier, self.settings.history_max_items)

        self.registry = DeviceRegistryClient(profile_sessions, self.settings.remote_call_timeout_seconds)
        self.consolidator = DuplicateDeviceConsolidator(self.registry)

        self.pipeline = DeliveryPipeline(self.dedup, self.history, clock=clock)
        self.foreground = ForegroundListener(self.pipeline)
        self.background = BackgroundReceiver(self.pipeline, clock=clock)
        self.reconciler = AppOpenReconciler(self.pipeline, self.settings.reconcile_url)

        self.scheduler = SchedulerService(
            self.history,
            self.dedup,
            refresh_seconds=self.settings.history_refresh_seconds,
            cleanup_seconds=self.settings.dedup_cleanup_seconds,
        )
        self.sessions = SessionManager(self)

    async def start(self, run_scheduler: bool = True):
        """Load the persisted history and start housekeeping jobs."""
        await self.history.refresh()
        if run_scheduler:
            self.scheduler.start()

    async def stop(self):
        self.scheduler.stop()
        self.sessions.close_all()

    async def clear_history(self) -> bool:
        """Clear the history together with the dedup scratch area."""
        cleared = await self.history.clear_all()
        await self.dedup.clear()
        return cleared
