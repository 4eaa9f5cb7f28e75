"""Services for device registration, delivery deduplication and history."""
from .change_events import ChangeNotifier
from .consolidator import DuplicateDeviceConsolidator
from .container import NotificationServices, SessionManager
from .dedup import DeduplicationEngine, generate_fingerprint
from .delivery import AppOpenReconciler, BackgroundReceiver, DeliveryPipeline, ForegroundListener
from .history import HistoryStore
from .lifecycle import DeviceState, TokenLifecycleCoordinator
from .local_storage import LocalStorage
from .provider import ClientReportedProvider, PermissionState, PushProvider
from .registry import DeviceRegistryClient
from .scheduler import SchedulerService

__all__ = [
    "ChangeNotifier",
    "DuplicateDeviceConsolidator",
    "NotificationServices",
    "SessionManager",
    "DeduplicationEngine",
    "generate_fingerprint",
    "AppOpenReconciler",
    "BackgroundReceiver",
    "DeliveryPipeline",
    "ForegroundListener",
    "HistoryStore",
    "DeviceState",
    "TokenLifecycleCoordinator",
    "LocalStorage",
    "ClientReportedProvider",
    "PermissionState",
    "PushProvider",
    "DeviceRegistryClient",
    "SchedulerService",
]
