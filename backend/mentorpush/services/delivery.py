"""Delivery paths for incoming notifications.

Every path (foreground listener, background worker, on-open check) funnels
through the same pipeline: fingerprint, dedup check, history append.
"""
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
from pydantic import ValidationError

from ..schemas.notification import NotificationRecord, PushPayload
from .dedup import DeduplicationEngine, generate_fingerprint
from .history import HistoryStore
from .provider import ForegroundContext

logger = logging.getLogger(__name__)

# Delivery sources
SOURCE_FOREGROUND = "foreground"
SOURCE_BACKGROUND = "background"
SOURCE_APP_OPEN = "app-open"

DEFAULT_RENDER_TITLE = "TALC Notification"
DEFAULT_RENDER_BODY = "You have a new notification"
DEFAULT_ICON = "/favicon.ico"

EVENT_REMINDER_TYPES = {
    "event_reminder",
    "event_reminder_owner",
    "event_reminder_quality",
    "event_reminder_owner_same_day",
}


@dataclass
class DeliveryOutcome:
    """Result of passing one notification through the pipeline."""
    accepted: bool
    fingerprint: str
    record: Optional[NotificationRecord] = None
    display: Optional[Dict[str, Any]] = None


def build_record(payload: PushPayload, fingerprint: str, source: str, timestamp_ms: int) -> NotificationRecord:
    return NotificationRecord(
        id=fingerprint,
        title=payload.notification.title or "Notification",
        body=payload.notification.body or "",
        type=payload.type,
        event_id=payload.event_id,
        url=payload.url,
        timestamp=timestamp_ms,
        read=False,
        source=source,
    )


def build_display_options(payload: PushPayload, timestamp_ms: Optional[int] = None) -> Dict[str, Any]:
    """System notification options for a background delivery, tuned per type."""
    notification_type = payload.raw_type
    title = payload.notification.title or DEFAULT_RENDER_TITLE
    options: Dict[str, Any] = {
        "body": payload.notification.body or DEFAULT_RENDER_BODY,
        "icon": payload.notification.icon or DEFAULT_ICON,
        "badge": DEFAULT_ICON,
        "tag": notification_type or "general",
        "data": {
            "url": payload.url,
            "type": notification_type,
            "timestamp": timestamp_ms if timestamp_ms is not None else int(time.time() * 1000),
        },
        "requireInteraction": False,
        "silent": False,
    }

    if notification_type in EVENT_REMINDER_TYPES:
        options["requireInteraction"] = True
        options["actions"] = [
            {"action": "view", "title": "View Event", "icon": DEFAULT_ICON},
            {"action": "dismiss", "title": "Dismiss"},
        ]
        if notification_type == "event_reminder_owner":
            options["tag"] = "event_reminder_tomorrow"
        elif "same_day" in notification_type:
            options["tag"] = "event_reminder_today"
    elif notification_type in ("event_reschedule", "event_cancellation"):
        options["requireInteraction"] = True
        options["tag"] = "event_change"
    elif notification_type == "task_overdue":
        options["requireInteraction"] = True
        options["actions"] = [
            {"action": "view", "title": "View Tasks", "icon": DEFAULT_ICON},
            {"action": "snooze", "title": "Remind Later"},
        ]
    elif notification_type == "kpi_reminder":
        options["actions"] = [
            {"action": "view", "title": "View Mentors", "icon": DEFAULT_ICON},
            {"action": "dismiss", "title": "Later"},
        ]
    elif notification_type == "system_alert":
        options["requireInteraction"] = True
        options["tag"] = "critical_alert"
    elif notification_type == "monthly_summary":
        options["actions"] = [
            {"action": "view", "title": "View Dashboard", "icon": DEFAULT_ICON},
        ]

    return {"title": title, "options": options}


class DeliveryPipeline:
    """Dedup check followed by history insertion, shared by all paths."""

    def __init__(
        self,
        dedup: DeduplicationEngine,
        history: HistoryStore,
        clock: Callable[[], float] = time.time,
    ):
        self._dedup = dedup
        self._history = history
        self._clock = clock

    async def receive(self, payload: PushPayload, source: str) -> DeliveryOutcome:
        fingerprint = generate_fingerprint(payload)
        if await self._dedup.is_duplicate(fingerprint, source):
            return DeliveryOutcome(accepted=False, fingerprint=fingerprint)

        record = build_record(payload, fingerprint, source, int(self._clock() * 1000))
        stored = await self._history.append(record)
        if stored is None:
            logger.warning(f"Notification {fingerprint} accepted but not kept in history")
        return DeliveryOutcome(accepted=True, fingerprint=fingerprint, record=record)


class ForegroundListener:
    """Handles messages arriving while the client is in the foreground.

    When a background worker is active, or the client is not visible, the
    background path owns the delivery and this listener stands down.
    """

    def __init__(self, pipeline: DeliveryPipeline):
        self._pipeline = pipeline

    async def __call__(self, payload: PushPayload, context: Optional[ForegroundContext] = None) -> Optional[DeliveryOutcome]:
        context = context or ForegroundContext()
        if context.background_active:
            logger.debug("[Foreground] Background worker active, skipping to avoid duplicate")
            return None
        if not context.visible:
            logger.debug("[Foreground] Client not visible, letting background worker handle it")
            return None

        outcome = await self._pipeline.receive(payload, SOURCE_FOREGROUND)
        if not outcome.accepted:
            logger.info("[Foreground] Duplicate blocked")
        return outcome


class BackgroundReceiver:
    """Entry point for push events delivered with no visible client."""

    def __init__(self, pipeline: DeliveryPipeline, clock: Callable[[], float] = time.time):
        self._pipeline = pipeline
        self._clock = clock

    @staticmethod
    def reconstruct(event: Dict[str, Any]) -> PushPayload:
        """Rebuild a payload from a raw push event.

        Accepts the provider shape ({"notification": ..., "data": ...}) and
        data-only messages carrying title/body inside "data".
        """
        notification = event.get("notification") or {}
        data = event.get("data") or {}
        if isinstance(notification, dict) and isinstance(data, dict):
            notification = dict(notification)
            data = {key: value for key, value in data.items() if value is not None}
            for key in ("title", "body", "icon"):
                if not notification.get(key) and data.get(key):
                    notification[key] = data[key]
        return PushPayload.model_validate({"notification": notification, "data": data})

    async def handle_push_event(self, event: Dict[str, Any]) -> DeliveryOutcome:
        """Run one push event through the pipeline; malformed events are dropped."""
        try:
            payload = self.reconstruct(event)
        except ValidationError as e:
            logger.warning(f"[Background] Dropping malformed push event: {e.error_count()} error(s)")
            return DeliveryOutcome(accepted=False, fingerprint="")

        outcome = await self._pipeline.receive(payload, SOURCE_BACKGROUND)
        if outcome.accepted:
            outcome.display = build_display_options(payload, int(self._clock() * 1000))
        else:
            logger.info("[Background] Duplicate blocked, nothing rendered")
        return outcome


class AppOpenReconciler:
    """On-open check for notifications the client may have missed."""

    def __init__(
        self,
        pipeline: DeliveryPipeline,
        reconcile_url: Optional[str] = None,
        timeout: float = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._pipeline = pipeline
        self._reconcile_url = reconcile_url
        self._timeout = timeout
        self._transport = transport

    async def fetch_missed(self, user_id: str) -> List[PushPayload]:
        """Fetch missed notifications from the configured endpoint, if any."""
        if not self._reconcile_url:
            return []

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.get(self._reconcile_url, params={"user_id": user_id})
                if response.status_code != 200:
                    logger.error(f"Reconcile fetch failed: {response.status_code}")
                    return []
                items = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Failed to fetch missed notifications: {e}")
            return []

        payloads = []
        for item in items if isinstance(items, list) else []:
            try:
                payloads.append(PushPayload.model_validate(item))
            except ValidationError:
                logger.warning(f"Skipping malformed missed notification: {item!r}")
        return payloads

    async def reconcile(self, user_id: str, payloads: Optional[List[PushPayload]] = None) -> Tuple[int, int]:
        """Run reported (or fetched) payloads through the pipeline.

        Returns (accepted, duplicates).
        """
        if payloads is None:
            payloads = await self.fetch_missed(user_id)

        accepted = duplicates = 0
        for payload in payloads:
            outcome = await self._pipeline.receive(payload, SOURCE_APP_OPEN)
            if outcome.accepted:
                accepted += 1
            else:
                duplicates += 1

        if payloads:
            logger.info(f"On-open check: {accepted} new, {duplicates} already delivered")
        return accepted, duplicates
