"""Local notification history.

A capped, newest-first list of accepted notifications with read state, kept
as a single JSON document in local storage. Every mutation reloads the
document, applies the change, writes it back and emits one change event.

Persistence errors never propagate: reads fall back to an empty history and a
failed write is retried once with the oldest half of the history dropped.
"""
import asyncio
import logging
from typing import List, Optional

from pydantic import ValidationError

from ..models.local_state import HISTORY_KEY
from ..schemas.notification import NotificationRecord
from .change_events import ChangeNotifier
from .local_storage import LocalStorage

logger = logging.getLogger(__name__)

MAX_HISTORY_ITEMS = 100


class HistoryStore:
    """Persisted notification history with synchronous read accessors."""

    def __init__(
        self,
        storage: LocalStorage,
        notifier: ChangeNotifier,
        max_items: int = MAX_HISTORY_ITEMS,
    ):
        self._storage = storage
        self._notifier = notifier
        self._max_items = max_items
        self._snapshot: List[NotificationRecord] = []
        self._lock = asyncio.Lock()

    @property
    def max_items(self) -> int:
        return self._max_items

    # Read side

    def list_all(self) -> List[NotificationRecord]:
        """All records, newest first, as of the last load or mutation."""
        return list(self._snapshot)

    def unread_count(self) -> int:
        return sum(1 for record in self._snapshot if not record.read)

    async def _load(self) -> List[NotificationRecord]:
        try:
            raw = await self._storage.get_json(HISTORY_KEY, [])
        except Exception as e:
            logger.error(f"Error getting history: {e}")
            return []

        if not isinstance(raw, list):
            logger.warning("History document is not a list, ignoring it")
            return []

        records = []
        for item in raw:
            try:
                records.append(NotificationRecord.model_validate(item))
            except ValidationError:
                logger.warning(f"Dropping malformed history entry: {item!r}")
        return records[:self._max_items]

    async def _save(self, records: List[NotificationRecord]) -> bool:
        """Write the document; on failure retry once with the oldest half dropped."""
        records = records[:self._max_items]
        try:
            await self._storage.set_json(HISTORY_KEY, [r.model_dump(by_alias=True) for r in records])
        except Exception as e:
            keep = len(records) // 2
            logger.warning(f"Error saving history ({e}), retrying with {keep} most recent entries")
            records = records[:keep]
            try:
                await self._storage.set_json(HISTORY_KEY, [r.model_dump(by_alias=True) for r in records])
            except Exception as retry_error:
                logger.error(f"Error saving history: {retry_error}")
                return False

        self._snapshot = records
        return True

    async def refresh(self) -> bool:
        """Reload from storage; emits a change only if the history differs."""
        async with self._lock:
            records = await self._load()
            if records == self._snapshot:
                return False
            self._snapshot = records
        await self._notifier.emit("refresh", self.unread_count())
        return True

    # Write side

    async def append(self, record: NotificationRecord) -> Optional[NotificationRecord]:
        """Insert at the head, evicting the oldest entries beyond the cap."""
        async with self._lock:
            records = await self._load()
            records.insert(0, record)
            if not await self._save(records):
                return None

        logger.info(f"Saved to history: {record.title}")
        await self._notifier.emit("append", self.unread_count(), record.model_dump(by_alias=True))
        return record

    async def mark_read(self, notification_id: str) -> bool:
        """Mark every record carrying this id as read."""
        async with self._lock:
            records = await self._load()
            updated = [
                r.model_copy(update={"read": True}) if r.id == notification_id else r
                for r in records
            ]
            if not await self._save(updated):
                return False

        await self._notifier.emit("mark_read", self.unread_count())
        return True

    async def mark_all_read(self) -> bool:
        async with self._lock:
            records = await self._load()
            updated = [r.model_copy(update={"read": True}) for r in records]
            if not await self._save(updated):
                return False

        await self._notifier.emit("mark_all_read", self.unread_count())
        return True

    async def delete(self, notification_id: str) -> bool:
        async with self._lock:
            records = await self._load()
            remaining = [r for r in records if r.id != notification_id]
            if not await self._save(remaining):
                return False

        await self._notifier.emit("delete", self.unread_count())
        return True

    async def clear_all(self) -> bool:
        async with self._lock:
            try:
                await self._storage.remove_item(HISTORY_KEY)
            except Exception as e:
                logger.error(f"Error clearing history: {e}")
                return False
            self._snapshot = []

        await self._notifier.emit("clear", 0)
        return True
