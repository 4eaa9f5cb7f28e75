"""Delivery deduplication engine.

The same logical notification can reach this client through several
independent paths (foreground listener, background worker, on-open check).
The engine accepts at most one delivery per fingerprint per time window,
whatever the path.

Fail-open policy: any error while reading or writing the dedup document
treats the notification as new. Over-delivery is preferred over silent loss.
"""
import asyncio
import logging
import re
import time
from typing import Callable, Dict

from pydantic import ValidationError

from ..models.local_state import DEDUP_KEY
from ..schemas.notification import DedupEntry, PushPayload
from .local_storage import LocalStorage

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SECONDS = 10

# Title/body characters that participate in the fingerprint
FINGERPRINT_TEXT_LIMIT = 50

_NON_FINGERPRINT_CHARS = re.compile(r"[^A-Za-z0-9-]")


def generate_fingerprint(payload: PushPayload) -> str:
    """Deterministic, non-cryptographic identifier of a notification's content.

    Built from type, event id and the first characters of title and body.
    Different notifications sharing all of these collide, which is accepted.
    """
    parts = [
        payload.type,
        payload.event_id or "",
        (payload.notification.title or "")[:FINGERPRINT_TEXT_LIMIT],
        (payload.notification.body or "")[:FINGERPRINT_TEXT_LIMIT],
    ]
    joined = "-".join(part for part in parts if part)
    return _NON_FINGERPRINT_CHARS.sub("", joined)


class DeduplicationEngine:
    """Suppresses repeated fingerprints inside a sliding window."""

    def __init__(
        self,
        storage: LocalStorage,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self._storage = storage
        self._window_ms = int(window_seconds * 1000)
        self._clock = clock
        # Serialises read-modify-write within this process only; separate
        # processes sharing the store can still both accept (accepted race).
        self._lock = asyncio.Lock()

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    async def _load(self) -> Dict[str, DedupEntry]:
        """Load the entry map, falling back to empty on any read problem."""
        try:
            raw = await self._storage.get_json(DEDUP_KEY, {})
        except Exception as e:
            logger.error(f"Error reading dedup data, treating as empty: {e}")
            return {}

        if not isinstance(raw, dict):
            logger.warning("Dedup document is not a mapping, resetting it")
            return {}

        entries: Dict[str, DedupEntry] = {}
        for fingerprint, value in raw.items():
            try:
                entries[fingerprint] = DedupEntry.model_validate(value)
            except ValidationError:
                logger.debug(f"Dropping malformed dedup entry {fingerprint!r}")
        return entries

    async def _save(self, entries: Dict[str, DedupEntry]) -> None:
        await self._storage.set_json(
            DEDUP_KEY,
            {fingerprint: entry.model_dump() for fingerprint, entry in entries.items()},
        )

    def _purge(self, entries: Dict[str, DedupEntry], now: int) -> int:
        expired = [
            fingerprint for fingerprint, entry in entries.items()
            if now - entry.timestamp > self._window_ms
        ]
        for fingerprint in expired:
            del entries[fingerprint]
        return len(expired)

    async def is_duplicate(self, fingerprint: str, source: str = "unknown") -> bool:
        """Check a fingerprint and record it when new.

        Returns True when the notification must be dropped, False when the
        caller should go on and store it.
        """
        async with self._lock:
            entries = await self._load()
            now = self._now_ms()
            self._purge(entries, now)

            previous = entries.get(fingerprint)
            if previous is not None:
                logger.info(
                    f"Duplicate blocked from {source} "
                    f"(first seen via {previous.source} {now - previous.timestamp}ms ago)"
                )
                return True

            entries[fingerprint] = DedupEntry(timestamp=now, source=source)
            try:
                await self._save(entries)
            except Exception as e:
                logger.error(f"Error recording dedup entry, allowing notification: {e}")
            return False

    async def cleanup(self) -> int:
        """Purge expired entries; only writes when something was removed."""
        async with self._lock:
            entries = await self._load()
            removed = self._purge(entries, self._now_ms())
            if not removed:
                return 0
            try:
                await self._save(entries)
            except Exception as e:
                logger.error(f"Error cleaning dedup data: {e}")
                return 0
            logger.debug(f"Cleaned up {removed} expired dedup entries")
            return removed

    async def clear(self) -> None:
        """Forget every recorded fingerprint."""
        async with self._lock:
            try:
                await self._storage.remove_item(DEDUP_KEY)
            except Exception as e:
                logger.error(f"Error clearing dedup data: {e}")
