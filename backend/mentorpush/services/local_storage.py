"""Local key-value storage for client-owned documents.

Values are whole JSON documents; callers read, mutate and write them back as a
unit. Errors are raised to the caller, which decides whether to fail open or
fail soft.
"""
import json
import logging
from typing import Any, Optional

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..models.local_state import LocalState
from ..utils.db_utils import retry_on_lock

logger = logging.getLogger(__name__)


class LocalStorage:
    """Async key-value area backed by the local state table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get_item(self, key: str) -> Optional[str]:
        """Get the raw stored value, or None if the key is absent."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(LocalState.value).where(LocalState.key == key)
            )
            return result.scalar_one_or_none()

    async def set_item(self, key: str, value: str) -> None:
        """Store a raw value, replacing any previous one."""
        async with self._session_factory() as session:
            existing = await session.get(LocalState, key)
            if existing:
                existing.value = value
            else:
                session.add(LocalState(key=key, value=value))
            await retry_on_lock(session.commit)

    async def remove_item(self, key: str) -> None:
        """Delete a key; missing keys are ignored."""
        async with self._session_factory() as session:
            await session.execute(delete(LocalState).where(LocalState.key == key))
            await retry_on_lock(session.commit)

    async def get_json(self, key: str, default: Any) -> Any:
        """Get a JSON document, or `default` when the key is absent."""
        raw = await self.get_item(key)
        if raw is None:
            return default
        return json.loads(raw)

    async def set_json(self, key: str, document: Any) -> None:
        await self.set_item(key, json.dumps(document, separators=(",", ":")))
