"""Duplicate-device consolidation.

Token acquisition can be retried (failed send, manual refresh, permission
re-grant), so one physical device may end up with several live tokens. The
consolidator keeps the most recently seen record per device fingerprint and
removes the others.

The fingerprint is the raw user agent plus platform. Missing values count as
"unknown", so devices without metadata are grouped together. Two distinct
devices with identical browser/OS strings are merged as well; this is a
known heuristic, not a true device identity.
"""
import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, List

from ..errors import OperationResult
from ..schemas.device import DeviceRecord
from .registry import DeviceRegistryClient

logger = logging.getLogger(__name__)

UNKNOWN = "unknown"


def device_fingerprint(device: DeviceRecord) -> str:
    return f"{device.user_agent or UNKNOWN}{device.platform or UNKNOWN}"


def find_duplicates(devices: List[DeviceRecord]) -> List[DeviceRecord]:
    """Records to retire: all but the freshest within each fingerprint group."""
    groups: Dict[str, List[DeviceRecord]] = defaultdict(list)
    for device in devices:
        groups[device_fingerprint(device)].append(device)

    duplicates = []
    for group in groups.values():
        if len(group) < 2:
            continue
        group.sort(key=lambda d: d.last_seen_at or datetime.min, reverse=True)
        duplicates.extend(group[1:])
    return duplicates


class DuplicateDeviceConsolidator:
    """Restores the one-record-per-device invariant of a user's registry."""

    def __init__(self, registry: DeviceRegistryClient):
        self._registry = registry

    async def consolidate(self, user_id: str) -> OperationResult[int]:
        """Remove duplicate devices; the value is the number actually removed.

        A failed removal is logged and skipped. Removals already done stay
        done if the pass is cancelled part-way.
        """
        listed = await self._registry.list_devices(user_id)
        if not listed.ok:
            return OperationResult.failure(listed.error, listed.detail)

        duplicates = find_duplicates(listed.value)
        if not duplicates:
            logger.info(f"No duplicate devices for user {user_id}")
            return OperationResult.success(0)

        removed = 0
        for device in duplicates:
            result = await self._registry.remove_device(user_id, device.token)
            if result.ok:
                removed += 1
            else:
                logger.warning(
                    f"Failed to remove duplicate device {device.token[:16]}...: {result.detail}"
                )

        logger.info(f"Removed {removed}/{len(duplicates)} duplicate devices for user {user_id}")
        return OperationResult.success(removed)


def consolidation_message(removed: int) -> str:
    if removed == 0:
        return "No duplicates found"
    return f"{removed} duplicate{'s' if removed != 1 else ''} removed"
