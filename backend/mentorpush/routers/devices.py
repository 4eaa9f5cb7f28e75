"""Device registry API endpoints."""
import logging
from typing import List

from fastapi import APIRouter, Depends

from ..schemas.device import (
    ConsolidateResponse,
    DeviceRenameRequest,
    DeviceResponse,
    DeviceToggleRequest,
)
from ..services.consolidator import consolidation_message
from ..services.container import NotificationServices
from ..services.session import PushSession
from ..utils.device_info import device_label, format_last_seen
from .deps import get_services, get_session, raise_for_result

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/devices", tags=["devices"])


def _to_response(device, current_token) -> DeviceResponse:
    return DeviceResponse(
        **device.model_dump(),
        label=device_label(device.name, device.user_agent),
        last_seen_label=format_last_seen(device.last_seen_at),
        is_current=device.token == current_token,
    )


@router.get("", response_model=List[DeviceResponse])
async def list_devices(
    session: PushSession = Depends(get_session),
    services: NotificationServices = Depends(get_services),
):
    """List the user's registered devices, most recently seen first."""
    result = await services.registry.list_devices(session.user_id)
    raise_for_result(result)
    return [_to_response(device, session.current_token) for device in result.value]


@router.post("/consolidate", response_model=ConsolidateResponse)
async def consolidate_devices(
    session: PushSession = Depends(get_session),
    services: NotificationServices = Depends(get_services),
):
    """Remove duplicate registrations of the same physical device."""
    result = await services.consolidator.consolidate(session.user_id)
    raise_for_result(result)
    return ConsolidateResponse(removed=result.value, message=consolidation_message(result.value))


@router.patch("/{token}/name", response_model=DeviceResponse)
async def rename_device(
    token: str,
    request: DeviceRenameRequest,
    session: PushSession = Depends(get_session),
    services: NotificationServices = Depends(get_services),
):
    """Set or clear a device's custom name."""
    result = await services.registry.rename(session.user_id, token, request.name)
    raise_for_result(result)
    return _to_response(result.value, session.current_token)


@router.patch("/{token}/enabled", response_model=DeviceResponse)
async def toggle_device(
    token: str,
    request: DeviceToggleRequest,
    session: PushSession = Depends(get_session),
    services: NotificationServices = Depends(get_services),
):
    """Enable or disable delivery to one device."""
    coordinator = services.sessions.get_coordinator(session.user_id)
    result = await coordinator.set_device_enabled(token, request.enabled)
    raise_for_result(result)
    return _to_response(result.value, session.current_token)


@router.delete("/{token}")
async def remove_device(
    token: str,
    session: PushSession = Depends(get_session),
    services: NotificationServices = Depends(get_services),
):
    """Remove a device. Removing an unknown device succeeds."""
    if token == session.current_token:
        coordinator = services.sessions.get_coordinator(session.user_id)
        result = await coordinator.disable()
    else:
        result = await services.registry.remove_device(session.user_id, token)
    raise_for_result(result)
    return {"success": True, "message": "Device removed"}
