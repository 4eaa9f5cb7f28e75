"""Token lifecycle and delivery path API endpoints."""
import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends

from ..errors import ERROR_MESSAGES, ErrorKind
from ..schemas.push import (
    DeliveryRequest,
    DeliveryResponse,
    EnableRequest,
    PushStatusResponse,
    ReconcileRequest,
    ReconcileResponse,
    RefreshRequest,
)
from ..services.container import NotificationServices
from ..services.provider import ClientReportedProvider, ForegroundContext, PermissionState
from ..services.session import PushSession
from .deps import get_services, get_session, get_user_id, raise_for_result

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/push", tags=["push"])


def _client_provider(session: PushSession) -> ClientReportedProvider:
    provider = session.provider
    if not isinstance(provider, ClientReportedProvider):
        provider = ClientReportedProvider()
        session.provider = provider
    return provider


async def _status(session: PushSession, services: NotificationServices) -> PushStatusResponse:
    coordinator = services.sessions.get_coordinator(session.user_id)
    profile = await services.registry.get_profile(session.user_id)
    notifications_enabled = bool(profile.ok and profile.value and profile.value["notifications_enabled"])

    # Denied permission stays visible until the client reports a change
    message = None
    if coordinator.permission == PermissionState.DENIED:
        message = ERROR_MESSAGES[ErrorKind.PERMISSION_DENIED]

    return PushStatusResponse(
        state=coordinator.state.value,
        permission=coordinator.permission.value,
        current_token=session.current_token,
        notifications_enabled=notifications_enabled,
        message=message,
    )


@router.get("/status", response_model=PushStatusResponse)
async def get_status(
    session: PushSession = Depends(get_session),
    services: NotificationServices = Depends(get_services),
):
    """Registration state of this device."""
    return await _status(session, services)


@router.post("/enable", response_model=PushStatusResponse)
async def enable_notifications(
    request: EnableRequest,
    session: PushSession = Depends(get_session),
    services: NotificationServices = Depends(get_services),
):
    """Register this device with the permission and token the client obtained."""
    _client_provider(session).report(PermissionState(request.permission), request.token)
    if request.platform is not None:
        session.environment.platform = request.platform
    if request.user_agent is not None:
        session.environment.user_agent = request.user_agent

    coordinator = services.sessions.get_coordinator(session.user_id)
    result = await coordinator.enable(name=request.name)
    raise_for_result(result)
    return await _status(session, services)


@router.post("/refresh", response_model=PushStatusResponse)
async def refresh_token(
    request: RefreshRequest,
    session: PushSession = Depends(get_session),
    services: NotificationServices = Depends(get_services),
):
    """Replace all of the user's device records with one freshly acquired token."""
    provider = _client_provider(session)
    provider.report(provider.permission, request.token)

    coordinator = services.sessions.get_coordinator(session.user_id)
    result = await coordinator.refresh_token()
    raise_for_result(result)
    return await _status(session, services)


@router.post("/disable", response_model=PushStatusResponse)
async def disable_notifications(
    session: PushSession = Depends(get_session),
    services: NotificationServices = Depends(get_services),
):
    """Remove this device's registration."""
    coordinator = services.sessions.get_coordinator(session.user_id)
    result = await coordinator.disable()
    raise_for_result(result)
    return await _status(session, services)


@router.post("/sign-out")
async def sign_out(
    user_id: str = Depends(get_user_id),
    services: NotificationServices = Depends(get_services),
):
    """End the user's session; device records stay registered."""
    services.sessions.sign_out(user_id)
    return {"success": True}


@router.post("/events", response_model=DeliveryResponse)
async def receive_push_event(
    event: Dict[str, Any] = Body(...),
    services: NotificationServices = Depends(get_services),
):
    """Background delivery path: a push event received with no visible client."""
    outcome = await services.background.handle_push_event(event)
    return DeliveryResponse(accepted=outcome.accepted, record=outcome.record, display=outcome.display)


@router.post("/foreground", response_model=DeliveryResponse)
async def receive_foreground_message(
    request: DeliveryRequest,
    session: PushSession = Depends(get_session),
):
    """Foreground delivery path, dispatched to the handlers registered on enable."""
    context = ForegroundContext(visible=request.visible, background_active=request.background_active)
    outcomes = [
        outcome for outcome in await session.provider.dispatch_foreground(request.payload, context)
        if outcome is not None
    ]
    if not outcomes:
        return DeliveryResponse(accepted=False)
    outcome = outcomes[0]
    return DeliveryResponse(accepted=outcome.accepted, record=outcome.record)


@router.post("/reconcile", response_model=ReconcileResponse)
async def reconcile_on_open(
    request: ReconcileRequest,
    session: PushSession = Depends(get_session),
    services: NotificationServices = Depends(get_services),
):
    """On-open check for notifications that may have been missed."""
    accepted, duplicates = await services.reconciler.reconcile(session.user_id, request.payloads)
    return ReconcileResponse(accepted=accepted, duplicates=duplicates)
