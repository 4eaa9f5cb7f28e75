"""Shared router dependencies and failure mapping."""
from fastapi import Depends, Header, HTTPException, Request

from ..errors import ErrorKind, OperationResult
from ..services.container import NotificationServices
from ..services.session import PushSession

ERROR_STATUS = {
    ErrorKind.PERMISSION_DENIED: 403,
    ErrorKind.PERMISSION_DISMISSED: 403,
    ErrorKind.PROVIDER_UNAVAILABLE: 503,
    ErrorKind.REGISTRY_UNAVAILABLE: 503,
    ErrorKind.TIMEOUT: 503,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVALID_STATE: 409,
}


def get_services(request: Request) -> NotificationServices:
    """The notification components built at startup."""
    return request.app.state.services


async def get_user_id(x_user_id: str = Header(..., min_length=1)) -> str:
    """Acting user, as established by the external auth layer."""
    return x_user_id


async def get_session(
    user_id: str = Depends(get_user_id),
    services: NotificationServices = Depends(get_services),
) -> PushSession:
    """Session of the acting user, started on first use."""
    return await services.sessions.sign_in(user_id)


def raise_for_result(result: OperationResult):
    """Turn a failure result into an HTTP error carrying actionable copy."""
    if result.ok:
        return
    raise HTTPException(
        status_code=ERROR_STATUS.get(result.error, 500),
        detail={"error": result.error.value, "message": result.message},
    )
