"""API routers."""
from .devices import router as devices_router
from .history import router as history_router, ws_router as history_ws_router
from .push import router as push_router

__all__ = ["devices_router", "history_router", "history_ws_router", "push_router"]
