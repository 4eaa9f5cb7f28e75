"""Main FastAPI application for push notification delivery and device registry."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import settings, get_database_url, get_local_state_url
from .database import (
    close_db,
    create_session_factory,
    create_store_engine,
    init_db,
    init_local_db,
)
from .routers import devices_router, history_router, history_ws_router, push_router
from .services.container import NotificationServices

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(
    database_url: Optional[str] = None,
    local_state_url: Optional[str] = None,
    run_scheduler: bool = True,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan - startup and shutdown."""
        logger.info("Starting mentorpush")

        profile_engine = create_store_engine(database_url or get_database_url())
        local_engine = create_store_engine(local_state_url or get_local_state_url())
        await init_db(profile_engine)
        await init_local_db(local_engine)
        logger.info("Stores initialized")

        services = NotificationServices(
            create_session_factory(profile_engine),
            create_session_factory(local_engine),
            settings,
        )
        await services.start(run_scheduler=run_scheduler)
        app.state.services = services

        yield

        await services.stop()
        await close_db(profile_engine, local_engine)
        logger.info("Shutdown complete")

    app = FastAPI(
        title="mentorpush",
        description="Push notification delivery, history and multi-device registry",
        version="1.0.0",
        lifespan=lifespan,
    )

    # CORS middleware for the console frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # In production, restrict to your domain
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(devices_router)
    app.include_router(push_router)
    app.include_router(history_router)
    app.include_router(history_ws_router)

    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.web_port)
