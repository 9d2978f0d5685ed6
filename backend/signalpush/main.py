"""Main FastAPI application."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .container import build_services
from .database import init_db, close_db
from .routers import devices_router, notifications_router, analytics_router, sync_router, silent_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    logger.info(f"Starting SignalPush ({settings.platform} platform)")

    # Initialize database
    await init_db()
    logger.info("Database initialized")

    services = getattr(app.state, "services", None)
    if services is None:
        services = build_services()
        app.state.services = services

    await services.start()
    logger.info("Background sync and task queue started")

    yield

    # Shutdown
    await services.stop()
    await close_db()
    logger.info("Shutdown complete")


def create_app(services=None) -> FastAPI:
    """Create and configure the FastAPI application.

    Pass prebuilt services to replace the default wiring (tests).
    """
    app = FastAPI(
        title="SignalPush",
        description="Push notification delivery, silent background sync and engagement analytics",
        version="1.0.0",
        lifespan=lifespan,
    )
    if services is not None:
        app.state.services = services

    # CORS middleware for app and service-worker clients
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # In production, restrict to your domain
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(devices_router)
    app.include_router(notifications_router)
    app.include_router(analytics_router)
    app.include_router(sync_router)
    app.include_router(silent_router)

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "platform": settings.platform,
        }

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.web_port)
