"""REST API module for food sharing.

This module provides HTTP endpoints for:
- Sharing, browsing, updating and deleting food listings
- Claiming food and confirming pickups
- Per-user statistics and listing history
- Notifications and their read state
- Real-time updates via WebSocket
- Uploaded photos and a health check
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Dict, Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from .services import Services, build_services, build_memory_services

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Dict[str, Any]] = None,
    services: Optional[Services] = None
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        settings: Validated settings; defaults to the loaded settings.conf
        services: Prebuilt services. When given, startup does not build or
            close any storage (used by tests).

    Returns:
        The configured application
    """
    if settings is None:
        from config import settings_conf
        settings = services.settings if services else settings_conf

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Handle startup and shutdown events."""
        if services is not None:
            yield
            return

        logger.info("Initializing API...")
        app.state.services = await build_services(settings)
        try:
            yield
        finally:
            logger.info("Shutting down API...")
            await app.state.services.close()

    app = FastAPI(
        title="FoodShare API",
        description="REST API for sharing and claiming surplus food",
        version="1.0.0",
        lifespan=lifespan
    )
    if services is not None:
        app.state.services = services

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health():
        """Liveness check."""
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat()
        }

    # Import and include all routers
    from .food import router as food_router
    from .users import router as users_router
    from .notifications import router as notifications_router
    from .websockets import router as websocket_router

    app.include_router(food_router)
    app.include_router(users_router)
    app.include_router(notifications_router)
    app.include_router(websocket_router)

    uploads_dir = Path(settings['uploads_dir'])
    uploads_dir.mkdir(parents=True, exist_ok=True)
    app.mount("/uploads", StaticFiles(directory=str(uploads_dir)), name="uploads")

    return app


__all__ = ['create_app', 'Services', 'build_services', 'build_memory_services']
