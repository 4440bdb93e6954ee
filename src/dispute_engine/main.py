"""
Dispute Engine - Main Application
=================================

Dispute tracking and notification service.

Modules:
- Tracking: Audit trail, SLA breach detection, auto-escalation, metrics
- Notifications: Templates, rules, preferences, scheduled delivery

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities and value objects
- Infrastructure: Policy file, channel sinks, collaborators
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

# Configuration and Core
from dispute_engine.config import Settings, get_settings
from dispute_engine.core import ApplicationException

# Engine
from dispute_engine.engine import DisputeEngine

# Module Routers
from dispute_engine.tracking.interfaces import tracking_router
from dispute_engine.notifications.interfaces import notifications_router

# Middleware
from dispute_engine.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    application_exception_handler,
    global_exception_handler
)

# Logging
from dispute_engine.shared.infrastructure.logging import setup_logging, get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Load tracking policy and start watching it
    3. Start the dispute monitor and channel dispatcher

    SHUTDOWN:
    1. Stop both periodic jobs
    2. Stop the policy watcher, close webhook clients, drop listeners
    """
    settings: Settings = app.state.settings
    engine: DisputeEngine = app.state.engine

    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting Dispute Engine", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    await engine.start()
    logger.info("Dispute Engine started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down Dispute Engine")
    await engine.stop()
    logger.info("Dispute Engine shutdown complete")


def create_app(
    settings: Optional[Settings] = None,
    engine: Optional[DisputeEngine] = None
) -> FastAPI:
    """
    Build the FastAPI application.

    The engine is attached to ``app.state`` immediately so routes work
    even when the lifespan is not run (e.g. under an ASGI test transport).
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Dispute Engine API",
        description="""
    ## Dispute Tracking & Notification Engine

    ### Tracking Module

    - `GET /tracking/events` - Query the audit trail
    - `GET /tracking/metrics` - Event statistics
    - `GET /tracking/dashboard` - Dashboard bundle
    - `POST /tracking/signals/*` - Dispute lifecycle signals

    Background monitor (every 30 seconds by default) records SLA breaches
    and auto-escalations.

    ### Notifications Module

    - `GET /notifications` - List notifications
    - `/notifications/templates`, `/notifications/rules` - CRUD
    - `/notifications/preferences/{user_id}` - Per-user preferences
    - `POST /notifications/{id}/delivered`, `/read` - Acknowledgements

    Background dispatcher (every 30 seconds by default) delivers PENDING
    notifications, deferring those inside the recipient's quiet hours.
    """,
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )

    app.state.settings = settings
    app.state.engine = engine or DisputeEngine(settings)

    # === CORS Middleware ===
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # === Custom Middleware (from shared) ===
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(CorrelationIDMiddleware)
    app.add_exception_handler(ApplicationException, application_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    # === Include Module Routers ===
    app.include_router(tracking_router)
    app.include_router(notifications_router)

    # === Health Check Endpoint ===

    @app.get("/health", tags=["Health"], responses={
        200: {
            "description": "Service is healthy",
            "content": {
                "application/json": {
                    "example": {
                        "status": "healthy",
                        "version": "1.0.0",
                        "environment": "development",
                        "checks": {
                            "dispute_monitor": "running",
                            "channel_dispatcher": "running",
                            "tracking_events": "42",
                            "notifications": "7"
                        }
                    }
                }
            }
        }
    })
    async def health_check(request: Request):
        """
        Health check endpoint for load balancers and orchestrators.

        Reports scheduler state and in-memory store sizes.
        """
        return {
            "status": "healthy",
            "version": settings.app_version,
            "environment": settings.environment,
            "checks": request.app.state.engine.status()
        }

    @app.get("/", tags=["Root"])
    async def root():
        """Root endpoint with API information."""
        return {
            "service": "Dispute Engine",
            "version": settings.app_version,
            "architecture": "Clean Architecture / Modular Monolith",
            "docs": "/docs",
            "health": "/health",
            "modules": {
                "tracking": {"prefix": "/tracking"},
                "notifications": {"prefix": "/notifications"}
            }
        }

    return app


app = create_app()


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "dispute_engine.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info"
    )
