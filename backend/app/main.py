"""
FastAPI Application Entry Point.

This is the main application file for the Logistics Booking Backend.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from backend.app.core.config import settings
from backend.app.core.redis_client import get_redis, ping_redis
from backend.app.core.observability import ObservabilityMiddleware, configure_logging
from backend.app.api.v1.router import router as api_v1_router
from backend.app.db.session import engine, Base, AsyncSessionLocal
from backend.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)
from backend.app.services.cache import TTLCache
from backend.app.services.notifications.queue import build_notification_queue

# Import models to ensure they are registered with Base
from backend.app.models.user import User
from backend.app.models.audit_log import AuditLog
from backend.app.models.booking import Booking
from backend.app.models.shipment import Shipment
from backend.app.models.invoice import Invoice
from backend.app.models.warehouse_receipt import WarehouseReceipt
from backend.app.models.consolidation import Consolidation
from backend.app.models.dlq import DeadLetterQueue
from backend.app.models.notification import Notification

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.
    
    1. Creates database tables on startup.
    2. Starts the notification queue worker and the statistics cache.
    3. Stops the worker on shutdown; jobs still queued are logged and lost.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    
    app.state.cache = TTLCache(default_ttl_seconds=settings.statistics_cache_ttl_seconds)
    app.state.notification_queue = build_notification_queue(AsyncSessionLocal)
    app.state.notification_queue.start()
    logger.info("%s %s started", settings.app_name, settings.api_version)
    yield
    await app.state.notification_queue.stop()


# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Booking, shipment tracking and billing backend for a freight forwarder",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check(request: Request, redis=Depends(get_redis)):
    """
    Health check endpoint.
    
    Returns:
        dict: Status, application information, revocation store and notification backlog
    """
    queue = getattr(request.app.state, "notification_queue", None)
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "redis": await ping_redis(redis),
        "notification_queue": {
            "running": bool(queue and queue.running),
            "pending": queue.pending if queue else 0,
        },
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint.
    
    Returns:
        dict: Welcome message and API documentation links
    """
    return {
        "message": "Welcome to Logistics Booking Backend API",
        "docs": "/docs",
        "health": "/health",
    }
