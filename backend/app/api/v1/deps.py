"""
Service dependencies for the v1 endpoints.

The notification queue and the statistics cache live on app.state and
are created in the application lifespan.
"""

from typing import Optional
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.session import get_db
from backend.app.domain.lifecycle.engine import StatusTransitionEngine
from backend.app.services.cache import TTLCache
from backend.app.services.lifecycle_service import BookingService, ShipmentService
from backend.app.services.notifications.queue import NotificationQueue


def get_notification_queue(request: Request) -> Optional[NotificationQueue]:
    return getattr(request.app.state, "notification_queue", None)


def get_cache(request: Request) -> Optional[TTLCache]:
    return getattr(request.app.state, "cache", None)


def get_transition_engine(
    queue: Optional[NotificationQueue] = Depends(get_notification_queue),
) -> StatusTransitionEngine:
    return StatusTransitionEngine(notifier=queue)


def get_booking_service(
    db: AsyncSession = Depends(get_db),
    engine: StatusTransitionEngine = Depends(get_transition_engine),
    cache: Optional[TTLCache] = Depends(get_cache),
) -> BookingService:
    return BookingService(db, engine, cache)


def get_shipment_service(
    db: AsyncSession = Depends(get_db),
    engine: StatusTransitionEngine = Depends(get_transition_engine),
    cache: Optional[TTLCache] = Depends(get_cache),
) -> ShipmentService:
    return ShipmentService(db, engine, cache)
