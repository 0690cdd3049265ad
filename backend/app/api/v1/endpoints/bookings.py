"""
Booking API endpoints.

Customers create and follow their own bookings; staff confirm, price and
move them through the lifecycle.
"""

from typing import Optional
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api.v1.deps import get_booking_service, get_notification_queue
from backend.app.api.v1.endpoints.lifecycle import build_lifecycle_router, render_for
from backend.app.core.guards import Actor, get_current_actor
from backend.app.db.session import get_db
from backend.app.schemas.invoice import InvoiceResponse
from backend.app.schemas.lifecycle import (
    BookingCargoUpdate,
    BookingCreate,
    BookingListResponse,
    BookingResponse,
)
from backend.app.services.invoice_service import InvoiceService
from backend.app.services.lifecycle_service import BookingService
from backend.app.services.notifications.queue import NotificationQueue

router = build_lifecycle_router(
    prefix="/bookings",
    tag="Bookings",
    service_dependency=get_booking_service,
    response_model=BookingResponse,
    list_response_model=BookingListResponse,
    cargo_update_model=BookingCargoUpdate,
)


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
):
    """
    Create a booking.

    Customers book for themselves; staff must pass customer_id. The
    response carries the booking number and the calculated quote.
    """
    booking = await service.create(booking_data, actor)
    return render_for(actor, booking, BookingResponse)


@router.post("/{booking_id}/invoice", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
async def issue_invoice(
    booking_id: int,
    actor: Actor = Depends(get_current_actor),
    queue: Optional[NotificationQueue] = Depends(get_notification_queue),
    db: AsyncSession = Depends(get_db),
):
    """Issue the booking's invoice; returns the existing one if already issued."""
    return await InvoiceService.issue(db, booking_id, actor, notifier=queue)


@router.get("/{booking_id}/invoice", response_model=InvoiceResponse)
async def get_invoice(
    booking_id: int,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return await InvoiceService.get_for_booking(db, booking_id, actor)
