"""
Public tracking and quotation endpoints.

No authentication: tracking numbers are handed to customers and their
consignees, and the quote preview stores nothing.
"""

from fastapi import APIRouter, Depends

from backend.app.api.v1.deps import get_booking_service, get_shipment_service
from backend.app.core.exceptions import ResourceNotFoundError
from backend.app.schemas.lifecycle import ChargeBreakdownResponse, QuoteRequest, TrackingResponse
from backend.app.services.lifecycle_service import BookingService, ShipmentService, preview_quote

router = APIRouter(tags=["Tracking"])


@router.get("/tracking/{tracking_number}", response_model=TrackingResponse)
async def track(
    tracking_number: str,
    bookings: BookingService = Depends(get_booking_service),
    shipments: ShipmentService = Depends(get_shipment_service),
):
    """Look a tracking number up across bookings and shipments."""
    for service in (bookings, shipments):
        try:
            return await service.get_by_tracking_number(tracking_number)
        except ResourceNotFoundError:
            continue
    raise ResourceNotFoundError("Tracking number", tracking_number)


@router.post("/quotes/preview", response_model=ChargeBreakdownResponse)
async def quote_preview(body: QuoteRequest):
    return preview_quote(body).to_dict()
