"""
Trash API endpoints.

Lists, restores and permanently deletes soft-deleted bookings and
shipments. Moving a document to the trash is DELETE /bookings/{id}.
"""

import enum
from fastapi import APIRouter, Depends, Query, status

from backend.app.api.v1.deps import get_booking_service, get_shipment_service
from backend.app.api.v1.endpoints.lifecycle import render_for
from backend.app.core.guards import Actor, get_current_actor
from backend.app.schemas.lifecycle import (
    BookingListResponse,
    BookingResponse,
    EmptyTrashResponse,
    HardDeleteRequest,
    ShipmentListResponse,
    ShipmentResponse,
)
from backend.app.services.lifecycle_service import BookingService, ShipmentService

router = APIRouter(prefix="/trash", tags=["Trash"])


class TrashKind(str, enum.Enum):
    BOOKINGS = "bookings"
    SHIPMENTS = "shipments"


RESPONSES = {
    TrashKind.BOOKINGS: (BookingResponse, BookingListResponse),
    TrashKind.SHIPMENTS: (ShipmentResponse, ShipmentListResponse),
}


def get_trash_service(
    kind: TrashKind,
    bookings: BookingService = Depends(get_booking_service),
    shipments: ShipmentService = Depends(get_shipment_service),
):
    return bookings if kind == TrashKind.BOOKINGS else shipments


@router.get("/{kind}")
async def list_trash(
    kind: TrashKind,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    actor: Actor = Depends(get_current_actor),
    service=Depends(get_trash_service),
):
    """Trashed documents, most recently deleted first."""
    response_model, list_model = RESPONSES[kind]
    items, total = await service.list_trash(actor, skip=skip, limit=limit)
    return list_model(
        items=[render_for(actor, item, response_model) for item in items],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.post("/{kind}/{entity_id}/restore")
async def restore(
    kind: TrashKind,
    entity_id: int,
    actor: Actor = Depends(get_current_actor),
    service=Depends(get_trash_service),
):
    response_model, _ = RESPONSES[kind]
    return render_for(actor, await service.restore(entity_id, actor), response_model)


@router.delete("/{kind}/{entity_id}", status_code=status.HTTP_204_NO_CONTENT)
async def hard_delete(
    kind: TrashKind,
    entity_id: int,
    confirm: bool = Query(False, description="Must be true; deletion is permanent"),
    actor: Actor = Depends(get_current_actor),
    service=Depends(get_trash_service),
):
    """Permanently delete one document, trashed or not (admin only)."""
    await service.hard_delete(entity_id, actor, confirm=confirm)


@router.post("/{kind}/empty", response_model=EmptyTrashResponse)
async def empty_trash(
    kind: TrashKind,
    body: HardDeleteRequest,
    actor: Actor = Depends(get_current_actor),
    service=Depends(get_trash_service),
):
    """Permanently delete everything in the trash (admin only)."""
    removed = await service.empty_trash(actor, confirm=body.confirm)
    return EmptyTrashResponse(removed=removed)
