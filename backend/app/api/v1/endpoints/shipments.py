"""
Shipment API endpoints.
"""

from fastapi import Depends, status

from backend.app.api.v1.deps import get_shipment_service
from backend.app.api.v1.endpoints.lifecycle import build_lifecycle_router, render_for
from backend.app.core.guards import Actor, get_current_actor
from backend.app.schemas.lifecycle import (
    ShipmentCargoUpdate,
    ShipmentCreate,
    ShipmentListResponse,
    ShipmentResponse,
)
from backend.app.services.lifecycle_service import ShipmentService

router = build_lifecycle_router(
    prefix="/shipments",
    tag="Shipments",
    service_dependency=get_shipment_service,
    response_model=ShipmentResponse,
    list_response_model=ShipmentListResponse,
    cargo_update_model=ShipmentCargoUpdate,
)


@router.post("", response_model=ShipmentResponse, status_code=status.HTTP_201_CREATED)
async def create_shipment(
    shipment_data: ShipmentCreate,
    actor: Actor = Depends(get_current_actor),
    service: ShipmentService = Depends(get_shipment_service),
):
    """Create a shipment, optionally linked to an existing booking."""
    shipment = await service.create(shipment_data, actor)
    return render_for(actor, shipment, ShipmentResponse)
