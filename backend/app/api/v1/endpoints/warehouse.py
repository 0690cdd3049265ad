"""
Warehouse API endpoints.

Receiving cargo and building consolidations (warehouse and operations staff).
"""

from typing import List
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api.v1.deps import get_transition_engine
from backend.app.core.guards import Actor, require_actor
from backend.app.db.session import get_db
from backend.app.domain.lifecycle.engine import StatusTransitionEngine
from backend.app.models.enums import UserRole
from backend.app.models.warehouse_receipt import WarehouseReceipt
from backend.app.schemas.warehouse import (
    ConsolidationRequest,
    ConsolidationResponse,
    ReceiveCargoRequest,
    WarehouseReceiptResponse,
)
from backend.app.services.warehouse_service import WarehouseService

router = APIRouter(prefix="/warehouse", tags=["Warehouse"])

STAFF = [UserRole.ADMIN, UserRole.OPERATIONS, UserRole.WAREHOUSE]


@router.post("/receipts", response_model=WarehouseReceiptResponse, status_code=status.HTTP_201_CREATED)
async def receive_cargo(
    body: ReceiveCargoRequest,
    actor: Actor = Depends(require_actor(STAFF)),
    engine: StatusTransitionEngine = Depends(get_transition_engine),
    db: AsyncSession = Depends(get_db),
):
    """Record cargo arrival and mark the booking received at warehouse."""
    return await WarehouseService.receive(
        db,
        engine,
        body.booking_id,
        actor,
        received_cartons=body.received_cartons,
        received_weight=body.received_weight,
        received_volume=body.received_volume,
        warehouse_location=body.warehouse_location,
        condition_notes=body.condition_notes,
    )


@router.get("/receipts", response_model=List[WarehouseReceiptResponse])
async def list_receipts(
    booking_id: int = Query(...),
    actor: Actor = Depends(require_actor(STAFF)),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(WarehouseReceipt)
        .where(WarehouseReceipt.booking_id == booking_id)
        .order_by(WarehouseReceipt.received_at.desc())
    )
    return result.scalars().all()


@router.post("/consolidations", response_model=ConsolidationResponse, status_code=status.HTTP_201_CREATED)
async def consolidate(
    body: ConsolidationRequest,
    actor: Actor = Depends(require_actor(STAFF)),
    engine: StatusTransitionEngine = Depends(get_transition_engine),
    db: AsyncSession = Depends(get_db),
):
    """Group received bookings with the same category and route."""
    return await WarehouseService.consolidate(
        db, engine, body.booking_ids, actor, container_id=body.container_id
    )
