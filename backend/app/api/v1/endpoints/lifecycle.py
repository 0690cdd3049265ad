"""
Shared Booking / Shipment endpoints.

build_lifecycle_router() wires the same set of routes for both document
types; bookings.py and shipments.py add their create endpoints and
anything type-specific.
"""

from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query

from backend.app.core.guards import Actor, get_current_actor
from backend.app.models.lifecycle_enums import ShipmentCategory
from backend.app.schemas.lifecycle import (
    AssignRequest,
    CancelRequest,
    ChargeCreate,
    DiscountUpdate,
    NoteCreate,
    SoftDeleteRequest,
    StatisticsResponse,
    TransitionRequest,
)
from backend.app.services.lifecycle_service import ListQuery


STAFF_ONLY_FIELDS = {"internal_notes": None, "assignment_history": None}


def render_for(actor: Actor, entity, response_model):
    """Staff see internal notes and assignment history; customers don't."""
    rendered = response_model.model_validate(entity)
    if actor.is_staff:
        return rendered
    return rendered.model_copy(update=STAFF_ONLY_FIELDS)


def build_lifecycle_router(
    prefix: str,
    tag: str,
    service_dependency,
    response_model,
    list_response_model,
    cargo_update_model,
) -> APIRouter:
    router = APIRouter(prefix=prefix, tags=[tag])

    def render(actor, entity):
        return render_for(actor, entity, response_model)

    @router.get("", response_model=list_response_model)
    async def list_documents(
        status: Optional[str] = Query(None, description="Status value or name"),
        search: Optional[str] = Query(None, description="Matches number, tracking number, origin or destination"),
        shipment_category: Optional[ShipmentCategory] = Query(None),
        origin: Optional[str] = Query(None),
        destination: Optional[str] = Query(None),
        created_from: Optional[datetime] = Query(None),
        created_to: Optional[datetime] = Query(None),
        min_weight: Optional[float] = Query(None, ge=0),
        max_weight: Optional[float] = Query(None, ge=0),
        customer_id: Optional[int] = Query(None),
        assigned_to: Optional[int] = Query(None),
        sort: Optional[str] = Query(None, description="Column name, prefix with '-' for descending"),
        skip: int = Query(0, ge=0),
        limit: int = Query(50, ge=1, le=200),
        actor: Actor = Depends(get_current_actor),
        service=Depends(service_dependency),
    ):
        query = ListQuery(
            status=status,
            search=search,
            shipment_category=shipment_category,
            origin=origin,
            destination=destination,
            created_from=created_from,
            created_to=created_to,
            min_weight=min_weight,
            max_weight=max_weight,
            customer_id=customer_id,
            assigned_to=assigned_to,
            sort=sort,
            skip=skip,
            limit=limit,
        )
        items, total = await service.list_documents(query, actor)
        return list_response_model(items=[render(actor, item) for item in items], total=total, skip=skip, limit=limit)

    @router.get("/statistics", response_model=StatisticsResponse)
    async def statistics(
        actor: Actor = Depends(get_current_actor),
        service=Depends(service_dependency),
    ):
        return await service.statistics(actor)

    @router.get("/{entity_id}", response_model=response_model)
    async def get_document(
        entity_id: int,
        actor: Actor = Depends(get_current_actor),
        service=Depends(service_dependency),
    ):
        return render(actor, await service.get(entity_id, actor))

    @router.post("/{entity_id}/status", response_model=response_model)
    async def change_status(
        entity_id: int,
        body: TransitionRequest,
        actor: Actor = Depends(get_current_actor),
        service=Depends(service_dependency),
    ):
        entity = await service.transition(
            entity_id,
            body.status,
            actor,
            location=body.location,
            description=body.description,
            generate_tracking_number=body.generate_tracking_number,
        )
        return render(actor, entity)

    @router.post("/{entity_id}/cancel", response_model=response_model)
    async def cancel(
        entity_id: int,
        body: CancelRequest,
        actor: Actor = Depends(get_current_actor),
        service=Depends(service_dependency),
    ):
        return render(actor, await service.cancel(entity_id, actor, reason=body.reason))

    @router.put("/{entity_id}/cargo", response_model=response_model)
    async def update_cargo(
        entity_id: int,
        body: cargo_update_model,
        actor: Actor = Depends(get_current_actor),
        service=Depends(service_dependency),
    ):
        items = [item.model_dump(mode="json", exclude_none=True) for item in body.items]
        return render(actor, await service.update_cargo(entity_id, items, actor))

    @router.put("/{entity_id}/discount", response_model=response_model)
    async def apply_discount(
        entity_id: int,
        body: DiscountUpdate,
        actor: Actor = Depends(get_current_actor),
        service=Depends(service_dependency),
    ):
        return await service.apply_discount(entity_id, body.discount, actor)

    @router.post("/{entity_id}/charges", response_model=response_model)
    async def add_charge(
        entity_id: int,
        body: ChargeCreate,
        actor: Actor = Depends(get_current_actor),
        service=Depends(service_dependency),
    ):
        return await service.add_charge(entity_id, body.description, body.amount, actor)

    @router.post("/{entity_id}/notes", response_model=response_model)
    async def add_note(
        entity_id: int,
        body: NoteCreate,
        actor: Actor = Depends(get_current_actor),
        service=Depends(service_dependency),
    ):
        return await service.add_note(entity_id, body.text, actor)

    @router.post("/{entity_id}/assign", response_model=response_model)
    async def assign(
        entity_id: int,
        body: AssignRequest,
        actor: Actor = Depends(get_current_actor),
        service=Depends(service_dependency),
    ):
        return await service.assign(entity_id, body.user_id, actor)

    @router.delete("/{entity_id}", response_model=response_model)
    async def soft_delete(
        entity_id: int,
        body: Optional[SoftDeleteRequest] = None,
        actor: Actor = Depends(get_current_actor),
        service=Depends(service_dependency),
    ):
        """Move to the trash. Permanent deletion lives under /trash."""
        reason = body.reason if body else None
        return render(actor, await service.soft_delete(entity_id, actor, reason=reason))

    return router
