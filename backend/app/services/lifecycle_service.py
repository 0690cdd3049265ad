"""
Booking and Shipment services.

Thin orchestration over the repository, the transition engine, the trash
operations and the charge calculator. One service instance is built per
request around that request's session.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import settings
from backend.app.core.exceptions import (
    InsufficientPermissionsError,
    ResourceNotFoundError,
    ValidationFailedError,
)
from backend.app.core.guards import OwnershipGuard
from backend.app.db.filters import Contains, DateRange, Eq, Range, Sort
from backend.app.db.repository import LifecycleRepository, commit_or_conflict
from backend.app.domain.billing.charge_calculator import (
    ChargeBreakdown,
    ChargeRequest,
    calculate_charges,
    request_for,
)
from backend.app.domain.lifecycle.cargo import replace_cargo
from backend.app.domain.lifecycle.engine import StatusTransitionEngine
from backend.app.domain.lifecycle.policy import Operation, authorize
from backend.app.domain.lifecycle.timeline import TimelineEvent, append_entry, build_entry
from backend.app.domain.lifecycle.trash import TrashService
from backend.app.models.booking import Booking
from backend.app.models.enums import UserRole
from backend.app.models.lifecycle import utcnow
from backend.app.models.shipment import Shipment
from backend.app.models.user import User
from backend.app.services.audit import AuditAction, record_event
from backend.app.services.cache import TTLCache
from backend.app.services.identifiers import (
    commit_with_unique_number,
    generate_booking_number,
    generate_shipment_number,
)
from backend.app.services.notifications.dispatcher import NotificationRequest
from backend.app.services.notifications.templates import Template

logger = logging.getLogger(__name__)

ASSIGNABLE_ROLES = (UserRole.OPERATIONS, UserRole.WAREHOUSE)
SEARCH_FIELDS = ("number", "tracking_number", "origin", "destination")


@dataclass
class ListQuery:
    """Query-string filters for the list endpoints."""
    status: Optional[str] = None
    search: Optional[str] = None
    shipment_category: Optional[str] = None
    origin: Optional[str] = None
    destination: Optional[str] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None
    min_weight: Optional[float] = None
    max_weight: Optional[float] = None
    customer_id: Optional[int] = None
    assigned_to: Optional[int] = None
    sort: Optional[str] = None
    skip: int = 0
    limit: int = 50

    def filters(self, lifecycle) -> list:
        filters = []
        if self.status:
            filters.append(Eq("status", lifecycle.coerce(self.status)))
        if self.search:
            filters.append(Contains(SEARCH_FIELDS, self.search))
        if self.shipment_category:
            filters.append(Eq("shipment_category", self.shipment_category))
        if self.origin:
            filters.append(Contains(("origin",), self.origin))
        if self.destination:
            filters.append(Contains(("destination",), self.destination))
        if self.created_from or self.created_to:
            filters.append(DateRange("created_at", self.created_from, self.created_to))
        if self.min_weight is not None or self.max_weight is not None:
            filters.append(Range("total_weight", self.min_weight, self.max_weight))
        if self.customer_id is not None:
            filters.append(Eq("customer_id", self.customer_id))
        if self.assigned_to is not None:
            filters.append(Eq("assigned_to", self.assigned_to))
        return filters


def reprice(entity) -> ChargeBreakdown:
    """Recompute charge_breakdown and quoted_amount from the entity's current fields."""
    breakdown = calculate_charges(request_for(entity, settings.default_currency))
    entity.charge_breakdown = breakdown.to_dict()
    entity.quoted_amount = quoted_total(entity)
    return breakdown


def quoted_total(entity) -> Optional[float]:
    """Calculated total plus manually added charges."""
    if not entity.charge_breakdown:
        return None
    extra = sum(float(c["amount"]) for c in entity.additional_charges or [])
    return round(entity.charge_breakdown["total_amount"] + extra, 2)


def preview_quote(data) -> ChargeBreakdown:
    """Price a hypothetical shipment without storing anything."""
    return calculate_charges(ChargeRequest(
        currency=settings.default_currency,
        **data.model_dump(),
    ))


class LifecycleService:
    """Operations shared by bookings and shipments."""

    model = None

    def __init__(self, db: AsyncSession, engine: StatusTransitionEngine, cache: Optional[TTLCache] = None):
        self.db = db
        self.engine = engine
        self.cache = cache
        self.repository = LifecycleRepository(self.model, db)
        self.ownership = OwnershipGuard()

    @property
    def _stats_key(self) -> str:
        return f"stats:{self.model.label}"

    def _invalidate(self) -> None:
        if self.cache is not None:
            self.cache.invalidate(self._stats_key)

    async def _customer_for(self, requested_id: Optional[int], actor) -> int:
        """Resolve which customer a new document belongs to."""
        if actor.role == UserRole.CUSTOMER:
            if requested_id is not None and requested_id != actor.user_id:
                raise InsufficientPermissionsError("Customers can only create documents for themselves")
            return actor.user_id

        if requested_id is None:
            raise ValidationFailedError("customer_id is required when staff create a document", field="customer_id")
        result = await self.db.execute(
            select(User).where(User.id == requested_id, User.is_active == True)
        )
        customer = result.scalar_one_or_none()
        if customer is None or customer.role != UserRole.CUSTOMER:
            raise ValidationFailedError(f"No active customer with id {requested_id}", field="customer_id")
        return requested_id

    def _new_entity(self, data, actor, customer_id: int, cargo: List[Dict[str, Any]], **fields):
        lifecycle = self.model.lifecycle
        now = utcnow()
        entity = self.model(
            customer_id=customer_id,
            status=lifecycle.initial,
            shipment_category=data.shipment_category,
            product_category=data.product_category,
            package_category=data.package_category,
            origin=data.origin.strip(),
            destination=data.destination.strip(),
            pickup_required=data.pickup_required,
            delivery_required=data.delivery_required,
            declared_value=data.declared_value,
            discount=0.0,
            currency=settings.default_currency,
            additional_charges=[],
            assignment_history=[],
            internal_notes=[],
            timeline=[],
            is_deleted=False,
            created_by=actor.user_id,
            updated_by=actor.user_id,
            created_at=now,
            updated_at=now,
            **fields,
        )
        replace_cargo(entity, cargo)
        reprice(entity)
        append_entry(entity, build_entry(
            TimelineEvent.CREATED,
            lifecycle.initial,
            actor.user_id,
            description=f"{self.model.label} created",
            location=entity.origin,
            timestamp=now,
        ))
        return entity

    async def _insert(self, build, number_for, actor):
        """Insert a freshly built entity under a newly derived number, retrying on clashes."""
        async def apply():
            entity = build()
            entity.number = await number_for(entity)
            self.repository.add(entity)
            await self.db.flush()
            record_event(
                self.db,
                AuditAction.for_entity(self.model.label, AuditAction.CREATED),
                actor_id=actor.user_id,
                actor_username=actor.username,
                entity=entity,
                metadata={"quoted_amount": entity.quoted_amount},
            )
            return entity

        entity = await commit_with_unique_number(self.db, apply, f"{self.model.label.lower()} number")
        self._invalidate()
        logger.info("%s %s created by user %s", self.model.label, entity.number, actor.user_id)
        return entity

    async def get(self, entity_id: int, actor, deleted: Optional[bool] = False):
        authorize(actor, Operation.VIEW)
        entity = await self.repository.get(entity_id, deleted=deleted)
        self.ownership.enforce(entity.customer_id, actor, self.model.label.lower())
        return entity

    async def get_by_tracking_number(self, tracking_number: str):
        """Public lookup; trashed documents are not found."""
        entity = await self.repository.find_one([Eq("tracking_number", tracking_number.strip().upper())])
        if entity is None:
            raise ResourceNotFoundError(self.model.label, tracking_number)
        return entity

    async def list_documents(self, query: ListQuery, actor) -> Tuple[List[Any], int]:
        authorize(actor, Operation.VIEW)
        owner = self.ownership.filter_by_ownership(actor)
        if owner is not None:
            query.customer_id = owner

        filters = query.filters(self.model.lifecycle)
        items = await self.repository.find_many(
            filters,
            sort=Sort.parse(query.sort),
            skip=query.skip,
            limit=query.limit,
        )
        total = await self.repository.count(filters)
        return items, total

    async def transition(
        self,
        entity_id: int,
        target,
        actor,
        location: Optional[str] = None,
        description: Optional[str] = None,
        generate_tracking_number: bool = False,
    ):
        entity = await self.get(entity_id, actor)
        await self.engine.request_transition(
            self.db, entity, target, actor,
            location=location,
            description=description,
            generate_tracking_number=generate_tracking_number,
        )
        self._invalidate()
        return entity

    async def cancel(self, entity_id: int, actor, reason: Optional[str] = None):
        entity = await self.get(entity_id, actor)
        await self.engine.cancel(self.db, entity, actor, reason=reason)
        self._invalidate()
        return entity

    async def update_cargo(self, entity_id: int, items: List[Dict[str, Any]], actor):
        """
        Replace the cargo list and its aggregates.

        Customers may edit only before confirmation. The quote is
        recalculated while the document is still in its initial status.
        """
        authorize(actor, Operation.UPDATE_CARGO)
        entity = await self.get(entity_id, actor)
        lifecycle = entity.lifecycle

        if lifecycle.is_terminal(entity.status):
            raise ValidationFailedError(
                f"Cargo of a {entity.status.value} {entity.label.lower()} cannot change", field="status"
            )
        if actor.role == UserRole.CUSTOMER and entity.status != lifecycle.initial:
            raise InsufficientPermissionsError(
                f"{entity.label} cargo can no longer be edited by the customer",
                details={"status": entity.status.value}
            )

        totals = replace_cargo(entity, items)
        if entity.status == lifecycle.initial:
            reprice(entity)
        entity.updated_by = actor.user_id

        record_event(
            self.db,
            AuditAction.for_entity(entity.label, AuditAction.CARGO_UPDATED),
            actor_id=actor.user_id,
            actor_username=actor.username,
            entity=entity,
            metadata={"count": totals.count, "weight": totals.weight, "volume": totals.volume},
        )
        await commit_or_conflict(self.db, entity)
        return entity

    async def apply_discount(self, entity_id: int, discount: float, actor):
        """Set the discount, requote and tell the customer."""
        authorize(actor, Operation.ADD_CHARGE)
        entity = await self.get(entity_id, actor)
        if entity.lifecycle.is_terminal(entity.status):
            raise ValidationFailedError(f"Cannot requote a {entity.status.value} {entity.label.lower()}", field="status")

        entity.discount = discount
        breakdown = reprice(entity)
        entity.updated_by = actor.user_id
        record_event(
            self.db,
            AuditAction.for_entity(entity.label, AuditAction.CHARGE_ADDED),
            actor_id=actor.user_id,
            actor_username=actor.username,
            entity=entity,
            metadata={"discount": discount, "total_amount": breakdown.total_amount},
        )
        await commit_or_conflict(self.db, entity)

        self.engine.notify(NotificationRequest(
            template=Template.PRICE_QUOTE_READY,
            context={
                "number": entity.number,
                "amount": entity.quoted_amount,
                "currency": entity.currency,
            },
            user_ids=(entity.customer_id,),
        ))
        return entity

    async def add_charge(self, entity_id: int, description: str, amount: float, actor):
        authorize(actor, Operation.ADD_CHARGE)
        entity = await self.get(entity_id, actor)
        if amount == 0:
            raise ValidationFailedError("Charge amount must not be zero", field="amount")

        entity.additional_charges = list(entity.additional_charges or []) + [{
            "description": description,
            "amount": round(float(amount), 2),
            "added_by": actor.user_id,
            "added_at": utcnow().isoformat(),
        }]
        if not entity.charge_breakdown:
            reprice(entity)
        else:
            entity.quoted_amount = quoted_total(entity)
        entity.updated_by = actor.user_id

        record_event(
            self.db,
            AuditAction.for_entity(entity.label, AuditAction.CHARGE_ADDED),
            actor_id=actor.user_id,
            actor_username=actor.username,
            entity=entity,
            metadata={"description": description, "amount": amount},
        )
        await commit_or_conflict(self.db, entity)
        return entity

    async def add_note(self, entity_id: int, text: str, actor):
        """Staff-only note; never shown to customers."""
        authorize(actor, Operation.ADD_NOTE)
        entity = await self.get(entity_id, actor)
        entity.internal_notes = list(entity.internal_notes or []) + [{
            "text": text,
            "author_id": actor.user_id,
            "created_at": utcnow().isoformat(),
        }]
        entity.updated_by = actor.user_id
        record_event(
            self.db,
            AuditAction.for_entity(entity.label, AuditAction.NOTE_ADDED),
            actor_id=actor.user_id,
            actor_username=actor.username,
            entity=entity,
        )
        await commit_or_conflict(self.db, entity)
        return entity

    async def assign(self, entity_id: int, assignee_id: int, actor):
        authorize(actor, Operation.ASSIGN)
        entity = await self.get(entity_id, actor)

        result = await self.db.execute(select(User).where(User.id == assignee_id))
        assignee = result.scalar_one_or_none()
        if assignee is None or not assignee.is_active or assignee.role not in ASSIGNABLE_ROLES:
            raise ValidationFailedError(
                f"User {assignee_id} is not active operations or warehouse staff", field="user_id"
            )

        previous = entity.assigned_to
        entity.assigned_to = assignee_id
        entity.assignment_history = list(entity.assignment_history or []) + [{
            "from": previous,
            "to": assignee_id,
            "assigned_by": actor.user_id,
            "assigned_at": utcnow().isoformat(),
        }]
        entity.updated_by = actor.user_id
        record_event(
            self.db,
            AuditAction.for_entity(entity.label, AuditAction.ASSIGNED),
            actor_id=actor.user_id,
            actor_username=actor.username,
            entity=entity,
            metadata={"from": previous, "to": assignee_id},
        )
        await commit_or_conflict(self.db, entity)
        logger.info("%s %s assigned to user %s", entity.label, entity.number, assignee_id)
        return entity

    # Trash

    async def soft_delete(self, entity_id: int, actor, reason: Optional[str] = None):
        entity = await self.repository.get(entity_id)
        await TrashService.soft_delete(self.db, entity, actor, reason=reason)
        self._invalidate()
        return entity

    async def restore(self, entity_id: int, actor):
        entity = await self.repository.get(entity_id, deleted=None)
        await TrashService.restore(self.db, entity, actor)
        self._invalidate()
        return entity

    async def hard_delete(self, entity_id: int, actor, confirm: bool = False) -> None:
        entity = await self.repository.get(entity_id, deleted=None)
        await TrashService.hard_delete(self.db, entity, actor, confirm=confirm)
        self._invalidate()

    async def empty_trash(self, actor, confirm: bool = False) -> int:
        removed = await TrashService.empty_trash(self.db, self.model, actor, confirm=confirm)
        self._invalidate()
        return removed

    async def list_trash(self, actor, skip: int = 0, limit: int = 50) -> Tuple[List[Any], int]:
        authorize(actor, Operation.VIEW_TRASH)
        items = await self.repository.find_many(
            sort=Sort("deleted_at"), skip=skip, limit=limit, deleted=True
        )
        total = await self.repository.count(deleted=True)
        return items, total

    async def statistics(self, actor) -> Dict[str, Any]:
        """Counts per status, excluding the trash. Cached for a short TTL."""
        authorize(actor, Operation.STATISTICS)
        if self.cache is not None:
            cached = self.cache.get(self._stats_key)
            if cached is not None:
                return cached

        counts = await self.repository.status_counts()
        by_status = {status.value: 0 for status in self.model.lifecycle.status_enum}
        for status, count in counts.items():
            by_status[self.model.lifecycle.coerce(status).value] = count

        stats = {
            "total": sum(by_status.values()),
            "by_status": by_status,
            "in_trash": await self.repository.count(deleted=True),
        }
        if self.cache is not None:
            self.cache.set(self._stats_key, stats, settings.statistics_cache_ttl_seconds)
        return stats


class BookingService(LifecycleService):
    model = Booking

    async def create(self, data, actor) -> Booking:
        """
        Create a booking in its initial status with a calculated quote.

        The customer gets a booking-received message and operations staff
        a new-booking notification.
        """
        authorize(actor, Operation.CREATE)
        customer_id = await self._customer_for(data.customer_id, actor)
        cargo = [item.model_dump(mode="json", exclude_none=True) for item in data.cargo_details]

        def build():
            return self._new_entity(
                data, actor, customer_id, cargo,
                shipping_mode=data.shipping_mode,
                special_instructions=data.special_instructions,
                requested_pickup_date=data.requested_pickup_date,
            )

        async def number_for(booking):
            return await generate_booking_number(self.db, booking.shipment_category)

        booking = await self._insert(build, number_for, actor)

        context = {
            "number": booking.number,
            "customer_id": booking.customer_id,
            "origin": booking.origin,
            "destination": booking.destination,
            "shipment_category": booking.shipment_category.value,
            "amount": booking.quoted_amount,
            "currency": booking.currency,
        }
        self.engine.notify(NotificationRequest(
            template=Template.BOOKING_RECEIVED,
            context=context,
            user_ids=(booking.customer_id,),
        ))
        self.engine.notify(NotificationRequest(
            template=Template.NEW_BOOKING,
            context=context,
            roles=(UserRole.ADMIN, UserRole.OPERATIONS),
        ))
        return booking


class ShipmentService(LifecycleService):
    model = Shipment

    async def create(self, data, actor) -> Shipment:
        authorize(actor, Operation.CREATE)
        customer_id = await self._customer_for(data.customer_id, actor)
        if data.booking_id is not None:
            booking = await LifecycleRepository(Booking, self.db).get(data.booking_id)
            if booking.customer_id != customer_id:
                raise ValidationFailedError(
                    f"Booking {booking.number} belongs to another customer", field="booking_id"
                )
        packages = [item.model_dump(mode="json") for item in data.packages]

        def build():
            return self._new_entity(
                data, actor, customer_id, packages,
                booking_id=data.booking_id,
                container_id=data.container_id,
                vessel_flight_number=data.vessel_flight_number,
            )

        async def number_for(shipment):
            return await generate_shipment_number(self.db, shipment.shipment_category)

        return await self._insert(build, number_for, actor)
