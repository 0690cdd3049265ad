"""
Status Transition Engine.

Validates and applies status changes for any lifecycle document (Booking,
Shipment). Flow of request_transition():

1. Validate (role, target status, trash, transition table). Nothing is
   mutated until every check has passed.
2. Issue a tracking number when confirming with generate_tracking_number
   and none exists yet; its timeline entry goes before the status entry.
3. Append the status_changed entry, set status and status date, write
   the audit row.
4. Commit as one unit. The version column turns a concurrent write into
   ConcurrentModificationError instead of a lost update.
5. Enqueue a notification. Failures are logged, never raised.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from backend.app.core.exceptions import (
    ConcurrentModificationError,
    InsufficientPermissionsError,
    InvalidTransitionError,
    ResourceNotFoundError,
)
from backend.app.domain.lifecycle.policy import Operation, authorize
from backend.app.domain.lifecycle.timeline import TimelineEvent, append_entry, build_entry
from backend.app.models.enums import UserRole
from backend.app.models.lifecycle import utcnow
from backend.app.services.audit import AuditAction, record_event
from backend.app.services.identifiers import TrackingNumberGenerator, commit_with_unique_number
from backend.app.services.notifications.dispatcher import NotificationRequest
from backend.app.services.notifications.templates import Template

logger = logging.getLogger(__name__)


@dataclass
class TransitionResult:
    entity: object
    previous_status: object
    status: object
    tracking_number_issued: Optional[str] = None


class StatusTransitionEngine:
    
    def __init__(self, tracking_numbers: Optional[TrackingNumberGenerator] = None, notifier=None):
        self.tracking_numbers = tracking_numbers or TrackingNumberGenerator()
        self.notifier = notifier
    
    def validate(self, entity, target, actor):
        """
        Check a transition without touching the entity.
        
        Returns:
            The parsed target status
        """
        authorize(actor, Operation.TRANSITION)
        lifecycle = entity.lifecycle
        target_status = lifecycle.coerce(target)
        if target_status == lifecycle.confirmed:
            authorize(actor, Operation.CONFIRM)
        
        if entity.is_deleted:
            raise ResourceNotFoundError(entity.label, entity.id)
        
        current = entity.status
        if not lifecycle.can_transition(current, target_status):
            raise InvalidTransitionError(
                current=current.value,
                requested=target_status.value,
                allowed=[s.value for s in lifecycle.allowed_targets(current)],
            )
        return target_status
    
    async def apply_transition(
        self,
        db: AsyncSession,
        entity,
        target,
        actor,
        location: Optional[str] = None,
        description: Optional[str] = None,
        generate_tracking_number: bool = False,
    ) -> TransitionResult:
        """Validate and mutate the entity in the session. Does not commit."""
        target_status = self.validate(entity, target, actor)
        lifecycle = entity.lifecycle
        previous = entity.status
        now = utcnow()
        issued = None
        
        if generate_tracking_number and target_status == lifecycle.confirmed and not entity.tracking_number:
            issued = await self.tracking_numbers.generate(db)
            entity.tracking_number = issued
            append_entry(entity, build_entry(
                TimelineEvent.TRACKING_NUMBER_ASSIGNED,
                previous,
                actor.user_id,
                description=f"Tracking number {issued} assigned",
                metadata={"tracking_number": issued},
                timestamp=now,
            ))
        
        append_entry(entity, build_entry(
            TimelineEvent.STATUS_CHANGED,
            target_status,
            actor.user_id,
            description=description or f"Status changed from {previous.value} to {target_status.value}",
            location=location,
            metadata={"from": previous.value},
            timestamp=now,
        ))
        
        entity.status = target_status
        date_field = lifecycle.date_field_for(target_status)
        if date_field and getattr(entity, date_field) is None:
            setattr(entity, date_field, now)
        if target_status == lifecycle.cancelled:
            entity.cancelled_by = actor.user_id
            entity.cancelled_at = now
        entity.updated_by = actor.user_id
        
        record_event(
            db,
            AuditAction.for_entity(entity.label, AuditAction.STATUS_CHANGED),
            actor_id=actor.user_id,
            actor_username=actor.username,
            entity=entity,
            metadata={
                "from": previous.value,
                "to": target_status.value,
                "tracking_number": issued,
            },
        )
        
        return TransitionResult(entity, previous, target_status, issued)
    
    async def request_transition(
        self,
        db: AsyncSession,
        entity,
        target,
        actor,
        location: Optional[str] = None,
        description: Optional[str] = None,
        generate_tracking_number: bool = False,
    ) -> TransitionResult:
        """Validate, apply and commit a transition, then notify."""
        self.validate(entity, target, actor)
        
        async def apply():
            return await self.apply_transition(
                db, entity, target, actor,
                location=location,
                description=description,
                generate_tracking_number=generate_tracking_number,
            )
        
        result = await self.commit(db, entity, apply)
        
        logger.info(
            "%s %s: %s -> %s by user %s",
            entity.label, entity.number, result.previous_status.value, result.status.value, actor.user_id
        )
        self.notify_transition(result, location=location)
        return result
    
    async def commit(self, db: AsyncSession, entity, apply, reload=None, identifier_type: str = "tracking number"):
        """Commit a unit of work touching entity, mapping version conflicts."""
        if reload is None:
            async def reload():
                await db.refresh(entity)
        entity_id = entity.id
        try:
            return await commit_with_unique_number(db, apply, identifier_type, reload=reload)
        except StaleDataError:
            await db.rollback()
            raise ConcurrentModificationError(entity.label, entity_id)
    
    def validate_cancel(self, entity, actor) -> None:
        authorize(actor, Operation.CANCEL)
        lifecycle = entity.lifecycle
        
        if entity.is_deleted:
            raise ResourceNotFoundError(entity.label, entity.id)
        
        if actor.role == UserRole.CUSTOMER:
            if entity.customer_id != actor.user_id:
                raise InsufficientPermissionsError(f"You can only cancel your own {entity.label.lower()}s")
            if entity.status != lifecycle.initial:
                raise InsufficientPermissionsError(
                    f"{entity.label} can no longer be cancelled by the customer",
                    details={"status": entity.status.value}
                )
        
        current = entity.status
        if not lifecycle.can_transition(current, lifecycle.cancelled):
            raise InvalidTransitionError(
                current=current.value,
                requested=lifecycle.cancelled.value,
                allowed=[s.value for s in lifecycle.allowed_targets(current)],
            )
    
    async def cancel(self, db: AsyncSession, entity, actor, reason: Optional[str] = None):
        """
        Cancel a booking or shipment.
        
        Staff may cancel wherever the table allows it. Customers may cancel
        only their own documents, and only before confirmation. Appends a
        single "cancelled" timeline entry.
        """
        self.validate_cancel(entity, actor)
        lifecycle = entity.lifecycle
        
        async def apply():
            self.validate_cancel(entity, actor)
            now = utcnow()
            previous = entity.status
            append_entry(entity, build_entry(
                TimelineEvent.CANCELLED,
                lifecycle.cancelled,
                actor.user_id,
                description=reason or f"{entity.label} cancelled",
                metadata={"from": previous.value},
                timestamp=now,
            ))
            entity.status = lifecycle.cancelled
            entity.cancelled_by = actor.user_id
            entity.cancelled_at = now
            entity.cancellation_reason = reason
            entity.updated_by = actor.user_id
            record_event(
                db,
                AuditAction.for_entity(entity.label, AuditAction.CANCELLED),
                actor_id=actor.user_id,
                actor_username=actor.username,
                entity=entity,
                metadata={"from": previous.value, "reason": reason},
            )
            return TransitionResult(entity, previous, lifecycle.cancelled)
        
        result = await self.commit(db, entity, apply)
        logger.info("%s %s cancelled by user %s", entity.label, entity.number, actor.user_id)
        self.notify(NotificationRequest(
            template=Template.BOOKING_CANCELLED,
            context={
                "entity": entity.label,
                "number": entity.number,
                "reason": reason,
            },
            user_ids=(entity.customer_id,),
        ))
        return result
    
    def notify_transition(self, result: TransitionResult, location: Optional[str] = None) -> None:
        entity = result.entity
        lifecycle = entity.lifecycle
        if result.status == lifecycle.confirmed:
            template = Template.BOOKING_CONFIRMED
        else:
            template = Template.TRACKING_UPDATE
        self.notify(NotificationRequest(
            template=template,
            context={
                "entity": entity.label,
                "number": entity.number,
                "old_status": result.previous_status.value,
                "new_status": result.status.value,
                "tracking_number": entity.tracking_number,
                "location": location,
            },
            user_ids=(entity.customer_id,),
        ))
    
    def notify(self, request: NotificationRequest) -> None:
        """Best-effort enqueue; the business change is already committed."""
        if self.notifier is None:
            return
        try:
            self.notifier.enqueue(request)
        except Exception:
            logger.exception("Could not enqueue notification %s", request.template)
