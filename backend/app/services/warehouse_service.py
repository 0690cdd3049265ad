"""
Warehouse Service.

Receiving cargo and consolidating received bookings. Each operation
writes its record and moves the bookings' status in one commit.
"""

import logging
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import ValidationFailedError
from backend.app.db.filters import In
from backend.app.db.repository import LifecycleRepository
from backend.app.domain.lifecycle.engine import StatusTransitionEngine
from backend.app.domain.lifecycle.policy import Operation, authorize
from backend.app.models.booking import Booking
from backend.app.models.consolidation import Consolidation
from backend.app.models.lifecycle import utcnow
from backend.app.models.lifecycle_enums import BookingStatus
from backend.app.models.warehouse_receipt import WarehouseReceipt
from backend.app.services.audit import AuditAction, record_event
from backend.app.services.identifiers import generate_consolidation_number, generate_receipt_number

logger = logging.getLogger(__name__)


def _route(booking):
    return (
        booking.shipment_category,
        booking.origin.strip().upper(),
        booking.destination.strip().upper(),
    )


class WarehouseService:

    @staticmethod
    async def receive(
        db: AsyncSession,
        engine: StatusTransitionEngine,
        booking_id: int,
        actor,
        received_cartons: int,
        received_weight: Optional[float] = None,
        received_volume: Optional[float] = None,
        warehouse_location: Optional[str] = None,
        condition_notes: Optional[str] = None,
    ) -> WarehouseReceipt:
        """
        Record the arrival of a booking's cargo.

        Writes an RCP- receipt and moves the booking to
        RECEIVED_AT_WAREHOUSE in the same commit.
        """
        authorize(actor, Operation.RECEIVE)
        booking = await LifecycleRepository(Booking, db).get(booking_id)
        target = BookingStatus.RECEIVED_AT_WAREHOUSE
        engine.validate(booking, target, actor)

        if received_cartons != booking.total_cartons:
            logger.warning(
                "Booking %s: received %d cartons, booked %d",
                booking.number, received_cartons, booking.total_cartons
            )

        receipt = None

        async def apply():
            nonlocal receipt
            receipt = WarehouseReceipt(
                receipt_number=await generate_receipt_number(db),
                booking_id=booking.id,
                warehouse_location=warehouse_location,
                received_cartons=received_cartons,
                received_weight=received_weight,
                received_volume=received_volume,
                condition_notes=condition_notes,
                received_by=actor.user_id,
                received_at=utcnow(),
            )
            db.add(receipt)
            result = await engine.apply_transition(
                db, booking, target, actor,
                location=warehouse_location,
                description=f"Cargo received at warehouse, receipt {receipt.receipt_number}",
            )
            record_event(
                db,
                AuditAction.CARGO_RECEIVED,
                actor_id=actor.user_id,
                actor_username=actor.username,
                entity=booking,
                metadata={
                    "receipt_number": receipt.receipt_number,
                    "received_cartons": received_cartons,
                    "booked_cartons": booking.total_cartons,
                },
            )
            return result

        result = await engine.commit(db, booking, apply, identifier_type="receipt number")
        logger.info("Booking %s received, receipt %s", booking.number, receipt.receipt_number)
        engine.notify_transition(result, location=warehouse_location)
        return receipt

    @staticmethod
    async def consolidate(
        db: AsyncSession,
        engine: StatusTransitionEngine,
        booking_ids: List[int],
        actor,
        container_id: Optional[str] = None,
    ) -> Consolidation:
        """
        Group received bookings that travel together.

        Needs at least two distinct bookings, all RECEIVED_AT_WAREHOUSE,
        with the same shipment category, origin and destination. Every
        booking moves to CONSOLIDATION_IN_PROGRESS or none does.
        """
        authorize(actor, Operation.CONSOLIDATE)
        ids = list(dict.fromkeys(booking_ids))
        if len(ids) < 2:
            raise ValidationFailedError("A consolidation needs at least two bookings", field="booking_ids")

        bookings = await LifecycleRepository(Booking, db).find_many([In("id", ids)], limit=None)
        found = {b.id for b in bookings}
        missing = [i for i in ids if i not in found]
        if missing:
            raise ValidationFailedError(f"Bookings not found: {missing}", field="booking_ids")

        routes = {_route(b) for b in bookings}
        if len(routes) > 1:
            raise ValidationFailedError(
                "Bookings must share shipment category, origin and destination",
                field="booking_ids"
            )

        target = BookingStatus.CONSOLIDATION_IN_PROGRESS
        for booking in bookings:
            if booking.status != BookingStatus.RECEIVED_AT_WAREHOUSE:
                raise ValidationFailedError(
                    f"Booking {booking.number} is '{booking.status.value}', not received at warehouse",
                    field="booking_ids"
                )
            engine.validate(booking, target, actor)

        consolidation = None

        async def apply():
            nonlocal consolidation
            first = bookings[0]
            consolidation = Consolidation(
                consolidation_number=await generate_consolidation_number(db),
                shipment_category=first.shipment_category,
                origin=first.origin,
                destination=first.destination,
                booking_ids=[b.id for b in bookings],
                total_weight=round(sum(b.total_weight for b in bookings), 3),
                total_volume=round(sum(b.total_volume for b in bookings), 3),
                container_id=container_id,
                created_by=actor.user_id,
                created_at=utcnow(),
            )
            db.add(consolidation)
            await db.flush()

            results = []
            for booking in bookings:
                results.append(await engine.apply_transition(
                    db, booking, target, actor,
                    description=f"Added to consolidation {consolidation.consolidation_number}",
                ))
                booking.consolidation_id = consolidation.id

            record_event(
                db,
                AuditAction.CONSOLIDATION_CREATED,
                actor_id=actor.user_id,
                actor_username=actor.username,
                metadata={
                    "consolidation_number": consolidation.consolidation_number,
                    "bookings": [b.number for b in bookings],
                },
            )
            return results

        async def reload():
            for booking in bookings:
                await db.refresh(booking)

        results = await engine.commit(db, bookings[0], apply, reload=reload, identifier_type="consolidation number")
        logger.info(
            "Consolidation %s created with %d bookings",
            consolidation.consolidation_number, len(bookings)
        )
        for result in results:
            engine.notify_transition(result)
        return consolidation
