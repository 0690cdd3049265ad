"""
Invoice Service.

Issues one invoice per booking from its stored charge breakdown.
Issuing is idempotent: a second request returns the existing invoice.
"""

import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import settings
from backend.app.core.exceptions import ResourceNotFoundError, ValidationFailedError
from backend.app.core.guards import OwnershipGuard
from backend.app.db.repository import LifecycleRepository
from backend.app.domain.lifecycle.policy import Operation, authorize
from backend.app.models.booking import Booking
from backend.app.models.invoice import Invoice, InvoiceStatus
from backend.app.models.lifecycle import utcnow
from backend.app.models.lifecycle_enums import BookingStatus
from backend.app.services.audit import AuditAction, record_event
from backend.app.services.identifiers import commit_with_unique_number, generate_invoice_number
from backend.app.services.lifecycle_service import reprice
from backend.app.services.notifications.dispatcher import NotificationRequest
from backend.app.services.notifications.templates import Template

logger = logging.getLogger(__name__)

NOT_INVOICEABLE = (BookingStatus.REQUESTED, BookingStatus.CANCELLED)

# breakdown key -> line item description
BREAKDOWN_LINES = (
    ("freight_cost", "Freight"),
    ("handling_fee", "Handling"),
    ("warehouse_fee", "Warehouse"),
    ("customs_fee", "Customs"),
    ("insurance_fee", "Insurance"),
    ("pickup_fee", "Pickup"),
    ("delivery_fee", "Delivery"),
    ("other_charges", "Other charges"),
)


def build_line_items(booking) -> List[Dict[str, Any]]:
    """Non-zero breakdown buckets followed by manually added charges."""
    breakdown = booking.charge_breakdown or {}
    items = [
        {"description": label, "amount": breakdown[key]}
        for key, label in BREAKDOWN_LINES
        if breakdown.get(key)
    ]
    items.extend(
        {"description": charge["description"], "amount": charge["amount"]}
        for charge in booking.additional_charges or []
    )
    return items


class InvoiceService:

    @staticmethod
    async def find_for_booking(db: AsyncSession, booking_id: int) -> Optional[Invoice]:
        result = await db.execute(select(Invoice).where(Invoice.booking_id == booking_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def issue(db: AsyncSession, booking_id: int, actor, notifier=None) -> Invoice:
        """
        Issue the invoice for a booking.

        Flow:
        1. Validate role and booking state (confirmed or later, not cancelled)
        2. Idempotency check (existing invoice for the booking)
        3. Build line items from the charge breakdown
        4. Commit under a fresh INV- number, retrying on a clash
        5. Notify the customer

        Returns:
            The new or already existing Invoice
        """
        authorize(actor, Operation.ISSUE_INVOICE)
        booking = await LifecycleRepository(Booking, db).get(booking_id)

        if booking.status in NOT_INVOICEABLE:
            raise ValidationFailedError(
                f"Booking in status '{booking.status.value}' cannot be invoiced",
                field="status"
            )

        existing = await InvoiceService.find_for_booking(db, booking_id)
        if existing is not None:
            return existing

        created = False

        async def apply():
            nonlocal created
            # A concurrent issue may have won the unique booking_id race
            invoice = await InvoiceService.find_for_booking(db, booking_id)
            if invoice is not None:
                created = False
                return invoice

            if not booking.charge_breakdown:
                reprice(booking)
            line_items = build_line_items(booking)
            subtotal = round(sum(item["amount"] for item in line_items), 2)
            discount = round(booking.discount or 0, 2)
            now = utcnow()
            invoice = Invoice(
                invoice_number=await generate_invoice_number(db),
                booking_id=booking.id,
                customer_id=booking.customer_id,
                line_items=line_items,
                subtotal=subtotal,
                discount=discount,
                total_amount=round(subtotal - discount, 2),
                currency=booking.currency,
                status=InvoiceStatus.ISSUED,
                due_date=now + timedelta(days=settings.invoice_due_days),
                issued_by=actor.user_id,
                created_at=now,
            )
            db.add(invoice)
            record_event(
                db,
                AuditAction.INVOICE_ISSUED,
                actor_id=actor.user_id,
                actor_username=actor.username,
                entity=booking,
                metadata={"invoice_number": invoice.invoice_number, "total_amount": invoice.total_amount},
            )
            created = True
            return invoice

        async def reload():
            await db.refresh(booking)

        invoice = await commit_with_unique_number(db, apply, "invoice number", reload=reload)
        if not created:
            return invoice

        logger.info("Invoice %s issued for booking %s", invoice.invoice_number, booking.number)
        if notifier is not None:
            try:
                notifier.enqueue(NotificationRequest(
                    template=Template.INVOICE_GENERATED,
                    context={
                        "invoice_number": invoice.invoice_number,
                        "number": booking.number,
                        "amount": invoice.total_amount,
                        "currency": invoice.currency,
                    },
                    user_ids=(booking.customer_id,),
                ))
            except Exception:
                logger.exception("Could not enqueue invoice notification for %s", invoice.invoice_number)
        return invoice

    @staticmethod
    async def get_for_booking(db: AsyncSession, booking_id: int, actor) -> Invoice:
        authorize(actor, Operation.VIEW)
        booking = await LifecycleRepository(Booking, db).get(booking_id)
        OwnershipGuard().enforce(booking.customer_id, actor, "booking")
        invoice = await InvoiceService.find_for_booking(db, booking_id)
        if invoice is None:
            raise ResourceNotFoundError("Invoice", f"booking {booking_id}")
        return invoice
