"""
Notification templates.

Each template renders a context dict into a subject and body. Keys match
the message names used by the web and email clients.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict

from backend.app.core.exceptions import UnknownTemplateError
from backend.app.models.notification import NotificationType


@dataclass(frozen=True)
class RenderedMessage:
    subject: str
    body: str
    type: NotificationType = NotificationType.INFO


class Template:
    BOOKING_RECEIVED = "booking-received"
    NEW_BOOKING = "new-booking-notification"
    PRICE_QUOTE_READY = "price-quote-ready"
    BOOKING_CONFIRMED = "booking-confirmed-customer"
    TRACKING_UPDATE = "tracking-update"
    BOOKING_CANCELLED = "booking-cancelled-customer"
    INVOICE_GENERATED = "invoice-generated"


def _money(context: Dict[str, Any], key: str = "amount") -> str:
    amount = context.get(key)
    if amount is None:
        return "to be confirmed"
    return f"{context.get('currency', 'USD')} {float(amount):,.2f}"


def _booking_received(context):
    return RenderedMessage(
        subject=f"Booking {context['number']} received",
        body=(
            f"We have received your booking {context['number']} from "
            f"{context.get('origin')} to {context.get('destination')}. "
            "Our team will review it and send you a quote."
        ),
    )


def _new_booking(context):
    return RenderedMessage(
        subject=f"New booking {context['number']}",
        body=(
            f"Customer #{context.get('customer_id')} created booking {context['number']} "
            f"({context.get('shipment_category')}, {context.get('origin')} to {context.get('destination')})."
        ),
        type=NotificationType.BOOKING_UPDATE,
    )


def _price_quote_ready(context):
    return RenderedMessage(
        subject=f"Quote ready for {context['number']}",
        body=f"Your quote for booking {context['number']} is {_money(context)}.",
        type=NotificationType.BILLING_UPDATE,
    )


def _booking_confirmed(context):
    tracking = context.get("tracking_number")
    body = f"Booking {context['number']} is confirmed."
    if tracking:
        body += f" Track it with {tracking}."
    return RenderedMessage(
        subject=f"Booking {context['number']} confirmed",
        body=body,
        type=NotificationType.SUCCESS,
    )


def _tracking_update(context):
    body = (
        f"{context.get('entity', 'Booking')} {context['number']} moved from "
        f"{context.get('old_status')} to {context.get('new_status')}."
    )
    if context.get("location"):
        body += f" Location: {context['location']}."
    if context.get("tracking_number"):
        body += f" Tracking number: {context['tracking_number']}."
    return RenderedMessage(
        subject=f"Update on {context['number']}: {context.get('new_status')}",
        body=body,
        type=NotificationType.BOOKING_UPDATE,
    )


def _booking_cancelled(context):
    body = f"Booking {context['number']} has been cancelled."
    if context.get("reason"):
        body += f" Reason: {context['reason']}."
    return RenderedMessage(
        subject=f"Booking {context['number']} cancelled",
        body=body,
        type=NotificationType.WARNING,
    )


def _invoice_generated(context):
    return RenderedMessage(
        subject=f"Invoice {context['invoice_number']}",
        body=(
            f"Invoice {context['invoice_number']} for booking {context['number']} "
            f"has been issued: {_money(context)}."
        ),
        type=NotificationType.BILLING_UPDATE,
    )


TEMPLATES: Dict[str, Callable[[Dict[str, Any]], RenderedMessage]] = {
    Template.BOOKING_RECEIVED: _booking_received,
    Template.NEW_BOOKING: _new_booking,
    Template.PRICE_QUOTE_READY: _price_quote_ready,
    Template.BOOKING_CONFIRMED: _booking_confirmed,
    Template.TRACKING_UPDATE: _tracking_update,
    Template.BOOKING_CANCELLED: _booking_cancelled,
    Template.INVOICE_GENERATED: _invoice_generated,
}


def get_template(key: str) -> Callable[[Dict[str, Any]], RenderedMessage]:
    try:
        return TEMPLATES[key]
    except KeyError:
        raise UnknownTemplateError(key)


def render(key: str, context: Dict[str, Any]) -> RenderedMessage:
    return get_template(key)(context)
