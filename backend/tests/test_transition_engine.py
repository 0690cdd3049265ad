"""
Status transition engine tests.

Exercises the engine through BookingService / ShipmentService against
the in-memory database.
"""

import itertools

import pytest

from backend.app.core.exceptions import (
    InsufficientPermissionsError,
    InvalidTransitionError,
    ResourceNotFoundError,
)
from backend.app.domain.lifecycle.engine import StatusTransitionEngine
from backend.app.domain.lifecycle.transitions import SHIPMENT_LIFECYCLE
from backend.app.models.audit_log import AuditLog
from backend.app.models.lifecycle_enums import BookingStatus, ShipmentStatus
from backend.app.schemas.lifecycle import ShipmentCreate
from backend.app.services.identifiers import TrackingNumberGenerator
from backend.app.services.notifications.templates import Template
from sqlalchemy import select


async def test_creation_starts_timeline_and_notifies(make_booking, notifier):
    booking = await make_booking()

    assert booking.status == BookingStatus.REQUESTED
    assert [e["event"] for e in booking.timeline] == ["created"]
    assert booking.version == 1
    assert notifier.templates == [Template.BOOKING_RECEIVED, Template.NEW_BOOKING]
    assert notifier.requests[1].roles


async def test_each_transition_appends_one_entry(make_booking, booking_service, actors):
    booking = await make_booking()

    booking = await booking_service.transition(booking.id, "CONFIRMED", actors["ops"])
    booking = await booking_service.transition(
        booking.id, BookingStatus.RECEIVED_AT_WAREHOUSE, actors["warehouse"], location="Shenzhen WH"
    )

    assert len(booking.timeline) == 3
    last = booking.timeline[-1]
    assert last["event"] == "status_changed"
    assert last["status"] == BookingStatus.RECEIVED_AT_WAREHOUSE.value
    assert last["location"] == "Shenzhen WH"
    assert last["actor_id"] == actors["warehouse"].user_id
    assert last["metadata"]["from"] == BookingStatus.CONFIRMED.value
    assert booking.confirmed_at is not None
    assert booking.version == 3


async def test_confirm_with_tracking_number_adds_two_entries(make_booking, booking_service, actors, notifier):
    booking = await make_booking()

    booking = await booking_service.transition(
        booking.id, "CONFIRMED", actors["ops"], generate_tracking_number=True
    )

    assert booking.tracking_number.startswith("CLC")
    assert [e["event"] for e in booking.timeline] == ["created", "tracking_number_assigned", "status_changed"]
    assert booking.timeline[1]["metadata"]["tracking_number"] == booking.tracking_number
    assert notifier.requests[-1].template == Template.BOOKING_CONFIRMED
    assert notifier.requests[-1].context["tracking_number"] == booking.tracking_number


async def test_existing_tracking_number_is_kept(make_booking, booking_service, actors, db_session):
    booking = await make_booking()
    booking.tracking_number = "CLCKEEP1234"
    await db_session.commit()

    booking = await booking_service.transition(
        booking.id, "CONFIRMED", actors["ops"], generate_tracking_number=True
    )

    assert booking.tracking_number == "CLCKEEP1234"
    assert len(booking.timeline) == 2


async def test_invalid_transition_changes_nothing(make_booking, booking_service, actors):
    booking = await make_booking()

    with pytest.raises(InvalidTransitionError) as exc_info:
        await booking_service.transition(booking.id, "DELIVERED", actors["ops"])

    assert exc_info.value.details["allowed"] == [
        BookingStatus.CANCELLED.value, BookingStatus.CONFIRMED.value
    ]
    booking = await booking_service.get(booking.id, actors["ops"])
    assert booking.status == BookingStatus.REQUESTED
    assert len(booking.timeline) == 1


async def test_role_rules(make_booking, booking_service, actors):
    booking = await make_booking()

    with pytest.raises(InsufficientPermissionsError):
        await booking_service.transition(booking.id, "CONFIRMED", actors["customer"])
    with pytest.raises(InsufficientPermissionsError):
        await booking_service.transition(booking.id, "CONFIRMED", actors["warehouse"])

    await booking_service.transition(booking.id, "CONFIRMED", actors["admin"])


async def test_other_customer_cannot_see_booking(make_booking, booking_service, actors):
    booking = await make_booking()
    with pytest.raises(InsufficientPermissionsError):
        await booking_service.get(booking.id, actors["other"])


async def test_trashed_document_cannot_transition(make_booking, actors):
    booking = await make_booking()
    booking.is_deleted = True

    with pytest.raises(ResourceNotFoundError):
        StatusTransitionEngine().validate(booking, "CONFIRMED", actors["ops"])


async def test_customer_cancels_only_before_confirmation(make_booking, booking_service, actors, notifier):
    first = await make_booking()
    cancelled = await booking_service.cancel(first.id, actors["customer"], reason="Changed plans")

    assert cancelled.status == BookingStatus.CANCELLED
    assert cancelled.cancellation_reason == "Changed plans"
    assert cancelled.cancelled_by == actors["customer"].user_id
    assert cancelled.timeline[-1]["event"] == "cancelled"
    assert notifier.requests[-1].template == Template.BOOKING_CANCELLED

    second = await make_booking()
    await booking_service.transition(second.id, "CONFIRMED", actors["ops"])
    with pytest.raises(InsufficientPermissionsError):
        await booking_service.cancel(second.id, actors["customer"])

    staff_cancelled = await booking_service.cancel(second.id, actors["ops"])
    assert staff_cancelled.status == BookingStatus.CANCELLED


async def test_cancel_after_departure_is_invalid(make_booking, booking_service, actors, advance):
    booking = await make_booking()
    await advance(
        booking_service, booking.id, actors["ops"],
        "CONFIRMED", "RECEIVED_AT_WAREHOUSE", "CONSOLIDATION_IN_PROGRESS", "LOADED_ON_FLIGHT", "IN_TRANSIT",
    )

    with pytest.raises(InvalidTransitionError):
        await booking_service.cancel(booking.id, actors["admin"])


async def test_full_lifecycle_stamps_dates(make_booking, booking_service, actors, advance):
    booking = await make_booking()
    booking = await advance(
        booking_service, booking.id, actors["ops"],
        "CONFIRMED", "PICKUP_SCHEDULED", "RECEIVED_AT_WAREHOUSE", "CONSOLIDATION_IN_PROGRESS",
        "LOADED_IN_CONTAINER", "IN_TRANSIT", "ARRIVED_AT_DESTINATION", "OUT_FOR_DELIVERY", "DELIVERED",
    )

    assert booking.status == BookingStatus.DELIVERED
    assert booking.progress_percentage == 100
    assert booking.actual_departure is not None
    assert booking.actual_arrival is not None
    assert booking.delivered_at is not None
    assert len(booking.timeline) == 10


async def test_transition_is_audited(make_booking, booking_service, actors, db_session):
    booking = await make_booking()
    await booking_service.transition(booking.id, "CONFIRMED", actors["ops"])

    result = await db_session.execute(
        select(AuditLog)
        .where(AuditLog.entity_type == "Booking", AuditLog.entity_id == booking.id)
        .order_by(AuditLog.id)
    )
    actions = [log.action for log in result.scalars().all()]
    assert actions == ["BOOKING_CREATED", "BOOKING_STATUS_CHANGED"]


async def test_notification_failure_does_not_break_transition(make_booking, db_session, actors, mocker):
    booking = await make_booking()
    failing = mocker.Mock()
    failing.enqueue.side_effect = RuntimeError("queue full")
    engine = StatusTransitionEngine(notifier=failing)

    result = await engine.request_transition(db_session, booking, "CONFIRMED", actors["ops"])

    assert result.status == BookingStatus.CONFIRMED
    failing.enqueue.assert_called_once()


async def test_shipment_uses_display_statuses(shipment_service, actors):
    shipment = await shipment_service.create(ShipmentCreate(
        shipment_category="SEA_FREIGHT",
        origin="Thailand",
        destination="Canada",
        packages=[{"description": "Pallet", "packages": 4, "weight": 400, "volume": 2}],
    ), actors["customer"])

    assert shipment.status == ShipmentStatus.REQUESTED
    assert shipment.total_packages == 4
    assert shipment.number.startswith("SHS")

    shipment = await shipment_service.transition(shipment.id, "Confirmed", actors["ops"])
    assert shipment.timeline[-1]["status"] == "Confirmed"


async def test_tracking_generator_retries_collisions(make_booking, db_session):
    booking = await make_booking()
    booking.tracking_number = "CLCAA0000AA"
    await db_session.commit()

    candidates = iter(["CLCAA0000AA", "CLCBB1111BB"])
    generator = TrackingNumberGenerator(candidate=lambda prefix: next(candidates))

    assert await generator.generate(db_session) == "CLCBB1111BB"


async def test_tracking_generator_checks_shipments_too(make_booking, shipment_service, db_session, actors):
    await make_booking()
    shipment = await shipment_service.create(ShipmentCreate(
        shipment_category="AIR_FREIGHT",
        origin="China",
        destination="UK",
        packages=[{"description": "Box", "packages": 1, "weight": 5, "volume": 0.1}],
    ), actors["customer"])
    shipment.tracking_number = "CLCSH0001PP"
    await db_session.commit()

    generator = TrackingNumberGenerator()
    assert await generator.is_taken(db_session, "CLCSH0001PP")

    candidates = iter(["CLCSH0001PP", "CLCSH0002PP"])
    generator = TrackingNumberGenerator(candidate=lambda prefix: next(candidates))
    assert await generator.generate(db_session) == "CLCSH0002PP"


# Booking table by stored value; shipments follow it member for member.
ALLOWED = {
    "booking_requested": {"booking_confirmed", "cancelled"},
    "booking_confirmed": {"pickup_scheduled", "received_at_warehouse", "cancelled"},
    "pickup_scheduled": {"received_at_warehouse", "cancelled"},
    "received_at_warehouse": {"consolidation_in_progress", "cancelled"},
    "consolidation_in_progress": {"loaded_in_container", "loaded_on_flight", "cancelled"},
    "loaded_in_container": {"in_transit"},
    "loaded_on_flight": {"in_transit"},
    "in_transit": {"arrived_at_destination"},
    "arrived_at_destination": {"customs_clearance", "out_for_delivery"},
    "customs_clearance": {"out_for_delivery", "returned"},
    "out_for_delivery": {"delivered"},
    "delivered": set(),
    "cancelled": set(),
    "returned": set(),
}


@pytest.mark.parametrize(
    "current, target",
    list(itertools.product(BookingStatus, BookingStatus)),
    ids=lambda status: status.name,
)
async def test_every_status_pair_follows_the_table(
    make_booking, booking_service, db_session, actors, current, target
):
    booking = await make_booking()
    booking.status = current
    await db_session.commit()

    if target.value in ALLOWED[current.value]:
        booking = await booking_service.transition(booking.id, target, actors["admin"])
        assert booking.status == target
        assert booking.timeline[-1]["status"] == target.value
    else:
        with pytest.raises(InvalidTransitionError):
            await booking_service.transition(booking.id, target, actors["admin"])
        assert booking.status == current
        assert len(booking.timeline) == 1


@pytest.mark.parametrize("current", list(ShipmentStatus), ids=lambda status: status.name)
def test_shipment_table_mirrors_bookings(current):
    allowed = {
        ShipmentStatus[BookingStatus(value).name]
        for value in ALLOWED[BookingStatus[current.name].value]
    }
    assert set(SHIPMENT_LIFECYCLE.allowed_targets(current)) == allowed
    for target in ShipmentStatus:
        assert SHIPMENT_LIFECYCLE.can_transition(current, target) == (target in allowed)
