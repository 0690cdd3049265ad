"""
Transition table tests.

The table itself, status parsing and progress display; no database.
"""

import pytest

from backend.app.core.exceptions import ValidationFailedError
from backend.app.domain.lifecycle.transitions import (
    BOOKING_LIFECYCLE,
    SHIPMENT_LIFECYCLE,
    TRANSITIONS,
    LifecycleDefinition,
)
from backend.app.models.lifecycle_enums import BookingStatus, ShipmentStatus


def test_forward_path_is_legal():
    path = [
        BookingStatus.REQUESTED,
        BookingStatus.CONFIRMED,
        BookingStatus.PICKUP_SCHEDULED,
        BookingStatus.RECEIVED_AT_WAREHOUSE,
        BookingStatus.CONSOLIDATION_IN_PROGRESS,
        BookingStatus.LOADED_ON_FLIGHT,
        BookingStatus.IN_TRANSIT,
        BookingStatus.ARRIVED_AT_DESTINATION,
        BookingStatus.CUSTOMS_CLEARANCE,
        BookingStatus.OUT_FOR_DELIVERY,
        BookingStatus.DELIVERED,
    ]
    for current, target in zip(path, path[1:]):
        assert BOOKING_LIFECYCLE.can_transition(current, target), f"{current} -> {target}"


@pytest.mark.parametrize("current,target", [
    (BookingStatus.REQUESTED, BookingStatus.DELIVERED),
    (BookingStatus.REQUESTED, BookingStatus.IN_TRANSIT),
    (BookingStatus.IN_TRANSIT, BookingStatus.CANCELLED),
    (BookingStatus.DELIVERED, BookingStatus.REQUESTED),
    (BookingStatus.CONFIRMED, BookingStatus.CONFIRMED),
])
def test_illegal_moves_are_rejected(current, target):
    assert not BOOKING_LIFECYCLE.can_transition(current, target)


def test_terminal_statuses_have_no_targets():
    for status in (BookingStatus.DELIVERED, BookingStatus.CANCELLED, BookingStatus.RETURNED):
        assert BOOKING_LIFECYCLE.is_terminal(status)
        assert BOOKING_LIFECYCLE.allowed_targets(status) == []
    assert not BOOKING_LIFECYCLE.is_terminal(BookingStatus.CUSTOMS_CLEARANCE)


def test_allowed_targets_are_members_of_the_entity_enum():
    targets = SHIPMENT_LIFECYCLE.allowed_targets(ShipmentStatus.ARRIVED_AT_DESTINATION)
    assert set(targets) == {ShipmentStatus.CUSTOMS_CLEARANCE, ShipmentStatus.OUT_FOR_DELIVERY}
    assert BOOKING_LIFECYCLE.allowed_targets(BookingStatus.CUSTOMS_CLEARANCE) == sorted(
        [BookingStatus.OUT_FOR_DELIVERY, BookingStatus.RETURNED], key=lambda s: s.name
    )


def test_coerce_accepts_value_or_member_name():
    assert BOOKING_LIFECYCLE.coerce("booking_confirmed") == BookingStatus.CONFIRMED
    assert BOOKING_LIFECYCLE.coerce("confirmed") == BookingStatus.CONFIRMED
    assert BOOKING_LIFECYCLE.coerce(BookingStatus.IN_TRANSIT) == BookingStatus.IN_TRANSIT
    assert SHIPMENT_LIFECYCLE.coerce("Out for Delivery") == ShipmentStatus.OUT_FOR_DELIVERY


def test_coerce_rejects_the_other_entitys_enum_and_garbage():
    with pytest.raises(ValidationFailedError):
        BOOKING_LIFECYCLE.coerce("Loaded on Flight")
    with pytest.raises(ValidationFailedError):
        SHIPMENT_LIFECYCLE.coerce(BookingStatus.CONFIRMED)
    with pytest.raises(ValidationFailedError):
        BOOKING_LIFECYCLE.coerce("teleported")


def test_progress_percentage():
    assert BOOKING_LIFECYCLE.progress_percentage(BookingStatus.REQUESTED) == 0
    assert BOOKING_LIFECYCLE.progress_percentage(BookingStatus.DELIVERED) == 100
    assert BOOKING_LIFECYCLE.progress_percentage(BookingStatus.CANCELLED) == 0
    assert (
        BOOKING_LIFECYCLE.progress_percentage(BookingStatus.LOADED_IN_CONTAINER)
        == BOOKING_LIFECYCLE.progress_percentage(BookingStatus.LOADED_ON_FLIGHT)
        == 50
    )


def test_deletable_only_before_warehouse():
    assert BOOKING_LIFECYCLE.is_deletable(BookingStatus.PICKUP_SCHEDULED)
    assert not BOOKING_LIFECYCLE.is_deletable(BookingStatus.RECEIVED_AT_WAREHOUSE)


def test_table_must_cover_every_status():
    partial = {name: targets for name, targets in TRANSITIONS.items() if name != "RETURNED"}
    with pytest.raises(ValueError):
        LifecycleDefinition("booking", BookingStatus, transitions=partial)
