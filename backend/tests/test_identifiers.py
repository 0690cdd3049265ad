"""
Business identifier tests.

Formats, sequence continuation and the retry-on-clash commit loop.
"""

import re
from datetime import datetime, timezone

import pytest

from backend.app.core.exceptions import DuplicateIdentifierError
from backend.app.models.lifecycle_enums import ShipmentCategory
from backend.app.services.identifiers import (
    TrackingNumberGenerator,
    booking_number_prefix,
    generate_booking_number,
    generate_consolidation_number,
    generate_invoice_number,
    generate_receipt_number,
    generate_shipment_number,
    random_tracking_candidate,
)

OCTOBER = datetime(2026, 10, 5, tzinfo=timezone.utc)


async def test_first_numbers_of_each_kind(db_session):
    assert await generate_booking_number(db_session, ShipmentCategory.SEA_FREIGHT, OCTOBER) == "SB26100001"
    assert await generate_shipment_number(db_session, ShipmentCategory.EXPRESS_COURIER, OCTOBER) == "SHE26100001"
    assert await generate_invoice_number(db_session, OCTOBER) == "INV-2610-00001"
    assert await generate_consolidation_number(db_session, OCTOBER) == "CON-2610-0001"
    assert await generate_receipt_number(db_session, OCTOBER) == "RCP-2610-00001"


def test_unknown_category_uses_general_prefix():
    assert booking_number_prefix(None, OCTOBER) == "GB2610"


async def test_booking_numbers_continue_the_sequence(make_booking):
    first = await make_booking()
    second = await make_booking()

    assert re.fullmatch(r"AB\d{4}0001", first.number)
    assert int(second.number[-4:]) == 2
    assert second.number[:6] == first.number[:6]


async def test_sequence_keeps_counting_past_its_padding(make_booking, db_session):
    booking = await make_booking()
    prefix = booking.number[:6]
    booking.number = f"{prefix}9999"
    await db_session.commit()

    overflowed = await generate_booking_number(db_session, ShipmentCategory.AIR_FREIGHT)
    assert overflowed == f"{prefix}10000"

    latest = await make_booking()
    latest.number = overflowed
    await db_session.commit()
    assert await generate_booking_number(db_session, ShipmentCategory.AIR_FREIGHT) == f"{prefix}10001"


def test_tracking_candidate_format():
    assert re.fullmatch(r"CLC[A-Z]{2}\d{4}[A-Z]{2}", random_tracking_candidate("CLC"))


async def test_clashing_number_is_rederived(make_booking, mocker, db_session):
    existing = await make_booking()
    taken = existing.number
    fresh = "AB99990001"
    mocker.patch(
        "backend.app.services.lifecycle_service.generate_booking_number",
        mocker.AsyncMock(side_effect=[taken, fresh]),
    )

    booking = await make_booking()

    assert booking.number == fresh
    assert len(booking.timeline) == 1


async def test_gives_up_after_max_attempts(make_booking, mocker):
    existing = await make_booking()
    generator = mocker.AsyncMock(return_value=existing.number)
    mocker.patch("backend.app.services.lifecycle_service.generate_booking_number", generator)

    with pytest.raises(DuplicateIdentifierError) as exc_info:
        await make_booking()

    assert exc_info.value.details["attempts"] == 5
    assert generator.await_count == 5


async def test_tracking_falls_back_to_timestamp(make_booking, db_session):
    booking = await make_booking()
    booking.tracking_number = "CLCAA0000AA"
    await db_session.commit()

    generator = TrackingNumberGenerator(
        max_attempts=3,
        candidate=lambda prefix: f"{prefix}AA0000AA",
        clock=lambda: 1700000000.0,
    )

    assert await generator.generate(db_session) == "CLC-1700000000000"
