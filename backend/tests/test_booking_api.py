"""
HTTP tests for the booking, trash, warehouse, tracking and admin ops endpoints.

The notification queue is not started in tests; jobs are drained with
process_pending() and land in the recording transport.
"""

import pytest
from sqlalchemy import select

from backend.app.models.dlq import DeadLetterQueue, DLQStatus
from backend.app.models.notification import Notification, NotificationType
from backend.app.services.notifications.templates import Template


@pytest.fixture
def book(client, headers, payload):
    """POST a booking as the customer and return the response body."""
    async def _book(**overrides):
        response = await client.post("/v1/bookings", json=payload(**overrides), headers=headers["customer"])
        assert response.status_code == 201, response.text
        return response.json()
    return _book


@pytest.fixture
def set_status(client, headers):
    async def _set(booking_id, status, who="ops", **extra):
        return await client.post(
            f"/v1/bookings/{booking_id}/status", json={"status": status, **extra}, headers=headers[who]
        )
    return _set


async def test_customer_creates_booking(book, users):
    booking = await book()

    assert booking["number"].startswith("AB")
    assert booking["status"] == "booking_requested"
    assert booking["customer_id"] == users["customer"].id
    assert booking["quoted_amount"] == 3066.0
    assert booking["progress_percentage"] == 0
    assert [e["event"] for e in booking["timeline"]] == ["created"]
    assert booking["internal_notes"] is None


async def test_create_validates_payload(client, headers, payload):
    response = await client.post("/v1/bookings", json=payload(cargo_details=[]), headers=headers["customer"])
    assert response.status_code == 422

    response = await client.post("/v1/bookings", json=payload(), headers=headers["warehouse"])
    assert response.status_code == 403


async def test_creation_notifications_are_delivered(book, app_state, transport, users):
    booking = await book()

    assert await app_state.notification_queue.process_pending() == 2

    templates = [request.template for request, _ in transport.delivered]
    assert templates == [Template.BOOKING_RECEIVED, Template.NEW_BOOKING]
    received_request, received_message = transport.delivered[0]
    assert received_request.user_ids == (users["customer"].id,)
    assert booking["number"] in received_message.subject


async def test_list_and_get_respect_ownership(client, headers, book):
    mine = await book()

    own = await client.get("/v1/bookings", headers=headers["customer"])
    theirs = await client.get("/v1/bookings", headers=headers["other"])
    staff = await client.get("/v1/bookings", headers=headers["ops"])

    assert own.json()["total"] == 1
    assert theirs.json()["total"] == 0
    assert staff.json()["items"][0]["id"] == mine["id"]

    response = await client.get(f"/v1/bookings/{mine['id']}", headers=headers["other"])
    assert response.status_code == 403


async def test_list_filters_by_status_and_search(client, headers, book, set_status):
    first = await book()
    second = await book(destination="UK")
    await set_status(first["id"], "CONFIRMED")

    confirmed = await client.get("/v1/bookings", params={"status": "booking_confirmed"}, headers=headers["ops"])
    by_name = await client.get("/v1/bookings", params={"status": "CONFIRMED"}, headers=headers["ops"])
    search = await client.get("/v1/bookings", params={"search": "uk"}, headers=headers["ops"])

    assert [b["id"] for b in confirmed.json()["items"]] == [first["id"]]
    assert [b["id"] for b in by_name.json()["items"]] == [first["id"]]
    assert [b["id"] for b in search.json()["items"]] == [second["id"]]

    bad = await client.get("/v1/bookings", params={"status": "teleported"}, headers=headers["ops"])
    assert bad.status_code == 422


async def test_status_change_over_http(client, headers, book, set_status):
    booking = await book()

    response = await set_status(booking["id"], "CONFIRMED", generate_tracking_number=True, location="Shenzhen")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "booking_confirmed"
    assert data["tracking_number"].startswith("CLC")
    assert data["confirmed_at"] is not None
    # newest first
    assert data["timeline"][-1]["event"] == "created"

    skipped = await set_status(booking["id"], "DELIVERED")
    assert skipped.status_code == 409
    assert skipped.json()["error_code"] == "ERR_STATE_001"

    by_customer = await set_status(booking["id"], "RECEIVED_AT_WAREHOUSE", who="customer")
    assert by_customer.status_code == 403


async def test_customer_cancels_own_request(client, headers, book):
    booking = await book()

    response = await client.post(
        f"/v1/bookings/{booking['id']}/cancel", json={"reason": "Ordered twice"}, headers=headers["customer"]
    )

    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"
    assert response.json()["cancellation_reason"] == "Ordered twice"

    again = await client.post(f"/v1/bookings/{booking['id']}/cancel", json={}, headers=headers["ops"])
    assert again.status_code == 409


async def test_cargo_update_requotes(client, headers, book):
    booking = await book()

    response = await client.put(
        f"/v1/bookings/{booking['id']}/cargo",
        json={"items": [{"description": "Shoes", "cartons": 10, "weight": 40.0, "volume": 2.0}]},
        headers=headers["customer"],
    )

    assert response.status_code == 200
    data = response.json()
    assert data["total_cartons"] == 10
    assert data["total_weight"] == 40.0
    assert data["charge_breakdown"]["freight_cost"] == 3600.0

    negative = await client.put(
        f"/v1/bookings/{booking['id']}/cargo",
        json={"items": [{"description": "Shoes", "cartons": 1, "weight": -1, "volume": 1}]},
        headers=headers["customer"],
    )
    assert negative.status_code == 422
    assert negative.json()["details"]["errors"][0]["loc"] == ["body", "items", 0, "weight"]


@pytest.mark.parametrize("item, field", [
    ({"cartons": 1, "weight": "nan", "volume": 1}, "weight"),
    ({"cartons": 1, "weight": "1e400", "volume": 1}, "weight"),
    ({"cartons": 1, "weight": 1, "volume": "-inf"}, "volume"),
    ({"cartons": 2.7, "weight": 1, "volume": 1}, "cartons"),
])
async def test_malformed_cargo_is_a_validation_error(client, headers, book, item, field):
    booking = await book()

    response = await client.put(
        f"/v1/bookings/{booking['id']}/cargo",
        json={"items": [{"description": "Shoes", **item}]},
        headers=headers["customer"],
    )

    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_VALIDATION"
    assert response.json()["details"]["errors"][0]["loc"] == ["body", "items", 0, field]

    unchanged = await client.get(f"/v1/bookings/{booking['id']}", headers=headers["customer"])
    assert unchanged.json()["total_weight"] == booking["total_weight"]


async def test_shipment_cargo_uses_package_counts(client, headers):
    body = {
        "shipment_category": "SEA_FREIGHT",
        "origin": "China",
        "destination": "USA",
        "packages": [{"description": "Crate", "packages": 2, "weight": 10, "volume": 1}],
    }
    shipment = await client.post("/v1/shipments", json=body, headers=headers["customer"])
    assert shipment.status_code == 201

    response = await client.put(
        f"/v1/shipments/{shipment.json()['id']}/cargo",
        json={"items": [{"description": "Crate", "packages": 4, "weight": 20, "volume": 2}]},
        headers=headers["customer"],
    )
    assert response.status_code == 200
    assert response.json()["total_packages"] == 4

    wrong_shape = await client.put(
        f"/v1/shipments/{shipment.json()['id']}/cargo",
        json={"items": [{"description": "Crate", "cartons": 4, "weight": 20, "volume": 2}]},
        headers=headers["customer"],
    )
    assert wrong_shape.status_code == 422


async def test_pricing_adjustments_are_staff_only(client, headers, book):
    booking = await book()
    booking_id = booking["id"]

    discount = await client.put(f"/v1/bookings/{booking_id}/discount", json={"discount": 66}, headers=headers["ops"])
    assert discount.status_code == 200
    assert discount.json()["quoted_amount"] == 3000.0

    charge = await client.post(
        f"/v1/bookings/{booking_id}/charges",
        json={"description": "Fumigation", "amount": 34.5},
        headers=headers["ops"],
    )
    assert charge.json()["quoted_amount"] == 3034.5

    forbidden = await client.put(
        f"/v1/bookings/{booking_id}/discount", json={"discount": 500}, headers=headers["customer"]
    )
    assert forbidden.status_code == 403


async def test_notes_and_assignment_hidden_from_customer(client, headers, users, book):
    booking = await book()
    booking_id = booking["id"]

    note = await client.post(
        f"/v1/bookings/{booking_id}/notes", json={"text": "Call before pickup"}, headers=headers["warehouse"]
    )
    assert note.status_code == 200

    assign = await client.post(
        f"/v1/bookings/{booking_id}/assign", json={"user_id": users["warehouse"].id}, headers=headers["ops"]
    )
    assert assign.status_code == 200
    assert assign.json()["assigned_to"] == users["warehouse"].id

    staff_view = (await client.get(f"/v1/bookings/{booking_id}", headers=headers["ops"])).json()
    customer_view = (await client.get(f"/v1/bookings/{booking_id}", headers=headers["customer"])).json()

    assert [n["text"] for n in staff_view["internal_notes"]] == ["Call before pickup"]
    assert len(staff_view["assignment_history"]) == 1
    assert customer_view["internal_notes"] is None
    assert customer_view["assignment_history"] is None


async def test_trash_round_trip(client, headers, book):
    booking = await book()
    booking_id = booking["id"]

    deleted = await client.request(
        "DELETE", f"/v1/bookings/{booking_id}", json={"reason": "Duplicate"}, headers=headers["customer"]
    )
    assert deleted.status_code == 200
    assert deleted.json()["is_deleted"] is True

    assert (await client.get(f"/v1/bookings/{booking_id}", headers=headers["ops"])).status_code == 404

    trash = await client.get("/v1/trash/bookings", headers=headers["ops"])
    assert trash.json()["total"] == 1
    assert trash.json()["items"][0]["deletion_reason"] == "Duplicate"

    assert (await client.get("/v1/trash/bookings", headers=headers["customer"])).status_code == 403

    restored = await client.post(f"/v1/trash/bookings/{booking_id}/restore", headers=headers["ops"])
    assert restored.status_code == 200
    assert restored.json()["timeline"][0]["event"] == "restored"

    not_trashed = await client.post(f"/v1/trash/bookings/{booking_id}/restore", headers=headers["ops"])
    assert not_trashed.status_code == 409


async def test_hard_delete_and_empty_trash(client, headers, book):
    first = await book()
    second = await book()
    for booking in (first, second):
        await client.delete(f"/v1/bookings/{booking['id']}", headers=headers["ops"])

    unconfirmed = await client.delete(f"/v1/trash/bookings/{first['id']}", headers=headers["admin"])
    assert unconfirmed.status_code == 422

    not_admin = await client.delete(
        f"/v1/trash/bookings/{first['id']}", params={"confirm": "true"}, headers=headers["ops"]
    )
    assert not_admin.status_code == 403

    removed = await client.delete(
        f"/v1/trash/bookings/{first['id']}", params={"confirm": "true"}, headers=headers["admin"]
    )
    assert removed.status_code == 204

    emptied = await client.post("/v1/trash/bookings/empty", json={"confirm": True}, headers=headers["admin"])
    assert emptied.json() == {"removed": 1}

    assert (await client.get("/v1/trash/bookings", headers=headers["admin"])).json()["total"] == 0


async def test_invoice_endpoints(client, headers, book, set_status):
    booking = await book()

    too_early = await client.post(f"/v1/bookings/{booking['id']}/invoice", headers=headers["ops"])
    assert too_early.status_code == 422

    await set_status(booking["id"], "CONFIRMED")
    issued = await client.post(f"/v1/bookings/{booking['id']}/invoice", headers=headers["ops"])
    assert issued.status_code == 201
    invoice = issued.json()
    assert invoice["invoice_number"].startswith("INV-")
    assert [line["description"] for line in invoice["line_items"]] == ["Freight", "Handling", "Customs"]
    assert invoice["total_amount"] == 3066.0

    again = await client.post(f"/v1/bookings/{booking['id']}/invoice", headers=headers["admin"])
    assert again.json()["id"] == invoice["id"]

    fetched = await client.get(f"/v1/bookings/{booking['id']}/invoice", headers=headers["customer"])
    assert fetched.json()["invoice_number"] == invoice["invoice_number"]


async def test_warehouse_receipt_and_consolidation(client, headers, book, set_status):
    first = await book()
    second = await book()
    for booking in (first, second):
        await set_status(booking["id"], "CONFIRMED")

    receipts = []
    for booking in (first, second):
        response = await client.post(
            "/v1/warehouse/receipts",
            json={"booking_id": booking["id"], "received_cartons": 5, "warehouse_location": "Bay 2"},
            headers=headers["warehouse"],
        )
        assert response.status_code == 201
        receipts.append(response.json())
    assert receipts[0]["receipt_number"] != receipts[1]["receipt_number"]

    listed = await client.get(
        "/v1/warehouse/receipts", params={"booking_id": first["id"]}, headers=headers["warehouse"]
    )
    assert [r["id"] for r in listed.json()] == [receipts[0]["id"]]

    customer = await client.post(
        "/v1/warehouse/receipts", json={"booking_id": first["id"], "received_cartons": 5}, headers=headers["customer"]
    )
    assert customer.status_code == 403

    consolidation = await client.post(
        "/v1/warehouse/consolidations",
        json={"booking_ids": [first["id"], second["id"]], "container_id": "MSCU1234567"},
        headers=headers["warehouse"],
    )
    assert consolidation.status_code == 201
    assert consolidation.json()["total_weight"] == 30.0

    status = (await client.get(f"/v1/bookings/{first['id']}", headers=headers["customer"])).json()["status"]
    assert status == "consolidation_in_progress"


async def test_statistics_endpoint(client, headers, book, set_status, app_state):
    first = await book()
    await book()
    await set_status(first["id"], "CONFIRMED")

    response = await client.get("/v1/bookings/statistics", headers=headers["ops"])

    assert response.status_code == 200
    stats = response.json()
    assert stats["total"] == 2
    assert stats["by_status"]["booking_requested"] == 1
    assert stats["by_status"]["booking_confirmed"] == 1
    assert stats["in_trash"] == 0

    assert (await client.get("/v1/bookings/statistics", headers=headers["customer"])).status_code == 403

    cleared = await client.post("/v1/admin/ops/clear-cache", headers=headers["admin"])
    assert cleared.status_code == 200
    assert app_state.cache.get("stats:Booking") is None


async def test_public_tracking_lookup(client, book, set_status):
    booking = await book()
    confirmed = (await set_status(booking["id"], "CONFIRMED", generate_tracking_number=True)).json()
    tracking_number = confirmed["tracking_number"]

    response = await client.get(f"/v1/tracking/{tracking_number.lower()}")

    assert response.status_code == 200
    data = response.json()
    assert data["number"] == booking["number"]
    assert data["status"] == "booking_confirmed"
    assert "internal_notes" not in data

    assert (await client.get("/v1/tracking/CLCXX0000XX")).status_code == 404


async def test_quote_preview_is_public(client):
    response = await client.post(
        "/v1/quotes/preview",
        json={"weight": 100, "volume": 1, "shipment_category": "AIR_FREIGHT", "origin": "China", "destination": "USA"},
    )

    assert response.status_code == 200
    assert response.json()["freight_cost"] == 1800.0
    assert response.json()["total_amount"] == 2094.0


async def test_shipments_share_the_routes(client, headers):
    body = {
        "shipment_category": "SEA_FREIGHT",
        "origin": "China",
        "destination": "USA",
        "packages": [{"description": "Pallets", "packages": 4, "weight": 800.0, "volume": 3.2}],
    }
    created = await client.post("/v1/shipments", json=body, headers=headers["customer"])
    assert created.status_code == 201
    shipment = created.json()
    assert shipment["status"] == "Booking Requested"
    assert shipment["number"].startswith("SHS")

    response = await client.post(
        f"/v1/shipments/{shipment['id']}/status", json={"status": "Confirmed"}, headers=headers["ops"]
    )
    assert response.json()["status"] == "Confirmed"

    trashed = await client.get("/v1/trash/shipments", headers=headers["ops"])
    assert trashed.json()["total"] == 0


async def test_notification_inbox(client, headers, users, db_session):
    customer_id = users["customer"].id
    for number in ("AB26100001", "AB26100002"):
        title = f"Booking {number} received"
        db_session.add(Notification(
            user_id=customer_id,
            type=NotificationType.BOOKING_UPDATE,
            template=Template.BOOKING_RECEIVED,
            document_number=number,
            title=title,
            message=title,
        ))
    db_session.add(Notification(user_id=users["other"].id, title="Not yours", message="Not yours"))
    await db_session.commit()

    inbox = await client.get("/v1/notifications", headers=headers["customer"])
    assert inbox.status_code == 200
    assert len(inbox.json()) == 2

    one = await client.get("/v1/notifications", params={"number": "ab26100002"}, headers=headers["customer"])
    assert [n["title"] for n in one.json()] == ["Booking AB26100002 received"]

    first_id = inbox.json()[0]["id"]
    assert (await client.patch(f"/v1/notifications/{first_id}/read", headers=headers["customer"])).status_code == 200
    unread = await client.get("/v1/notifications", params={"unread_only": "true"}, headers=headers["customer"])
    assert len(unread.json()) == 1

    result = await db_session.execute(select(Notification).where(Notification.user_id == users["other"].id))
    foreign_id = result.scalar_one().id
    foreign = await client.patch(f"/v1/notifications/{foreign_id}/read", headers=headers["customer"])
    assert foreign.status_code == 404

    read_all = await client.patch("/v1/notifications/read-all", headers=headers["customer"])
    assert read_all.json()["count"] == 1


async def test_dead_letters_can_be_replayed(client, headers, db_session, app_state, transport):
    item = DeadLetterQueue(
        task_name="notification",
        template=Template.TRACKING_UPDATE,
        recipient="7",
        error_message="smtp timeout",
        payload={
            "context": {"number": "AB26100001", "old_status": "booking_confirmed", "new_status": "in_transit"},
            "user_ids": [7],
            "roles": ["OPERATIONS"],
        },
        status=DLQStatus.FAILED,
        requeue_count=3,
    )
    db_session.add(item)
    await db_session.commit()

    listed = await client.get("/v1/admin/ops/dlq", headers=headers["admin"])
    assert [d["id"] for d in listed.json()] == [item.id]
    assert (await client.get("/v1/admin/ops/dlq", headers=headers["ops"])).status_code == 403

    replay = await client.post(f"/v1/admin/ops/dlq/{item.id}/replay", headers=headers["admin"])
    assert replay.status_code == 200
    assert app_state.notification_queue.pending == 1

    await app_state.notification_queue.process_pending()
    request, message = transport.delivered[0]
    assert request.user_ids == (7,)
    assert message.subject == "Update on AB26100001: in_transit"

    again = await client.post(f"/v1/admin/ops/dlq/{item.id}/replay", headers=headers["admin"])
    assert again.status_code == 409


async def test_health_reports_queue_and_redis(client, app_state):
    response = await client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["redis"] is True
    assert data["notification_queue"] == {"running": False, "pending": 0}
