from datetime import date, time, timedelta

from labdesk import models
from .conftest import client, create_equipment, create_user, ensure_admin_headers, ensure_auth_headers

BOOKING_DAY = (date.today() + timedelta(days=7)).isoformat()


def book(client, headers, equipment_id, start, end, day=BOOKING_DAY):
    return client.post(
        "/api/bookings/",
        json={
            "equipment_id": str(equipment_id),
            "booking_date": day,
            "start_time": start,
            "end_time": end,
            "purpose": "qPCR run",
        },
        headers=headers,
    )


def test_overlapping_slot_rejected_adjacent_slot_allowed(client, store):
    headers, _ = ensure_auth_headers(client)
    eq = create_equipment(store)

    first = book(client, headers, eq.id, "09:00", "10:00")
    assert first.status_code == 200
    assert first.json()["status"] == "pending"

    overlap = book(client, headers, eq.id, "09:30", "10:30")
    assert overlap.status_code == 409
    assert overlap.json()["detail"] == "This time slot is already booked"

    adjacent = book(client, headers, eq.id, "10:00", "11:00")
    assert adjacent.status_code == 200

    other_day = book(client, headers, eq.id, "09:30", "10:30", day=(date.today() + timedelta(days=8)).isoformat())
    assert other_day.status_code == 200


def test_inverted_range_is_rejected(client, store):
    headers, _ = ensure_auth_headers(client)
    eq = create_equipment(store)
    resp = book(client, headers, eq.id, "11:00", "10:00")
    assert resp.status_code == 422


def test_past_date_is_rejected(client, store):
    headers, _ = ensure_auth_headers(client)
    eq = create_equipment(store)
    resp = book(client, headers, eq.id, "09:00", "10:00", day=(date.today() - timedelta(days=30)).isoformat())
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Booking date cannot be in the past"
    with store.session() as db:
        assert db.query(models.Booking).filter(models.Booking.equipment_id == eq.id).count() == 0


def test_purpose_is_capped(client, store):
    headers, _ = ensure_auth_headers(client)
    eq = create_equipment(store)
    payload = {
        "equipment_id": str(eq.id),
        "booking_date": BOOKING_DAY,
        "start_time": "13:00",
        "end_time": "14:00",
    }
    too_long = client.post("/api/bookings/", json={**payload, "purpose": "x" * 501}, headers=headers)
    assert too_long.status_code == 422
    at_limit = client.post("/api/bookings/", json={**payload, "purpose": "x" * 500}, headers=headers)
    assert at_limit.status_code == 200


def test_unavailable_equipment_cannot_be_booked(client, store):
    headers, _ = ensure_auth_headers(client)
    eq = create_equipment(store, status="maintenance")
    resp = book(client, headers, eq.id, "09:00", "10:00")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Equipment not found or not available"


def test_approve_flow_notifies_owner(client, store):
    headers, _ = ensure_auth_headers(client)
    admin, _ = ensure_admin_headers(client, store)
    eq = create_equipment(store)
    booking_id = book(client, headers, eq.id, "13:00", "14:00").json()["id"]

    approved = client.post(f"/api/bookings/{booking_id}/approve", json={"remarks": "ok"}, headers=admin)
    assert approved.status_code == 200
    assert approved.json()["status"] == "approved"
    assert approved.json()["reviewed_by"] is not None

    again = client.post(f"/api/bookings/{booking_id}/approve", json={}, headers=admin)
    assert again.status_code == 409

    notes = client.get("/api/notifications/", headers=headers).json()
    assert [n["title"] for n in notes] == ["Booking Approved"]
    assert notes[0]["booking_id"] == booking_id


def test_reject_frees_the_slot(client, store):
    headers, _ = ensure_auth_headers(client)
    admin, _ = ensure_admin_headers(client, store)
    eq = create_equipment(store)
    booking_id = book(client, headers, eq.id, "15:00", "16:00").json()["id"]

    rejected = client.post(f"/api/bookings/{booking_id}/reject", json={"remarks": "calibration"}, headers=admin)
    assert rejected.status_code == 200
    assert rejected.json()["status"] == "rejected"

    notes = client.get("/api/notifications/", params={"category": "rejection"}, headers=headers).json()
    assert "Reason: calibration" in notes[0]["message"]

    assert book(client, headers, eq.id, "15:00", "16:00").status_code == 200


def test_cancel_only_own_pending_booking(client, store):
    owner, _ = ensure_auth_headers(client)
    stranger, _ = ensure_auth_headers(client)
    eq = create_equipment(store)
    booking_id = book(client, owner, eq.id, "08:00", "09:00").json()["id"]

    assert client.post(f"/api/bookings/{booking_id}/cancel", headers=stranger).status_code == 404
    cancelled = client.post(f"/api/bookings/{booking_id}/cancel", headers=owner)
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"
    assert client.post(f"/api/bookings/{booking_id}/cancel", headers=owner).status_code == 404

    assert book(client, stranger, eq.id, "08:00", "09:00").status_code == 200


def test_booking_visibility(client, store):
    owner, _ = ensure_auth_headers(client)
    stranger, _ = ensure_auth_headers(client)
    admin, _ = ensure_admin_headers(client, store)
    eq = create_equipment(store)
    booking_id = book(client, owner, eq.id, "17:00", "18:00").json()["id"]

    assert client.get(f"/api/bookings/{booking_id}", headers=owner).status_code == 200
    assert client.get(f"/api/bookings/{booking_id}", headers=stranger).status_code == 404
    assert client.get(f"/api/bookings/{booking_id}", headers=admin).status_code == 200

    mine = client.get("/api/bookings/mine", headers=owner).json()
    assert [b["id"] for b in mine] == [booking_id]

    pending = client.get(
        "/api/bookings/", params={"status": "pending", "equipment_id": str(eq.id)}, headers=admin
    ).json()
    assert [b["id"] for b in pending] == [booking_id]
    assert client.get("/api/bookings/", params={"status": "bogus"}, headers=admin).status_code == 400

    schedule = client.get(
        f"/api/equipment/{eq.id}/bookings", params={"booking_date": BOOKING_DAY}, headers=stranger
    ).json()
    assert [b["id"] for b in schedule] == [booking_id]


def test_conflict_report_lists_overlaps_written_around_the_checker(client, store):
    admin, _ = ensure_admin_headers(client, store)
    user = create_user(store)
    eq = create_equipment(store)
    day = date.today() + timedelta(days=20)
    with store.transaction() as db:
        rows = [
            models.Booking(
                equipment_id=eq.id,
                user_id=user.id,
                booking_date=day,
                start_time=time(9, 0),
                end_time=time(10, 0),
                status="pending",
            ),
            models.Booking(
                equipment_id=eq.id,
                user_id=user.id,
                booking_date=day,
                start_time=time(9, 30),
                end_time=time(10, 30),
                status="pending",
            ),
        ]
        db.add_all(rows)
        db.flush()
        ids = sorted(str(row.id) for row in rows)

    report = client.get("/api/bookings/conflicts", headers=admin)
    assert report.status_code == 200
    assert ids in [sorted(pair) for pair in report.json()["overlapping"]]

    client.post(f"/api/bookings/{ids[0]}/reject", json={}, headers=admin)
    report = client.get("/api/bookings/conflicts", headers=admin).json()
    assert all(ids[1] not in pair for pair in report["overlapping"])
