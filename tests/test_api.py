import pytest

from tests.conftest import MONDAY, add_package, make_token


@pytest.mark.asyncio
async def test_requests_without_token_are_rejected(client, doctor):
    response = await client.get(f"/api/v1/doctors/{doctor.id}/slots", params={"date": MONDAY.isoformat()})

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_tokens_with_wrong_secret_are_rejected(client, hospital, doctor):
    headers = {"Authorization": f"Bearer {make_token(hospital.id, secret='some-other-issuer-secret-0123456789abcdef')}"}

    response = await client.get(
        f"/api/v1/doctors/{doctor.id}/slots", params={"date": MONDAY.isoformat()}, headers=headers
    )

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_booking_flow(client, auth_headers, doctor, patient):
    # 1. Fresh day, every slot open
    slots = await client.get(
        f"/api/v1/doctors/{doctor.id}/slots", params={"date": MONDAY.isoformat()}, headers=auth_headers
    )
    assert slots.status_code == 200
    assert slots.json() == [
        {"time": "09:00", "available": True, "reason": None},
        {"time": "09:30", "available": True, "reason": None},
        {"time": "10:00", "available": True, "reason": None},
        {"time": "10:30", "available": True, "reason": None},
    ]

    # 2. Book 09:30
    payload = {
        "patient_id": str(patient.id),
        "doctor_id": str(doctor.id),
        "appointment_date": MONDAY.isoformat(),
        "appointment_time": "09:30",
        "reason": "Fever",
    }
    created = await client.post("/api/v1/appointments/", json=payload, headers=auth_headers)
    assert created.status_code == 201
    body = created.json()
    assert body["warnings"] == []
    appointment_id = body["appointment"]["id"]
    assert body["appointment"]["appointment_number"] == "APT-000001"

    # 3. The slot is now taken
    slots = await client.get(
        f"/api/v1/doctors/{doctor.id}/slots", params={"date": MONDAY.isoformat()}, headers=auth_headers
    )
    assert [slot["available"] for slot in slots.json()] == [True, False, True, True]

    # 4. Booking it again conflicts
    again = await client.post("/api/v1/appointments/", json=payload, headers=auth_headers)
    assert again.status_code == 409
    assert again.json()["error"] == "slot_conflict"

    # 5. Check in and see the queue
    checked_in = await client.post(f"/api/v1/queue/{appointment_id}/check-in", json={}, headers=auth_headers)
    assert checked_in.status_code == 200
    assert checked_in.json()["appointment"]["status"] == "confirmed"
    assert checked_in.json()["queue_position"] == 1

    queue = await client.get("/api/v1/queue/", params={"date": MONDAY.isoformat()}, headers=auth_headers)
    assert queue.status_code == 200
    assert queue.json()["total"] == 1
    assert queue.json()["items"][0]["queue_token"] == 1

    # 6. Consultation
    started = await client.post(f"/api/v1/queue/{appointment_id}/start", headers=auth_headers)
    assert started.json()["status"] == "in_progress"
    completed = await client.post(
        f"/api/v1/queue/{appointment_id}/complete", json={"diagnosis": "Viral fever"}, headers=auth_headers
    )
    assert completed.status_code == 200
    assert completed.json()["status"] == "completed"

    # 7. Completed appointments cannot be cancelled
    cancelled = await client.post(
        f"/api/v1/appointments/{appointment_id}/cancel", json={"reason": "Too late"}, headers=auth_headers
    )
    assert cancelled.status_code == 409
    assert cancelled.json()["error"] == "illegal_transition"


@pytest.mark.asyncio
async def test_patch_and_postpone(client, auth_headers, doctor, patient):
    payload = {
        "patient_id": str(patient.id),
        "doctor_id": str(doctor.id),
        "appointment_date": MONDAY.isoformat(),
        "appointment_time": "09:00",
    }
    created = await client.post("/api/v1/appointments/", json=payload, headers=auth_headers)
    appointment_id = created.json()["appointment"]["id"]

    patched = await client.patch(
        f"/api/v1/appointments/{appointment_id}", json={"is_paid": True, "fee": "350.00"}, headers=auth_headers
    )
    assert patched.status_code == 200
    assert patched.json()["is_paid"] is True

    bad = await client.patch(
        f"/api/v1/appointments/{appointment_id}",
        json={"status": "confirmed", "appointment_time": "10:00"},
        headers=auth_headers,
    )
    assert bad.status_code == 422

    postponed = await client.post(
        f"/api/v1/appointments/{appointment_id}/postpone",
        json={"appointment_date": MONDAY.isoformat(), "appointment_time": "10:30", "reason": "Doctor running late"},
        headers=auth_headers,
    )
    assert postponed.status_code == 200
    assert postponed.json()["appointment"]["status"] == "postponed"
    assert postponed.json()["appointment"]["appointment_time"] == "10:30:00"

    fetched = await client.get(f"/api/v1/appointments/{appointment_id}", headers=auth_headers)
    assert fetched.json()["status"] == "postponed"


@pytest.mark.asyncio
async def test_cancel_without_reason_is_a_validation_error(client, auth_headers, doctor, patient):
    payload = {
        "patient_id": str(patient.id),
        "doctor_id": str(doctor.id),
        "appointment_date": MONDAY.isoformat(),
        "appointment_time": "10:00",
    }
    created = await client.post("/api/v1/appointments/", json=payload, headers=auth_headers)
    appointment_id = created.json()["appointment"]["id"]

    response = await client.post(f"/api/v1/appointments/{appointment_id}/cancel", json={}, headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"


@pytest.mark.asyncio
async def test_other_hospital_sees_nothing(client, other_hospital, hospital, doctor, patient, auth_headers):
    payload = {
        "patient_id": str(patient.id),
        "doctor_id": str(doctor.id),
        "appointment_date": MONDAY.isoformat(),
        "appointment_time": "10:00",
    }
    created = await client.post("/api/v1/appointments/", json=payload, headers=auth_headers)
    appointment_id = created.json()["appointment"]["id"]
    foreign = {"Authorization": f"Bearer {make_token(other_hospital.id)}"}

    fetched = await client.get(f"/api/v1/appointments/{appointment_id}", headers=foreign)
    assert fetched.status_code == 404

    booked = await client.post("/api/v1/appointments/", json=payload, headers=foreign)
    assert booked.status_code == 400
    assert booked.json()["error"] == "cross_hospital_reference"


@pytest.mark.asyncio
async def test_package_routes(client, auth_headers, session, patient):
    package = await add_package(session, patient, total_visits=1)

    consumed = await client.post(f"/api/v1/packages/{package.id}/consume", json={}, headers=auth_headers)
    assert consumed.status_code == 200
    assert consumed.json()["remaining_visits"] == 0
    assert consumed.json()["assignment"]["status"] == "exhausted"

    exhausted = await client.post(f"/api/v1/packages/{package.id}/consume", json={}, headers=auth_headers)
    assert exhausted.status_code == 409
    assert exhausted.json()["error"] == "package_exhausted"

    refunded = await client.post(f"/api/v1/packages/{package.id}/refund", json={}, headers=auth_headers)
    assert refunded.status_code == 200
    assert refunded.json()["used_visits"] == 0
    assert refunded.json()["status"] == "active"

    fetched = await client.get(f"/api/v1/packages/{package.id}", headers=auth_headers)
    assert len(fetched.json()["usage_history"]) == 2


@pytest.mark.asyncio
async def test_leave_check_route(client, auth_headers, doctor):
    response = await client.get(
        f"/api/v1/doctors/{doctor.id}/leave", params={"date": MONDAY.isoformat()}, headers=auth_headers
    )

    assert response.status_code == 200
    assert response.json() == {"on_leave": False, "leave": None}


@pytest.mark.asyncio
async def test_list_route_filters_and_pages(client, auth_headers, doctor, patient, second_patient):
    for person, at in ((patient, "09:00"), (second_patient, "09:30"), (patient, "10:00")):
        payload = {
            "patient_id": str(person.id),
            "doctor_id": str(doctor.id),
            "appointment_date": MONDAY.isoformat(),
            "appointment_time": at,
        }
        created = await client.post("/api/v1/appointments/", json=payload, headers=auth_headers)
        assert created.status_code == 201

    listing = await client.get("/api/v1/appointments/", params={"date": MONDAY.isoformat()}, headers=auth_headers)
    assert listing.status_code == 200
    assert listing.json()["total"] == 3
    assert [item["appointment_time"] for item in listing.json()["items"]] == ["10:00:00", "09:30:00", "09:00:00"]

    mine = await client.get(
        "/api/v1/appointments/",
        params={"patient_id": str(patient.id), "status": "scheduled", "limit": 1},
        headers=auth_headers,
    )
    assert mine.json()["total"] == 2
    assert len(mine.json()["items"]) == 1

    bad = await client.get("/api/v1/appointments/", params={"status": "lost"}, headers=auth_headers)
    assert bad.status_code == 422

    today = await client.get("/api/v1/appointments/today", headers=auth_headers)
    assert today.status_code == 200
    assert today.json()["total"] == 0


@pytest.mark.asyncio
async def test_patch_cancel_gives_the_visit_back(client, auth_headers, session, doctor, patient):
    package = await add_package(session, patient, total_visits=1)
    payload = {
        "patient_id": str(patient.id),
        "doctor_id": str(doctor.id),
        "appointment_date": MONDAY.isoformat(),
        "appointment_time": "09:00",
        "package_assignment_id": str(package.id),
        "consume_package": True,
    }
    created = await client.post("/api/v1/appointments/", json=payload, headers=auth_headers)
    appointment_id = created.json()["appointment"]["id"]
    assert created.json()["appointment"]["package_visit_consumed"] is True

    patched = await client.patch(
        f"/api/v1/appointments/{appointment_id}",
        json={"status": "cancelled", "status_reason": "Clinic closed"},
        headers=auth_headers,
    )
    assert patched.status_code == 200
    assert patched.json()["package_visit_consumed"] is False

    fetched = await client.get(f"/api/v1/packages/{package.id}", headers=auth_headers)
    assert fetched.json()["used_visits"] == 0
    assert fetched.json()["status"] == "active"

    again = await client.patch(
        f"/api/v1/appointments/{appointment_id}",
        json={"status": "cancelled", "status_reason": "again"},
        headers=auth_headers,
    )
    assert again.status_code == 409
    assert again.json()["error"] == "illegal_transition"
