from datetime import datetime, time

import pytest

from app.core.errors import ConsultationLimitReached, IllegalTransition
from app.db.models import Patient
from app.schemas.appointment import CreateAppointmentRequest
from app.services.booking_service import BookingService
from app.services.queue_service import QueueService
from tests.conftest import MONDAY, add_doctor, add_package


async def seed_day(session, hospital, doctor, count=4):
    """Book ``count`` patients into consecutive slots on MONDAY."""
    service = BookingService(session)
    booked = []
    for idx in range(count):
        patient = Patient(hospital_id=hospital.id, name=f"Walk-in {idx + 1}")
        session.add(patient)
        await session.commit()
        await session.refresh(patient)
        result = await service.create(hospital.id, CreateAppointmentRequest(
            patient_id=patient.id,
            doctor_id=doctor.id,
            appointment_date=MONDAY,
            appointment_time=time(9 + (idx * 30) // 60, (idx * 30) % 60),
        ))
        booked.append(result.appointment)
    return booked


@pytest.mark.asyncio
async def test_queue_orders_by_time_with_tokens(session, hospital, doctor):
    booked = await seed_day(session, hospital, doctor)

    queue = await QueueService(session).get_queue(hospital.id, MONDAY)

    assert queue.total == 4
    assert [item.id for item in queue.items] == [a.id for a in booked]
    assert [item.queue_token for item in queue.items] == [1, 2, 3, 4]


@pytest.mark.asyncio
async def test_paged_tokens_continue_from_skip(session, hospital, doctor):
    booked = await seed_day(session, hospital, doctor)

    queue = await QueueService(session).get_queue(hospital.id, MONDAY, skip=2, limit=1)

    assert queue.total == 4
    assert [item.queue_token for item in queue.items] == [3]
    assert queue.items[0].id == booked[2].id


@pytest.mark.asyncio
async def test_terminal_appointments_leave_the_queue(session, hospital, doctor):
    booked = await seed_day(session, hospital, doctor)
    service = BookingService(session)
    await service.cancel(hospital.id, booked[0].id, "Not coming")

    queue = await QueueService(session).get_queue(hospital.id, MONDAY)

    # Everyone behind the cancelled patient moves up a token
    assert queue.total == 3
    assert queue.items[0].id == booked[1].id
    assert queue.items[0].queue_token == 1


@pytest.mark.asyncio
async def test_queue_filters_by_doctor(session, hospital, doctor):
    await seed_day(session, hospital, doctor, count=2)
    other = await add_doctor(session, hospital, name="Dr. Shah")
    await seed_day(session, hospital, other, count=1)

    queue = await QueueService(session).get_queue(hospital.id, MONDAY, doctor_id=other.id)

    assert queue.total == 1
    assert queue.items[0].doctor_id == other.id


@pytest.mark.asyncio
async def test_check_in_confirms_and_reports_position(session, hospital, doctor):
    booked = await seed_day(session, hospital, doctor, count=3)

    result = await QueueService(session).check_in(hospital.id, booked[1].id, note="Brought reports")

    assert result.appointment.status == "confirmed"
    assert result.appointment.checked_in_at is not None
    assert result.queue_position == 2
    assert "Checked in at" in result.appointment.notes
    assert result.appointment.notes.endswith("- Brought reports")


class FrozenClock(datetime):
    @classmethod
    def utcnow(cls):
        return cls(2024, 1, 15, 3, 15)

    @classmethod
    def now(cls, tz=None):
        return cls(2024, 1, 15, 8, 45)


@pytest.mark.asyncio
async def test_check_in_note_uses_the_utc_clock(session, hospital, doctor, monkeypatch):
    booked = await seed_day(session, hospital, doctor, count=1)
    monkeypatch.setattr("app.services.queue_service.datetime", FrozenClock)

    result = await QueueService(session).check_in(hospital.id, booked[0].id)

    assert "Checked in at 03:15" in result.appointment.notes


@pytest.mark.asyncio
async def test_check_in_twice_is_illegal(session, hospital, doctor):
    booked = await seed_day(session, hospital, doctor, count=1)
    queue = QueueService(session)
    await queue.check_in(hospital.id, booked[0].id)

    with pytest.raises(IllegalTransition):
        await queue.check_in(hospital.id, booked[0].id)


@pytest.mark.asyncio
async def test_check_in_can_consume_package(session, hospital, doctor, patient):
    package = await add_package(session, patient)
    booked = await BookingService(session).create(hospital.id, CreateAppointmentRequest(
        patient_id=patient.id,
        doctor_id=doctor.id,
        appointment_date=MONDAY,
        appointment_time=time(9, 0),
        package_assignment_id=package.id,
    ))
    assert booked.appointment.package_visit_consumed is False

    result = await QueueService(session).check_in(hospital.id, booked.appointment.id, consume_package=True)

    assert result.warnings == []
    assert result.appointment.package_visit_consumed is True
    await session.refresh(package)
    assert package.used_visits == 1


@pytest.mark.asyncio
async def test_consultation_lifecycle(session, hospital, doctor):
    booked = await seed_day(session, hospital, doctor, count=1)
    queue = QueueService(session)

    with pytest.raises(IllegalTransition):
        await queue.start(hospital.id, booked[0].id)

    await queue.check_in(hospital.id, booked[0].id)
    started = await queue.start(hospital.id, booked[0].id)
    assert started.status == "in_progress"
    assert started.started_at is not None

    done = await queue.complete(hospital.id, booked[0].id, diagnosis="Viral fever")
    assert done.status == "completed"
    assert done.diagnosis == "Viral fever"
    assert done.ended_at >= done.started_at
    assert done.duration_seconds >= 0

    with pytest.raises(IllegalTransition):
        await queue.mark_no_show(hospital.id, booked[0].id)


@pytest.mark.asyncio
async def test_in_progress_cap(session, hospital, doctor):
    booked = await seed_day(session, hospital, doctor, count=2)
    queue = QueueService(session, max_in_progress=1)
    for appointment in booked:
        await queue.check_in(hospital.id, appointment.id)

    await queue.start(hospital.id, booked[0].id)

    with pytest.raises(ConsultationLimitReached):
        await queue.start(hospital.id, booked[1].id)


@pytest.mark.asyncio
async def test_unlimited_in_progress_by_default(session, hospital, doctor):
    booked = await seed_day(session, hospital, doctor, count=2)
    queue = QueueService(session)
    for appointment in booked:
        await queue.check_in(hospital.id, appointment.id)
        await queue.start(hospital.id, appointment.id)

    statuses = [item.status for item in (await queue.get_queue(hospital.id, MONDAY)).items]
    assert statuses == ["in_progress", "in_progress"]


@pytest.mark.asyncio
async def test_no_show_leaves_the_queue(session, hospital, doctor):
    booked = await seed_day(session, hospital, doctor, count=2)
    queue = QueueService(session)

    marked = await queue.mark_no_show(hospital.id, booked[0].id, reason="Did not arrive")

    assert marked.status == "no_show"
    assert marked.notes.endswith("No show: Did not arrive")
    assert (await queue.get_queue(hospital.id, MONDAY)).total == 1
