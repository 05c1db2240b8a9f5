from datetime import date, time
from typing import List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.config import settings
from app.core.errors import NotFound
from app.core.utils import format_time, from_minutes, to_minutes, works_on
from app.db.models import Appointment, AppointmentStatus, Doctor, DoctorLeave
from app.schemas.doctor import LeaveCheckResponse, LeaveResponse, Slot

NON_WORKING_DAY = "non_working_day"
BOOKED = "booked"
ON_LEAVE = "on_leave"


def leave_covers(leave: DoctorLeave, slot_time: time) -> bool:
    if leave.is_full_day:
        return True
    # Partial leave without a window does not block anything
    if leave.start_time is None or leave.end_time is None:
        return False
    minutes = to_minutes(slot_time)
    return to_minutes(leave.start_time) <= minutes < to_minutes(leave.end_time)


class AvailabilityCalculator:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_doctor(self, doctor_id: UUID, hospital_id: Optional[UUID] = None) -> Doctor:
        doctor = await self.session.get(Doctor, doctor_id)
        if not doctor or (hospital_id is not None and doctor.hospital_id != hospital_id):
            raise NotFound("Doctor not found")
        return doctor

    async def get_approved_leaves(self, doctor_id: UUID, on_date: date) -> List[DoctorLeave]:
        stmt = select(DoctorLeave).where(
            DoctorLeave.doctor_id == doctor_id,
            DoctorLeave.leave_date == on_date,
            DoctorLeave.status == "approved",
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def get_booked_times(
        self, doctor_id: UUID, on_date: date, exclude_appointment_id: Optional[UUID] = None
    ) -> set:
        stmt = select(Appointment.appointment_time).where(
            Appointment.doctor_id == doctor_id,
            Appointment.appointment_date == on_date,
            Appointment.status != AppointmentStatus.CANCELLED.value,
        )
        if exclude_appointment_id is not None:
            stmt = stmt.where(Appointment.id != exclude_appointment_id)
        result = await self.session.execute(stmt)
        return {format_time(value) for value in result.scalars().all()}

    @staticmethod
    def working_window(doctor: Doctor):
        start = doctor.available_from or settings.DEFAULT_AVAILABLE_FROM
        end = doctor.available_to or settings.DEFAULT_AVAILABLE_TO
        duration = doctor.slot_duration_minutes or settings.DEFAULT_SLOT_DURATION_MINUTES
        return start, end, duration

    def candidate_times(self, doctor: Doctor) -> List[time]:
        start, end, duration = self.working_window(doctor)
        cursor, end_minutes = to_minutes(start), to_minutes(end)
        times = []
        while cursor + duration <= end_minutes:
            times.append(from_minutes(cursor))
            cursor += duration
        return times

    async def get_slots(
        self,
        doctor_id: UUID,
        on_date: date,
        hospital_id: Optional[UUID] = None,
        exclude_appointment_id: Optional[UUID] = None,
    ) -> List[Slot]:
        """Every candidate slot of the doctor's working window on ``on_date``.

        On a day the doctor does not work all slots come back unavailable, so
        an empty list only ever means nothing is configured (or the doctor is
        inactive). Past dates are reported like any other date.
        """
        doctor = await self.get_doctor(doctor_id, hospital_id)
        if not doctor.is_active:
            return []

        candidates = self.candidate_times(doctor)
        if not works_on(doctor.available_days, on_date):
            return [Slot(time=format_time(t), available=False, reason=NON_WORKING_DAY) for t in candidates]

        leaves = await self.get_approved_leaves(doctor.id, on_date)
        booked = await self.get_booked_times(doctor.id, on_date, exclude_appointment_id)

        slots = []
        for slot_time in candidates:
            label = format_time(slot_time)
            reason = None
            if label in booked:
                reason = BOOKED
            elif any(leave_covers(leave, slot_time) for leave in leaves):
                reason = ON_LEAVE
            slots.append(Slot(time=label, available=reason is None, reason=reason))
        return slots

    async def check_leave(
        self, doctor_id: UUID, on_date: date, hospital_id: Optional[UUID] = None
    ) -> LeaveCheckResponse:
        doctor = await self.get_doctor(doctor_id, hospital_id)
        leaves = await self.get_approved_leaves(doctor.id, on_date)
        if not leaves:
            return LeaveCheckResponse(on_leave=False)
        # A full-day row wins over partial windows
        leave = next((item for item in leaves if item.is_full_day), leaves[0])
        return LeaveCheckResponse(on_leave=True, leave=LeaveResponse.model_validate(leave))
