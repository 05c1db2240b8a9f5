from datetime import date, datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.config import settings
from app.core.errors import ConsultationLimitReached
from app.core.logger import get_logger
from app.db.models import Appointment, AppointmentStatus
from app.schemas.appointment import (
    AppointmentResponse,
    CheckInResponse,
    QueueItem,
    QueueResponse,
)
from app.services.booking_service import BookingService
from app.services.status_machine import ACTIVE_STATUSES

logger = get_logger("queue")

ACTIVE_VALUES = [status.value for status in ACTIVE_STATUSES]


class QueueService:
    """Walk-in ordering of a day's active appointments.

    Tokens are derived from the order every time the queue is read and are
    never stored: a cancelled or postponed appointment simply drops out and
    everyone behind it moves up.
    """

    def __init__(
        self,
        session: AsyncSession,
        booking: Optional[BookingService] = None,
        max_in_progress: Optional[int] = None,
    ):
        self.session = session
        self.booking = booking or BookingService(session)
        self.max_in_progress = max_in_progress if max_in_progress is not None else settings.MAX_IN_PROGRESS_PER_DOCTOR

    def _active_query(self, hospital_id: UUID, on_date: date, doctor_id: Optional[UUID] = None):
        stmt = select(Appointment).where(
            Appointment.hospital_id == hospital_id,
            Appointment.appointment_date == on_date,
            Appointment.status.in_(ACTIVE_VALUES),
        )
        if doctor_id is not None:
            stmt = stmt.where(Appointment.doctor_id == doctor_id)
        # appointment_number breaks ties that created_at cannot
        return stmt.order_by(
            Appointment.appointment_time,
            Appointment.created_at,
            Appointment.appointment_number,
        )

    async def get_queue(
        self,
        hospital_id: UUID,
        on_date: date,
        doctor_id: Optional[UUID] = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> QueueResponse:
        result = await self.session.execute(self._active_query(hospital_id, on_date, doctor_id))
        rows = result.scalars().all()
        end = skip + limit if limit is not None else None
        items = [
            QueueItem(**AppointmentResponse.model_validate(appointment).model_dump(), queue_token=skip + idx + 1)
            for idx, appointment in enumerate(rows[skip:end])
        ]
        return QueueResponse(date=on_date, total=len(rows), items=items)

    async def get_position(self, appointment: Appointment) -> Optional[int]:
        result = await self.session.execute(
            self._active_query(appointment.hospital_id, appointment.appointment_date, appointment.doctor_id)
        )
        for idx, row in enumerate(result.scalars().all()):
            if row.id == appointment.id:
                return idx + 1
        return None

    async def check_in(
        self,
        hospital_id: UUID,
        appointment_id: UUID,
        note: Optional[str] = None,
        consume_package: bool = False,
    ) -> CheckInResponse:
        appointment = await self.booking.get_appointment(hospital_id, appointment_id)
        line = f"Checked in at {datetime.utcnow().strftime('%H:%M')}"
        if note and note.strip():
            line = f"{line} - {note.strip()}"
        appointment = await self.booking.transition(appointment, AppointmentStatus.CONFIRMED, note=line)

        warnings = []
        if consume_package and appointment.package_assignment_id and not appointment.package_visit_consumed:
            await self.booking.consume_visit(appointment, warnings)

        position = await self.get_position(appointment)
        logger.info(f"Checked in {appointment.appointment_number}, position {position}")
        return CheckInResponse(
            appointment=AppointmentResponse.model_validate(appointment),
            queue_position=position,
            warnings=warnings,
        )

    async def count_in_progress(self, hospital_id: UUID, doctor_id: UUID, on_date: date) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(Appointment).where(
                Appointment.hospital_id == hospital_id,
                Appointment.doctor_id == doctor_id,
                Appointment.appointment_date == on_date,
                Appointment.status == AppointmentStatus.IN_PROGRESS.value,
            )
        )
        return result.scalar_one()

    async def start(self, hospital_id: UUID, appointment_id: UUID) -> Appointment:
        appointment = await self.booking.get_appointment(hospital_id, appointment_id)
        self.booking.machine.validate(appointment.status, AppointmentStatus.IN_PROGRESS)
        if self.max_in_progress is not None:
            running = await self.count_in_progress(hospital_id, appointment.doctor_id, appointment.appointment_date)
            if running >= self.max_in_progress:
                raise ConsultationLimitReached(
                    f"Doctor already has {running} consultation(s) in progress"
                )
        return await self.booking.transition(appointment, AppointmentStatus.IN_PROGRESS)

    async def complete(self, hospital_id: UUID, appointment_id: UUID, diagnosis: Optional[str] = None) -> Appointment:
        appointment = await self.booking.get_appointment(hospital_id, appointment_id)
        return await self.booking.transition(appointment, AppointmentStatus.COMPLETED, diagnosis=diagnosis)

    async def mark_no_show(self, hospital_id: UUID, appointment_id: UUID, reason: Optional[str] = None) -> Appointment:
        appointment = await self.booking.get_appointment(hospital_id, appointment_id)
        return await self.booking.transition(appointment, AppointmentStatus.NO_SHOW, reason=reason)
