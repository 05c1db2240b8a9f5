from datetime import date, datetime, time
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.config import settings
from app.core.errors import (
    CrossHospitalReference,
    DomainError,
    NotFound,
    PackageExhausted,
    PackageExpired,
    PackageNotActive,
    SlotConflict,
    ValidationError,
)
from app.core.logger import get_logger
from app.core.utils import append_note, day_name, format_appointment_number, format_time, normalize_time
from app.db.models import (
    Appointment,
    AppointmentCounter,
    AppointmentStatus,
    AuditLog,
    Doctor,
    Patient,
    PatientPackage,
)
from app.schemas.appointment import (
    AppointmentListResponse,
    AppointmentResponse,
    BookingResult,
    BookingWarning,
    CreateAppointmentRequest,
    PostponeRequest,
    UpdateAppointmentRequest,
)
from app.schemas.preferences import BookingPreferences
from app.services.availability_service import BOOKED, NON_WORKING_DAY, ON_LEAVE, AvailabilityCalculator
from app.services.package_service import PackageLedger
from app.services.status_machine import StatusStateMachine

logger = get_logger("booking")

SLOT_INDEX = "uq_appointments_active_slot"
LEDGER_REJECTIONS = (PackageExhausted, PackageExpired, PackageNotActive)
FREE_FIELDS = ("notes", "reason", "diagnosis", "fee", "is_paid", "type")


def is_slot_conflict(exc: IntegrityError) -> bool:
    message = str(exc.orig)
    # PostgreSQL names the index, SQLite lists its columns
    return SLOT_INDEX in message or "appointments.appointment_time" in message


class BookingService:
    def __init__(
        self,
        session: AsyncSession,
        availability: Optional[AvailabilityCalculator] = None,
        ledger: Optional[PackageLedger] = None,
        machine: Optional[StatusStateMachine] = None,
    ):
        self.session = session
        self.availability = availability or AvailabilityCalculator(session)
        self.ledger = ledger or PackageLedger(session)
        self.machine = machine or StatusStateMachine(settings.DEFAULT_POSTPONE_REASON)

    async def get_appointment(self, hospital_id: UUID, appointment_id: UUID) -> Appointment:
        appointment = await self.session.get(Appointment, appointment_id)
        if not appointment or appointment.hospital_id != hospital_id:
            raise NotFound("Appointment not found")
        return appointment

    async def _load_scoped(self, model, record_id: UUID, hospital_id: UUID, label: str):
        record = await self.session.get(model, record_id)
        if not record:
            raise NotFound(f"{label} not found")
        if record.hospital_id != hospital_id:
            raise CrossHospitalReference(f"{label} belongs to another hospital")
        return record

    async def precheck_slot(
        self,
        doctor: Doctor,
        on_date: date,
        at_time: time,
        exclude_appointment_id: Optional[UUID] = None,
    ) -> List[BookingWarning]:
        """Fast-fail check of the target slot before writing.

        The unique index is what actually prevents double booking; this only
        turns the common case into a clean error before touching storage.
        """
        slots = await self.availability.get_slots(
            doctor.id, on_date, exclude_appointment_id=exclude_appointment_id
        )
        label = format_time(at_time)
        slot = next((item for item in slots if item.time == label), None)
        if slot is None:
            raise ValidationError("Doctor is not available at the selected date/time")
        if slot.reason == NON_WORKING_DAY:
            raise ValidationError(f"Doctor does not work on {day_name(on_date)}")
        if slot.reason == BOOKED:
            raise SlotConflict(f"{on_date.isoformat()} {label} is already booked for this doctor")

        warnings = []
        if slot.reason == ON_LEAVE:
            warnings.append(BookingWarning(
                code="doctor_on_leave",
                message=f"Doctor is on approved leave at {on_date.isoformat()} {label}",
            ))
        return warnings

    async def _ensure_counter(self, hospital_id: UUID):
        result = await self.session.execute(
            select(AppointmentCounter.id).where(AppointmentCounter.hospital_id == hospital_id)
        )
        if result.scalar_one_or_none() is not None:
            return
        self.session.add(AppointmentCounter(hospital_id=hospital_id))
        try:
            await self.session.commit()
        except IntegrityError:
            # Created by a concurrent request
            await self.session.rollback()

    async def _next_appointment_number(self, hospital_id: UUID) -> str:
        # Runs inside the booking transaction, so a failed insert gives the number back
        await self.session.execute(
            update(AppointmentCounter)
            .where(AppointmentCounter.hospital_id == hospital_id)
            .values(last_number=AppointmentCounter.last_number + 1)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(
            select(AppointmentCounter.last_number).where(AppointmentCounter.hospital_id == hospital_id)
        )
        return format_appointment_number(settings.APPOINTMENT_NUMBER_PREFIX, result.scalar_one())

    async def _commit_slot(self, doctor_id: UUID, on_date: date, at_time: time):
        try:
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            if not is_slot_conflict(exc):
                raise
            # Expected outcome of two requests racing for one slot
            logger.info(f"Slot conflict for doctor {doctor_id} at {on_date} {format_time(at_time)}")
            raise SlotConflict(f"{on_date.isoformat()} {format_time(at_time)} is already booked for this doctor")

    def _audit(self, appointment: Appointment, action: str, payload: dict):
        payload = {"appointment_id": str(appointment.id), **payload}
        self.session.add(AuditLog(
            hospital_id=appointment.hospital_id,
            action=action,
            entity_id=appointment.id,
            payload=payload,
        ))

    @staticmethod
    def _apply_fields(appointment: Appointment, changes: Optional[dict]):
        for key, value in (changes or {}).items():
            if key in ("is_paid", "type") and value is None:
                continue
            if key == "type":
                value = value.value if hasattr(value, "value") else value
            setattr(appointment, key, value)

    async def consume_visit(self, appointment: Appointment, warnings: List[BookingWarning]):
        try:
            await self.ledger.consume(
                appointment.package_assignment_id,
                appointment_id=appointment.id,
                hospital_id=appointment.hospital_id,
            )
        except LEDGER_REJECTIONS as exc:
            logger.info(f"Package not consumed for {appointment.appointment_number}: {exc.detail}")
            warnings.append(BookingWarning(code="package_not_consumed", message=exc.detail))
        await self.session.refresh(appointment)

    async def create(
        self,
        hospital_id: UUID,
        request: CreateAppointmentRequest,
        preferences: Optional[BookingPreferences] = None,
    ) -> BookingResult:
        preferences = preferences or request.preferences or BookingPreferences()

        doctor_id = request.doctor_id
        if doctor_id is None and preferences.smart_defaults:
            doctor_id = preferences.preferred_doctor_id
        if doctor_id is None:
            raise ValidationError("doctor_id is required")

        # 1. Everything referenced must live in the caller's hospital
        patient = await self._load_scoped(Patient, request.patient_id, hospital_id, "Patient")
        doctor = await self._load_scoped(Doctor, doctor_id, hospital_id, "Doctor")
        assignment = None
        if request.package_assignment_id:
            assignment = await self._load_scoped(
                PatientPackage, request.package_assignment_id, hospital_id, "Package assignment"
            )
            if assignment.patient_id != patient.id:
                raise ValidationError("Package assignment does not belong to the patient")

        # 2. Pre-check, leave only produces a warning
        at_time = normalize_time(request.appointment_time)
        warnings = await self.precheck_slot(doctor, request.appointment_date, at_time)

        # 3. Number and insert in one transaction
        await self._ensure_counter(hospital_id)
        appointment = Appointment(
            hospital_id=hospital_id,
            appointment_number=await self._next_appointment_number(hospital_id),
            doctor_id=doctor.id,
            patient_id=patient.id,
            appointment_date=request.appointment_date,
            appointment_time=at_time,
            type=(request.type or preferences.default_type).value,
            status=AppointmentStatus.SCHEDULED.value,
            notes=request.notes,
            reason=request.reason,
            fee=request.fee,
            is_paid=request.is_paid,
            package_assignment_id=assignment.id if assignment else None,
        )
        self.session.add(appointment)
        self._audit(appointment, "appointment.created", {
            "appointment_number": appointment.appointment_number,
            "doctor_id": str(doctor.id),
            "appointment_date": request.appointment_date.isoformat(),
            "appointment_time": format_time(at_time),
        })
        await self._commit_slot(doctor.id, request.appointment_date, at_time)
        await self.session.refresh(appointment)
        logger.info(
            f"Booked {appointment.appointment_number} with doctor {doctor.id} "
            f"on {appointment.appointment_date} {format_time(appointment.appointment_time)}"
        )

        # 4. Package consumption is independent of the booking
        if assignment and (request.consume_package or preferences.consume_package_on_booking):
            await self.consume_visit(appointment, warnings)

        return BookingResult(appointment=AppointmentResponse.model_validate(appointment), warnings=warnings)

    async def transition(
        self,
        appointment: Appointment,
        requested: AppointmentStatus,
        *,
        reason: Optional[str] = None,
        diagnosis: Optional[str] = None,
        note: Optional[str] = None,
        changes: Optional[dict] = None,
        refund_package: bool = True,
    ) -> Appointment:
        """Move an appointment to ``requested``; scheduling fields stay as they are.

        Postponing changes the slot and goes through ``reschedule`` instead.
        Cancelling gives back a package visit the appointment consumed unless
        ``refund_package`` is off.
        """
        requested = AppointmentStatus(requested)
        previous = appointment.status
        recorded_reason = self.machine.validate(previous, requested, reason=reason)
        refundable = (
            requested == AppointmentStatus.CANCELLED
            and refund_package
            and appointment.package_visit_consumed
            and appointment.package_assignment_id is not None
        )

        now = datetime.utcnow()
        if requested == AppointmentStatus.CANCELLED:
            appointment.cancelled_reason = recorded_reason
            note = note or f"Cancelled: {recorded_reason}"
        elif requested == AppointmentStatus.NO_SHOW and recorded_reason:
            note = note or f"No show: {recorded_reason}"
        elif requested == AppointmentStatus.CONFIRMED:
            appointment.checked_in_at = now
        elif requested == AppointmentStatus.IN_PROGRESS:
            appointment.started_at = now
        elif requested == AppointmentStatus.COMPLETED:
            appointment.ended_at = now
            if appointment.started_at:
                appointment.duration_seconds = int((now - appointment.started_at).total_seconds())
            if diagnosis:
                appointment.diagnosis = diagnosis

        self._apply_fields(appointment, changes)
        appointment.status = requested.value
        if note:
            appointment.notes = append_note(appointment.notes, note)
        appointment.updated_at = now
        self.session.add(appointment)
        self._audit(appointment, "appointment.status_changed", {
            "from": AppointmentStatus(previous).value,
            "to": requested.value,
            "reason": recorded_reason,
        })
        await self.session.commit()
        await self.session.refresh(appointment)
        logger.info(f"{appointment.appointment_number}: {AppointmentStatus(previous).value} -> {requested.value}")

        if refundable:
            number = appointment.appointment_number
            try:
                await self.ledger.refund(appointment.package_assignment_id, appointment_id=appointment.id)
            except DomainError as exc:
                logger.warning(f"Could not refund package visit for {number}: {exc.detail}")
            await self.session.refresh(appointment)
        return appointment

    async def reschedule(
        self,
        appointment: Appointment,
        new_date: date,
        new_time: time,
        reason: Optional[str] = None,
        changes: Optional[dict] = None,
    ) -> List[BookingWarning]:
        previous = appointment.status
        recorded_reason = self.machine.validate(
            previous,
            AppointmentStatus.POSTPONED,
            reason=reason,
            appointment_date=new_date,
            appointment_time=new_time,
        )
        new_time = normalize_time(new_time)
        doctor = await self.availability.get_doctor(appointment.doctor_id)
        warnings = await self.precheck_slot(doctor, new_date, new_time, exclude_appointment_id=appointment.id)

        old_label = f"{appointment.appointment_date.isoformat()} {format_time(appointment.appointment_time)}"
        new_label = f"{new_date.isoformat()} {format_time(new_time)}"
        self._apply_fields(appointment, changes)
        appointment.appointment_date = new_date
        appointment.appointment_time = new_time
        appointment.status = AppointmentStatus.POSTPONED.value
        appointment.notes = append_note(appointment.notes, f"Postponed from {old_label} to {new_label}: {recorded_reason}")
        appointment.updated_at = datetime.utcnow()
        self.session.add(appointment)
        self._audit(appointment, "appointment.status_changed", {
            "from": AppointmentStatus(previous).value,
            "to": AppointmentStatus.POSTPONED.value,
            "reason": recorded_reason,
            "previous_slot": old_label,
            "new_slot": new_label,
        })
        await self._commit_slot(appointment.doctor_id, new_date, new_time)
        await self.session.refresh(appointment)
        logger.info(f"{appointment.appointment_number}: postponed from {old_label} to {new_label}")
        return warnings

    async def postpone(self, hospital_id: UUID, appointment_id: UUID, request: PostponeRequest) -> BookingResult:
        appointment = await self.get_appointment(hospital_id, appointment_id)
        warnings = await self.reschedule(
            appointment, request.appointment_date, request.appointment_time, request.reason
        )
        return BookingResult(appointment=AppointmentResponse.model_validate(appointment), warnings=warnings)

    async def update(self, hospital_id: UUID, appointment_id: UUID, patch: UpdateAppointmentRequest) -> Appointment:
        appointment = await self.get_appointment(hospital_id, appointment_id)
        data = patch.model_dump(exclude_unset=True)
        changes = {key: data[key] for key in FREE_FIELDS if key in data}

        if patch.reschedules:
            if patch.status not in (None, AppointmentStatus.POSTPONED):
                raise ValidationError("Changing the date or time postpones the appointment")
            await self.reschedule(
                appointment,
                patch.appointment_date or appointment.appointment_date,
                patch.appointment_time or appointment.appointment_time,
                patch.status_reason,
                changes=changes,
            )
            return appointment

        # Repeating an active status is a no-op; terminal states accept nothing
        if patch.status is not None and (
            self.machine.is_terminal(appointment.status)
            or AppointmentStatus(appointment.status) != patch.status
        ):
            return await self.transition(
                appointment,
                patch.status,
                reason=patch.status_reason,
                diagnosis=patch.diagnosis,
                changes=changes,
                refund_package=patch.refund_package,
            )

        if changes:
            self._apply_fields(appointment, changes)
            appointment.updated_at = datetime.utcnow()
            self.session.add(appointment)
            await self.session.commit()
            await self.session.refresh(appointment)
        return appointment

    async def cancel(
        self,
        hospital_id: UUID,
        appointment_id: UUID,
        reason: Optional[str],
        refund_package: bool = True,
    ) -> Appointment:
        if not (reason or "").strip():
            raise ValidationError("A reason is required to cancel an appointment")
        patch = UpdateAppointmentRequest(
            status=AppointmentStatus.CANCELLED,
            status_reason=reason,
            refund_package=refund_package,
        )
        return await self.update(hospital_id, appointment_id, patch)

    async def list_appointments(
        self,
        hospital_id: UUID,
        doctor_id: Optional[UUID] = None,
        patient_id: Optional[UUID] = None,
        status: Optional[AppointmentStatus] = None,
        on_date: Optional[date] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        is_paid: Optional[bool] = None,
        exclude_cancelled: bool = False,
        skip: int = 0,
        limit: int = 20,
    ) -> AppointmentListResponse:
        """Appointments of a hospital in any status, newest slot first.

        ``on_date`` wins over the ``date_from``/``date_to`` range.
        """
        filters = [Appointment.hospital_id == hospital_id]
        if doctor_id is not None:
            filters.append(Appointment.doctor_id == doctor_id)
        if patient_id is not None:
            filters.append(Appointment.patient_id == patient_id)
        if status is not None:
            filters.append(Appointment.status == AppointmentStatus(status).value)
        if exclude_cancelled:
            filters.append(Appointment.status != AppointmentStatus.CANCELLED.value)
        if is_paid is not None:
            filters.append(Appointment.is_paid == is_paid)
        if on_date is not None:
            filters.append(Appointment.appointment_date == on_date)
        else:
            if date_from is not None:
                filters.append(Appointment.appointment_date >= date_from)
            if date_to is not None:
                filters.append(Appointment.appointment_date <= date_to)

        total = (
            await self.session.execute(select(func.count()).select_from(Appointment).where(*filters))
        ).scalar_one()
        stmt = (
            select(Appointment)
            .where(*filters)
            .order_by(Appointment.appointment_date.desc(), Appointment.appointment_time.desc())
            .offset(skip)
            .limit(limit)
        )
        rows = (await self.session.execute(stmt)).scalars().all()
        return AppointmentListResponse(
            total=total,
            skip=skip,
            limit=limit,
            items=[AppointmentResponse.model_validate(row) for row in rows],
        )

    async def list_today(self, hospital_id: UUID, doctor_id: Optional[UUID] = None) -> AppointmentListResponse:
        # Same clock as the stored timestamps
        return await self.list_appointments(
            hospital_id,
            doctor_id=doctor_id,
            on_date=datetime.utcnow().date(),
            exclude_cancelled=True,
            limit=500,
        )
