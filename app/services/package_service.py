from datetime import date, datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import case, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFound, PackageExhausted, PackageExpired, PackageNotActive, ValidationError
from app.core.logger import get_logger
from app.core.utils import append_note
from app.db.models import Appointment, AuditLog, PatientPackage

logger = get_logger("packages")

ACTIVE = "active"
EXHAUSTED = "exhausted"
EXPIRED = "expired"


class PackageLedger:
    """Consumes and refunds prepaid package visits.

    Both movements are a single guarded UPDATE so concurrent callers can never
    push ``used_visits`` outside ``[0, total_visits]``; whoever loses the race
    sees zero affected rows and gets the matching rejection.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_assignment(self, assignment_id: UUID, hospital_id: Optional[UUID] = None) -> PatientPackage:
        assignment = await self.session.get(PatientPackage, assignment_id)
        if not assignment or (hospital_id is not None and assignment.hospital_id != hospital_id):
            raise NotFound("Patient package assignment not found")
        return assignment

    async def _check_consumable(self, assignment: PatientPackage, today: date):
        if assignment.status == EXHAUSTED:
            raise PackageExhausted()
        if assignment.status == EXPIRED:
            raise PackageExpired()
        if assignment.status != ACTIVE:
            raise PackageNotActive(f"Package is {assignment.status}")
        if assignment.expiry_date and assignment.expiry_date < today:
            assignment.status = EXPIRED
            assignment.updated_at = datetime.utcnow()
            self.session.add(assignment)
            await self.session.commit()
            raise PackageExpired()
        if assignment.used_visits >= assignment.total_visits:
            raise PackageExhausted()

    async def consume(
        self,
        assignment_id: UUID,
        appointment_id: Optional[UUID] = None,
        notes: Optional[str] = None,
        hospital_id: Optional[UUID] = None,
        today: Optional[date] = None,
    ) -> PatientPackage:
        today = today or date.today()
        assignment = await self.get_assignment(assignment_id, hospital_id)
        await self._check_consumable(assignment, today)

        # SET expressions see the pre-update row, hence used_visits + 1 in the case
        stmt = (
            update(PatientPackage)
            .where(
                PatientPackage.id == assignment.id,
                PatientPackage.status == ACTIVE,
                PatientPackage.used_visits < PatientPackage.total_visits,
            )
            .values(
                used_visits=PatientPackage.used_visits + 1,
                status=case(
                    (PatientPackage.used_visits + 1 >= PatientPackage.total_visits, EXHAUSTED),
                    else_=ACTIVE,
                ),
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount == 0:
            # Someone else got there first; report what the row looks like now
            await self.session.rollback()
            await self.session.refresh(assignment)
            logger.info(f"Lost consume race on package {assignment.id}")
            await self._check_consumable(assignment, today)
            raise PackageExhausted()

        await self.session.refresh(assignment)
        assignment.usage_history = list(assignment.usage_history or []) + [{
            "action": "consume",
            "consumed_at": datetime.utcnow().isoformat(),
            "appointment_id": str(appointment_id) if appointment_id else None,
            "notes": notes,
        }]
        self.session.add(assignment)

        if appointment_id is not None:
            await self._tag_appointment(assignment, appointment_id)

        self.session.add(AuditLog(
            hospital_id=assignment.hospital_id,
            action="package.visit_consumed",
            entity_id=assignment.id,
            payload={
                "assignment_id": str(assignment.id),
                "appointment_id": str(appointment_id) if appointment_id else None,
                "used_visits": assignment.used_visits,
            },
        ))
        await self.session.commit()
        await self.session.refresh(assignment)
        logger.info(
            f"Consumed visit on package {assignment.id} "
            f"({assignment.used_visits}/{assignment.total_visits}, {assignment.status})"
        )
        return assignment

    async def _tag_appointment(self, assignment: PatientPackage, appointment_id: UUID):
        appointment = await self.session.get(Appointment, appointment_id)
        if not appointment or appointment.patient_id != assignment.patient_id:
            return
        appointment.fee = 0
        appointment.package_visit_consumed = True
        appointment.package_assignment_id = assignment.id
        appointment.notes = append_note(
            appointment.notes,
            f"Package used: {assignment.name} ({assignment.used_visits}/{assignment.total_visits})",
        )
        appointment.updated_at = datetime.utcnow()
        self.session.add(appointment)

    async def refund(
        self,
        assignment_id: UUID,
        appointment_id: Optional[UUID] = None,
        hospital_id: Optional[UUID] = None,
    ) -> PatientPackage:
        assignment = await self.get_assignment(assignment_id, hospital_id)

        stmt = (
            update(PatientPackage)
            .where(
                PatientPackage.id == assignment.id,
                PatientPackage.used_visits > 0,
            )
            .values(
                used_visits=PatientPackage.used_visits - 1,
                status=case(
                    (PatientPackage.status == EXHAUSTED, ACTIVE),
                    else_=PatientPackage.status,
                ),
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount == 0:
            await self.session.rollback()
            raise ValidationError("Package has no consumed visits to refund")

        await self.session.refresh(assignment)
        assignment.usage_history = list(assignment.usage_history or []) + [{
            "action": "refund",
            "consumed_at": datetime.utcnow().isoformat(),
            "appointment_id": str(appointment_id) if appointment_id else None,
            "notes": None,
        }]
        self.session.add(assignment)

        if appointment_id is not None:
            appointment = await self.session.get(Appointment, appointment_id)
            if appointment and appointment.package_visit_consumed:
                appointment.package_visit_consumed = False
                appointment.updated_at = datetime.utcnow()
                self.session.add(appointment)

        self.session.add(AuditLog(
            hospital_id=assignment.hospital_id,
            action="package.visit_refunded",
            entity_id=assignment.id,
            payload={
                "assignment_id": str(assignment.id),
                "appointment_id": str(appointment_id) if appointment_id else None,
                "used_visits": assignment.used_visits,
            },
        ))
        await self.session.commit()
        await self.session.refresh(assignment)
        logger.info(f"Refunded visit on package {assignment.id} ({assignment.used_visits}/{assignment.total_visits})")
        return assignment
