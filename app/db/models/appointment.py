from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4
from sqlalchemy import Index, UniqueConstraint, text

class AppointmentStatus(str, Enum):
    SCHEDULED = "scheduled"
    POSTPONED = "postponed"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"

class AppointmentType(str, Enum):
    CONSULTATION = "consultation"
    FOLLOW_UP = "follow_up"
    EMERGENCY = "emergency"
    ROUTINE_CHECKUP = "routine_checkup"
    LAB_TEST = "lab_test"

# A doctor's slot is held by every appointment that is not cancelled
_SLOT_HELD = text("status <> 'cancelled'")

class Appointment(SQLModel, table=True):
    __tablename__ = "appointments"
    __table_args__ = (
        Index(
            "uq_appointments_active_slot",
            "hospital_id", "doctor_id", "appointment_date", "appointment_time",
            unique=True,
            postgresql_where=_SLOT_HELD,
            sqlite_where=_SLOT_HELD,
        ),
        UniqueConstraint("hospital_id", "appointment_number", name="uq_appointments_hospital_number"),
        Index("ix_appointments_queue", "hospital_id", "appointment_date", "status"),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    hospital_id: UUID = Field(foreign_key="hospitals.id")
    appointment_number: str
    doctor_id: UUID = Field(foreign_key="doctors.id", index=True)
    patient_id: UUID = Field(foreign_key="patients.id", index=True)
    appointment_date: date
    appointment_time: time
    # Stored as plain strings, values come from AppointmentType / AppointmentStatus
    type: str = Field(default=AppointmentType.CONSULTATION.value)
    status: str = Field(default=AppointmentStatus.SCHEDULED.value)
    notes: Optional[str] = None
    reason: Optional[str] = None
    diagnosis: Optional[str] = None
    cancelled_reason: Optional[str] = None
    fee: Optional[Decimal] = Field(default=None, max_digits=10, decimal_places=2)
    is_paid: bool = Field(default=False)
    package_assignment_id: Optional[UUID] = Field(default=None, foreign_key="patient_packages.id")
    package_visit_consumed: bool = Field(default=False)
    checked_in_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    duration_seconds: Optional[int] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
