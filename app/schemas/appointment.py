from pydantic import BaseModel, model_validator
from uuid import UUID
from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional, List

from app.db.models.appointment import AppointmentStatus, AppointmentType
from app.schemas.preferences import BookingPreferences

class CreateAppointmentRequest(BaseModel):
    patient_id: UUID
    # May be omitted when preferences carry a preferred doctor
    doctor_id: Optional[UUID] = None
    appointment_date: date
    appointment_time: time
    type: Optional[AppointmentType] = None
    reason: Optional[str] = None
    notes: Optional[str] = None
    fee: Optional[Decimal] = None
    is_paid: bool = False
    package_assignment_id: Optional[UUID] = None
    consume_package: bool = False
    preferences: Optional[BookingPreferences] = None

class UpdateAppointmentRequest(BaseModel):
    status: Optional[AppointmentStatus] = None
    # Why the status changed (cancellation / postponement / no-show)
    status_reason: Optional[str] = None
    appointment_date: Optional[date] = None
    appointment_time: Optional[time] = None
    type: Optional[AppointmentType] = None
    notes: Optional[str] = None
    reason: Optional[str] = None
    diagnosis: Optional[str] = None
    fee: Optional[Decimal] = None
    is_paid: Optional[bool] = None
    # Cancelling gives back a consumed package visit unless this is off
    refund_package: bool = True

    @property
    def reschedules(self) -> bool:
        return self.appointment_date is not None or self.appointment_time is not None

    @model_validator(mode="after")
    def check_status_combination(self):
        if self.reschedules and self.status not in (None, AppointmentStatus.POSTPONED):
            raise ValueError("Changing the date or time postpones the appointment; status must be 'postponed' or omitted")
        if self.status == AppointmentStatus.POSTPONED and not self.reschedules:
            raise ValueError("Postponing requires a new appointment_date or appointment_time")
        return self

class PostponeRequest(BaseModel):
    appointment_date: date
    appointment_time: time
    reason: Optional[str] = None

class CancelRequest(BaseModel):
    reason: Optional[str] = None
    refund_package: bool = True

class CheckInRequest(BaseModel):
    note: Optional[str] = None
    consume_package: bool = False

class CompleteRequest(BaseModel):
    diagnosis: Optional[str] = None

class NoShowRequest(BaseModel):
    reason: Optional[str] = None

class AppointmentResponse(BaseModel):
    id: UUID
    hospital_id: UUID
    appointment_number: str
    doctor_id: UUID
    patient_id: UUID
    appointment_date: date
    appointment_time: time
    type: str
    status: str
    notes: Optional[str] = None
    reason: Optional[str] = None
    diagnosis: Optional[str] = None
    cancelled_reason: Optional[str] = None
    fee: Optional[Decimal] = None
    is_paid: bool
    package_assignment_id: Optional[UUID] = None
    package_visit_consumed: bool = False
    checked_in_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    duration_seconds: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class AppointmentListResponse(BaseModel):
    total: int
    skip: int
    limit: int
    items: List[AppointmentResponse]

class BookingWarning(BaseModel):
    code: str # doctor_on_leave, package_not_consumed
    message: str

class BookingResult(BaseModel):
    appointment: AppointmentResponse
    warnings: List[BookingWarning] = []

class QueueItem(AppointmentResponse):
    queue_token: int

class QueueResponse(BaseModel):
    date: date
    total: int
    items: List[QueueItem]

class CheckInResponse(BaseModel):
    appointment: AppointmentResponse
    queue_position: Optional[int] = None
    warnings: List[BookingWarning] = []
