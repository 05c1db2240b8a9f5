from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import date, datetime, time
from uuid import UUID, uuid4

class DoctorLeave(SQLModel, table=True):
    __tablename__ = "doctor_leaves"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    hospital_id: UUID = Field(foreign_key="hospitals.id")
    doctor_id: UUID = Field(foreign_key="doctors.id", index=True)
    leave_date: date = Field(index=True)
    is_full_day: bool = Field(default=True)
    # Only set for partial-day leave
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    status: str = Field(default="pending") # pending, approved, rejected
    reason: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
