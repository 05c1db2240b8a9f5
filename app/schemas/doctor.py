from pydantic import BaseModel
from typing import Optional
from uuid import UUID
from datetime import date, time

class Slot(BaseModel):
    time: str # HH:MM
    available: bool
    # non_working_day, booked, on_leave
    reason: Optional[str] = None

class LeaveResponse(BaseModel):
    id: UUID
    doctor_id: UUID
    leave_date: date
    is_full_day: bool
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    status: str
    reason: Optional[str] = None

    class Config:
        from_attributes = True

class LeaveCheckResponse(BaseModel):
    on_leave: bool
    leave: Optional[LeaveResponse] = None
