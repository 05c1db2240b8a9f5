from pydantic import BaseModel
from typing import Optional, List
from uuid import UUID
from datetime import date, datetime

class ConsumeVisitRequest(BaseModel):
    appointment_id: Optional[UUID] = None
    notes: Optional[str] = None

class RefundVisitRequest(BaseModel):
    appointment_id: Optional[UUID] = None

class PackageAssignmentResponse(BaseModel):
    id: UUID
    hospital_id: UUID
    patient_id: UUID
    name: str
    total_visits: int
    used_visits: int
    status: str
    start_date: Optional[date] = None
    expiry_date: Optional[date] = None
    usage_history: List[dict] = []
    updated_at: datetime

    class Config:
        from_attributes = True

class ConsumeVisitResponse(BaseModel):
    assignment: PackageAssignmentResponse
    remaining_visits: int
