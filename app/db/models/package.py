from sqlmodel import SQLModel, Field
from sqlalchemy import JSON, Column
from typing import Optional, List
from datetime import date, datetime
from uuid import UUID, uuid4

class PatientPackage(SQLModel, table=True):
    """A prepaid bundle of visits assigned to a patient."""
    __tablename__ = "patient_packages"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    hospital_id: UUID = Field(foreign_key="hospitals.id", index=True)
    patient_id: UUID = Field(foreign_key="patients.id", index=True)
    name: str
    total_visits: int = Field(default=1)
    used_visits: int = Field(default=0)
    status: str = Field(default="active") # active, exhausted, expired
    start_date: Optional[date] = None
    expiry_date: Optional[date] = None
    usage_history: List[dict] = Field(default_factory=list, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
