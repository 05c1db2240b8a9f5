from sqlmodel import SQLModel, Field
from sqlalchemy import JSON, Column
from typing import Optional, List
from datetime import datetime, time
from uuid import UUID, uuid4

class Doctor(SQLModel, table=True):
    __tablename__ = "doctors"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    hospital_id: UUID = Field(foreign_key="hospitals.id", index=True)
    name: str
    specialization: Optional[str] = None
    # Weekday names, e.g. ["Monday", "Wednesday"]
    available_days: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    available_from: Optional[time] = None
    available_to: Optional[time] = None
    slot_duration_minutes: Optional[int] = Field(default=30)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
