from sqlmodel import SQLModel, Field
from sqlalchemy import JSON, Column
from typing import Optional
from datetime import datetime
from uuid import UUID, uuid4

class AuditLog(SQLModel, table=True):
    """Append-only trail of appointment and package changes."""
    __tablename__ = "audit_logs"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    hospital_id: UUID = Field(foreign_key="hospitals.id", index=True)
    actor_id: Optional[UUID] = None
    action: str = Field(index=True) # appointment.created, appointment.status_changed, package.visit_consumed, ...
    # Appointment or package assignment the entry is about
    entity_id: Optional[UUID] = Field(default=None, index=True)
    payload: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=datetime.utcnow)
