from sqlmodel import SQLModel, Field
from uuid import UUID, uuid4

class AppointmentCounter(SQLModel, table=True):
    __tablename__ = "appointment_counters"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    hospital_id: UUID = Field(foreign_key="hospitals.id", unique=True)
    last_number: int = Field(default=0)
