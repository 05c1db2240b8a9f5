from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime
from uuid import UUID, uuid4

class Hospital(SQLModel, table=True):
    __tablename__ = "hospitals"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    name: str
    slug: str = Field(unique=True, index=True)
    city: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
