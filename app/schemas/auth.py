from pydantic import BaseModel
from typing import Optional
from uuid import UUID

class RequestScope(BaseModel):
    """Identity resolved from the caller's bearer token."""
    user_id: Optional[UUID] = None
    hospital_id: UUID
    role: str
