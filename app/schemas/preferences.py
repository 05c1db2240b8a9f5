from pydantic import BaseModel
from uuid import UUID
from typing import Optional

from app.db.models.appointment import AppointmentType

class BookingPreferences(BaseModel):
    """Client-side booking preferences, supplied with each request.

    Nothing here is remembered between calls.
    """
    smart_defaults: bool = False
    preferred_doctor_id: Optional[UUID] = None
    default_type: AppointmentType = AppointmentType.CONSULTATION
    consume_package_on_booking: bool = False
