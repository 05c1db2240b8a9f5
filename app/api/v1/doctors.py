from datetime import date
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_availability, get_request_scope
from app.schemas.auth import RequestScope
from app.schemas.doctor import LeaveCheckResponse, Slot
from app.services.availability_service import AvailabilityCalculator

router = APIRouter()

@router.get("/{doctor_id}/slots", response_model=List[Slot])
async def read_doctor_slots(
    doctor_id: UUID,
    on_date: date = Query(..., alias="date"),
    scope: RequestScope = Depends(get_request_scope),
    availability: AvailabilityCalculator = Depends(get_availability),
):
    return await availability.get_slots(doctor_id, on_date, hospital_id=scope.hospital_id)

@router.get("/{doctor_id}/leave", response_model=LeaveCheckResponse)
async def read_doctor_leave(
    doctor_id: UUID,
    on_date: date = Query(..., alias="date"),
    scope: RequestScope = Depends(get_request_scope),
    availability: AvailabilityCalculator = Depends(get_availability),
):
    return await availability.check_leave(doctor_id, on_date, hospital_id=scope.hospital_id)
