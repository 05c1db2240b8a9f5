from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_queue_service, get_request_scope
from app.schemas.appointment import (
    AppointmentResponse,
    CheckInRequest,
    CheckInResponse,
    CompleteRequest,
    NoShowRequest,
    QueueResponse,
)
from app.schemas.auth import RequestScope
from app.services.queue_service import QueueService

router = APIRouter()

@router.get("/", response_model=QueueResponse)
async def read_queue(
    on_date: date = Query(..., alias="date"),
    doctor_id: Optional[UUID] = None,
    skip: int = Query(0, ge=0),
    limit: Optional[int] = Query(None, ge=1),
    scope: RequestScope = Depends(get_request_scope),
    service: QueueService = Depends(get_queue_service),
):
    return await service.get_queue(scope.hospital_id, on_date, doctor_id=doctor_id, skip=skip, limit=limit)

@router.post("/{appointment_id}/check-in", response_model=CheckInResponse)
async def check_in(
    appointment_id: UUID,
    request: CheckInRequest = CheckInRequest(),
    scope: RequestScope = Depends(get_request_scope),
    service: QueueService = Depends(get_queue_service),
):
    return await service.check_in(
        scope.hospital_id, appointment_id, note=request.note, consume_package=request.consume_package
    )

@router.post("/{appointment_id}/start", response_model=AppointmentResponse)
async def start_consultation(
    appointment_id: UUID,
    scope: RequestScope = Depends(get_request_scope),
    service: QueueService = Depends(get_queue_service),
):
    appointment = await service.start(scope.hospital_id, appointment_id)
    return AppointmentResponse.model_validate(appointment)

@router.post("/{appointment_id}/complete", response_model=AppointmentResponse)
async def complete_consultation(
    appointment_id: UUID,
    request: CompleteRequest = CompleteRequest(),
    scope: RequestScope = Depends(get_request_scope),
    service: QueueService = Depends(get_queue_service),
):
    appointment = await service.complete(scope.hospital_id, appointment_id, diagnosis=request.diagnosis)
    return AppointmentResponse.model_validate(appointment)

@router.post("/{appointment_id}/no-show", response_model=AppointmentResponse)
async def mark_no_show(
    appointment_id: UUID,
    request: NoShowRequest = NoShowRequest(),
    scope: RequestScope = Depends(get_request_scope),
    service: QueueService = Depends(get_queue_service),
):
    appointment = await service.mark_no_show(scope.hospital_id, appointment_id, reason=request.reason)
    return AppointmentResponse.model_validate(appointment)
