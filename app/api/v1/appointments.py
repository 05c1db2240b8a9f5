from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from app.api.deps import get_booking_service, get_request_scope
from app.db.models.appointment import AppointmentStatus
from app.schemas.appointment import (
    AppointmentListResponse,
    AppointmentResponse,
    BookingResult,
    CancelRequest,
    CreateAppointmentRequest,
    PostponeRequest,
    UpdateAppointmentRequest,
)
from app.schemas.auth import RequestScope
from app.services.booking_service import BookingService

router = APIRouter()

@router.post("/", response_model=BookingResult, status_code=status.HTTP_201_CREATED)
async def create_appointment(
    request: CreateAppointmentRequest,
    scope: RequestScope = Depends(get_request_scope),
    service: BookingService = Depends(get_booking_service),
):
    return await service.create(scope.hospital_id, request)

@router.get("/", response_model=AppointmentListResponse)
async def list_appointments(
    doctor_id: Optional[UUID] = None,
    patient_id: Optional[UUID] = None,
    status_filter: Optional[AppointmentStatus] = Query(None, alias="status"),
    on_date: Optional[date] = Query(None, alias="date"),
    date_from: Optional[date] = Query(None, alias="from"),
    date_to: Optional[date] = Query(None, alias="to"),
    is_paid: Optional[bool] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=200),
    scope: RequestScope = Depends(get_request_scope),
    service: BookingService = Depends(get_booking_service),
):
    return await service.list_appointments(
        scope.hospital_id,
        doctor_id=doctor_id,
        patient_id=patient_id,
        status=status_filter,
        on_date=on_date,
        date_from=date_from,
        date_to=date_to,
        is_paid=is_paid,
        skip=skip,
        limit=limit,
    )

@router.get("/today", response_model=AppointmentListResponse)
async def list_today(
    doctor_id: Optional[UUID] = None,
    scope: RequestScope = Depends(get_request_scope),
    service: BookingService = Depends(get_booking_service),
):
    return await service.list_today(scope.hospital_id, doctor_id=doctor_id)

@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def read_appointment(
    appointment_id: UUID,
    scope: RequestScope = Depends(get_request_scope),
    service: BookingService = Depends(get_booking_service),
):
    appointment = await service.get_appointment(scope.hospital_id, appointment_id)
    return AppointmentResponse.model_validate(appointment)

@router.patch("/{appointment_id}", response_model=AppointmentResponse)
async def update_appointment(
    appointment_id: UUID,
    request: UpdateAppointmentRequest,
    scope: RequestScope = Depends(get_request_scope),
    service: BookingService = Depends(get_booking_service),
):
    appointment = await service.update(scope.hospital_id, appointment_id, request)
    return AppointmentResponse.model_validate(appointment)

@router.post("/{appointment_id}/postpone", response_model=BookingResult)
async def postpone_appointment(
    appointment_id: UUID,
    request: PostponeRequest,
    scope: RequestScope = Depends(get_request_scope),
    service: BookingService = Depends(get_booking_service),
):
    return await service.postpone(scope.hospital_id, appointment_id, request)

@router.post("/{appointment_id}/cancel", response_model=AppointmentResponse)
async def cancel_appointment(
    appointment_id: UUID,
    request: CancelRequest,
    scope: RequestScope = Depends(get_request_scope),
    service: BookingService = Depends(get_booking_service),
):
    appointment = await service.cancel(
        scope.hospital_id, appointment_id, request.reason, refund_package=request.refund_package
    )
    return AppointmentResponse.model_validate(appointment)
