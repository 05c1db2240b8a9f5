from uuid import UUID

from fastapi import APIRouter, Depends

from app.api.deps import get_package_ledger, get_request_scope
from app.schemas.auth import RequestScope
from app.schemas.package import (
    ConsumeVisitRequest,
    ConsumeVisitResponse,
    PackageAssignmentResponse,
    RefundVisitRequest,
)
from app.services.package_service import PackageLedger

router = APIRouter()

@router.get("/{assignment_id}", response_model=PackageAssignmentResponse)
async def read_assignment(
    assignment_id: UUID,
    scope: RequestScope = Depends(get_request_scope),
    ledger: PackageLedger = Depends(get_package_ledger),
):
    assignment = await ledger.get_assignment(assignment_id, scope.hospital_id)
    return PackageAssignmentResponse.model_validate(assignment)

@router.post("/{assignment_id}/consume", response_model=ConsumeVisitResponse)
async def consume_visit(
    assignment_id: UUID,
    request: ConsumeVisitRequest = ConsumeVisitRequest(),
    scope: RequestScope = Depends(get_request_scope),
    ledger: PackageLedger = Depends(get_package_ledger),
):
    assignment = await ledger.consume(
        assignment_id,
        appointment_id=request.appointment_id,
        notes=request.notes,
        hospital_id=scope.hospital_id,
    )
    return ConsumeVisitResponse(
        assignment=PackageAssignmentResponse.model_validate(assignment),
        remaining_visits=assignment.total_visits - assignment.used_visits,
    )

@router.post("/{assignment_id}/refund", response_model=PackageAssignmentResponse)
async def refund_visit(
    assignment_id: UUID,
    request: RefundVisitRequest = RefundVisitRequest(),
    scope: RequestScope = Depends(get_request_scope),
    ledger: PackageLedger = Depends(get_package_ledger),
):
    assignment = await ledger.refund(
        assignment_id, appointment_id=request.appointment_id, hospital_id=scope.hospital_id
    )
    return PackageAssignmentResponse.model_validate(assignment)
