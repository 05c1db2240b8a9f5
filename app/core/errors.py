from fastapi import HTTPException, status


class DomainError(HTTPException):
    """Base for the scheduling errors returned to callers.

    ``code`` is stable and ends up in the response body, the HTTP status is what
    the API layer answers with. Anything that is not a DomainError is an
    unexpected fault.
    """
    code = "domain_error"
    http_status = status.HTTP_400_BAD_REQUEST
    default_detail = "Request could not be processed"

    def __init__(self, detail: str = None):
        super().__init__(status_code=self.http_status, detail=detail or self.default_detail)


class ValidationError(DomainError):
    code = "validation_error"
    default_detail = "Invalid request"


class CrossHospitalReference(DomainError):
    code = "cross_hospital_reference"
    default_detail = "Referenced record belongs to another hospital"


class NotFound(DomainError):
    code = "not_found"
    http_status = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class SlotConflict(DomainError):
    code = "slot_conflict"
    http_status = status.HTTP_409_CONFLICT
    default_detail = "Time slot is already booked"


class IllegalTransition(DomainError):
    code = "illegal_transition"
    http_status = status.HTTP_409_CONFLICT

    def __init__(self, current: str, requested: str, detail: str = None):
        self.current = current
        self.requested = requested
        super().__init__(
            detail or f"Cannot move appointment from '{current}' to '{requested}'"
        )


class ConsultationLimitReached(DomainError):
    code = "consultation_limit_reached"
    http_status = status.HTTP_409_CONFLICT
    default_detail = "Doctor already has the maximum number of consultations in progress"


# Package ledger rejections. They never undo the booking they are attached to.
class PackageExhausted(DomainError):
    code = "package_exhausted"
    http_status = status.HTTP_409_CONFLICT
    default_detail = "No remaining visits in this package"


class PackageExpired(DomainError):
    code = "package_expired"
    default_detail = "Package has expired"


class PackageNotActive(DomainError):
    code = "package_not_active"
    default_detail = "Package is not active"
