from sqlmodel import SQLModel
from .hospital import Hospital
from .patient import Patient
from .doctor import Doctor
from .doctor_leave import DoctorLeave
from .package import PatientPackage
from .appointment import Appointment, AppointmentStatus, AppointmentType
from .counter import AppointmentCounter
from .audit_log import AuditLog

__all__ = [
    "SQLModel",
    "Hospital",
    "Patient",
    "Doctor",
    "DoctorLeave",
    "PatientPackage",
    "Appointment",
    "AppointmentStatus",
    "AppointmentType",
    "AppointmentCounter",
    "AuditLog",
]
