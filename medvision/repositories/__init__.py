from .appointment import AppointmentRepository
from .people import AdminRepository, DoctorRepository, PatientRepository
from .prescription import PrescriptionRepository

__all__ = [
    "AdminRepository",
    "AppointmentRepository",
    "DoctorRepository",
    "PatientRepository",
    "PrescriptionRepository",
]
