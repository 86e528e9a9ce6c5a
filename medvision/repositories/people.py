from typing import Optional

from ..models import Admin, Appointment, Doctor, Patient
from .base import BaseRepository


class AdminRepository(BaseRepository[Admin]):
    model = Admin

    def get_by_email(self, email: str) -> Optional[Admin]:
        return self.db.query(Admin).filter(Admin.email == email.lower()).first()


class DoctorRepository(BaseRepository[Doctor]):
    model = Doctor

    def get_by_email(self, email: str) -> Optional[Doctor]:
        return self.db.query(Doctor).filter(Doctor.email == email.lower()).first()

    def get_by_crm(self, crm: str) -> Optional[Doctor]:
        return self.db.query(Doctor).filter(Doctor.crm == crm).first()

    def get_for_update(self, doctor_id: str) -> Optional[Doctor]:
        """Load a doctor holding a row lock for the rest of the transaction."""
        return (
            self.db.query(Doctor)
            .filter(Doctor.id == doctor_id)
            .with_for_update()
            .first()
        )

    def has_appointments(self, doctor_id: str) -> bool:
        return self.db.query(
            self.db.query(Appointment).filter(Appointment.doctor_id == doctor_id).exists()
        ).scalar()


class PatientRepository(BaseRepository[Patient]):
    model = Patient

    def get_by_cpf(self, cpf: str) -> Optional[Patient]:
        return self.db.query(Patient).filter(Patient.cpf == cpf).first()

    def has_appointments(self, patient_id: str) -> bool:
        return self.db.query(
            self.db.query(Appointment).filter(Appointment.patient_id == patient_id).exists()
        ).scalar()
