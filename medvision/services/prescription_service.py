from typing import List, Optional
import logging

from sqlalchemy.orm import Session

from ..core.exceptions import Forbidden, NotFound, ValidationFailed
from ..core.permissions import authorize
from ..core.security import Principal, UserRole
from ..models import Prescription, PrescriptionStatus
from ..repositories import (
    AppointmentRepository, DoctorRepository, PatientRepository, PrescriptionRepository
)
from ..schemas.prescription import PrescriptionCreate, PrescriptionUpdate

logger = logging.getLogger(__name__)


class PrescriptionService:
    def __init__(self, db: Session):
        self.db = db
        self.prescriptions = PrescriptionRepository(db)
        self.patients = PatientRepository(db)
        self.doctors = DoctorRepository(db)
        self.appointments = AppointmentRepository(db)

    def create(self, principal: Principal, data: PrescriptionCreate) -> Prescription:
        authorize(principal.role, "prescription", "create")
        if UserRole(principal.role) == UserRole.DOCTOR and data.doctor_id != principal.id:
            raise Forbidden("Médicos só podem emitir receitas em seu próprio nome")

        if self.patients.get(data.patient_id) is None:
            raise NotFound("Paciente não encontrado")
        if self.doctors.get(data.doctor_id) is None:
            raise NotFound("Médico não encontrado")
        if data.appointment_id:
            appointment = self.appointments.get(data.appointment_id)
            if appointment is None:
                raise NotFound("Agendamento não encontrado")
            if appointment.patient_id != data.patient_id or appointment.doctor_id != data.doctor_id:
                raise ValidationFailed("Agendamento não pertence a este paciente e médico")

        prescription = self.prescriptions.create(
            patient_id=data.patient_id,
            doctor_id=data.doctor_id,
            appointment_id=data.appointment_id,
            content=data.content,
            status=PrescriptionStatus.ACTIVE,
        )
        self.db.commit()
        self.db.refresh(prescription)
        logger.info(f"Prescription {prescription.id} issued by doctor {data.doctor_id}")
        return prescription

    def get(self, principal: Principal, prescription_id: str) -> Prescription:
        authorize(principal.role, "prescription", "read")
        prescription = self.prescriptions.get_detail(prescription_id)
        if prescription is None:
            raise NotFound("Receita não encontrada")
        self._check_reader(principal, prescription)
        return prescription

    def list(
        self,
        principal: Principal,
        patient_id: Optional[str] = None,
        doctor_id: Optional[str] = None,
        appointment_id: Optional[str] = None,
        status: Optional[PrescriptionStatus] = None,
        page: int = 1,
        limit: int = 10,
    ) -> List[Prescription]:
        authorize(principal.role, "prescription", "list")
        if UserRole(principal.role) == UserRole.PATIENT:
            if patient_id and patient_id != principal.id:
                raise Forbidden()
            patient_id = principal.id
        return self.prescriptions.search(
            patient_id=patient_id,
            doctor_id=doctor_id,
            appointment_id=appointment_id,
            status=status,
            page=page,
            limit=limit,
        )

    def update(self, principal: Principal, prescription_id: str, patch: PrescriptionUpdate) -> Prescription:
        authorize(principal.role, "prescription", "update")
        prescription = self._get_writable(principal, prescription_id)

        changes = {k: v for k, v in patch.model_dump(exclude_unset=True).items() if v is not None}
        if not changes:
            raise ValidationFailed("Nenhum campo para atualizar")

        self.prescriptions.update(prescription, changes)
        self.db.commit()
        self.db.refresh(prescription)
        return prescription

    def delete(self, principal: Principal, prescription_id: str) -> None:
        authorize(principal.role, "prescription", "delete")
        prescription = self._get_writable(principal, prescription_id)
        self.prescriptions.delete(prescription)
        self.db.commit()
        logger.info(f"Prescription {prescription_id} deleted by {principal.role.value} {principal.id}")

    def _get_writable(self, principal: Principal, prescription_id: str) -> Prescription:
        prescription = self.prescriptions.get(prescription_id)
        if prescription is None:
            raise NotFound("Receita não encontrada")
        if UserRole(principal.role) == UserRole.DOCTOR and prescription.doctor_id != principal.id:
            raise Forbidden()
        return prescription

    @staticmethod
    def _check_reader(principal: Principal, prescription: Prescription) -> None:
        if UserRole(principal.role) == UserRole.PATIENT and prescription.patient_id != principal.id:
            raise Forbidden()
