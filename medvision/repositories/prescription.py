from typing import List, Optional

from sqlalchemy.orm import joinedload

from ..models import Prescription, PrescriptionStatus
from .base import BaseRepository


class PrescriptionRepository(BaseRepository[Prescription]):
    model = Prescription

    def get_detail(self, prescription_id: str) -> Optional[Prescription]:
        return (
            self.db.query(Prescription)
            .options(joinedload(Prescription.patient), joinedload(Prescription.doctor))
            .filter(Prescription.id == prescription_id)
            .first()
        )

    def search(
        self,
        patient_id: Optional[str] = None,
        doctor_id: Optional[str] = None,
        appointment_id: Optional[str] = None,
        status: Optional[PrescriptionStatus] = None,
        page: int = 1,
        limit: int = 10,
    ) -> List[Prescription]:
        conditions = []
        if patient_id:
            conditions.append(Prescription.patient_id == patient_id)
        if doctor_id:
            conditions.append(Prescription.doctor_id == doctor_id)
        if appointment_id:
            conditions.append(Prescription.appointment_id == appointment_id)
        if status:
            conditions.append(Prescription.status == status)
        return self.list(*conditions, page=page, limit=limit)
