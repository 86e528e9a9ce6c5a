from datetime import datetime
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import joinedload

from ..models import Appointment, AppointmentStatus
from .base import BaseRepository


class AppointmentRepository(BaseRepository[Appointment]):
    model = Appointment

    def _live_for_doctor(self, doctor_id: str, exclude_id: Optional[str] = None):
        query = self.db.query(Appointment).filter(
            Appointment.doctor_id == doctor_id,
            Appointment.status != AppointmentStatus.CANCELLED,
        )
        if exclude_id:
            query = query.filter(Appointment.id != exclude_id)
        return query

    def get_detail(self, appointment_id: str) -> Optional[Appointment]:
        return (
            self.db.query(Appointment)
            .options(joinedload(Appointment.patient), joinedload(Appointment.doctor))
            .filter(Appointment.id == appointment_id)
            .first()
        )

    def count_live_between(
        self,
        doctor_id: str,
        start: datetime,
        end: datetime,
        exclude_id: Optional[str] = None,
    ) -> int:
        """Count non-cancelled appointments with ``start <= date < end``."""
        return (
            self._live_for_doctor(doctor_id, exclude_id)
            .filter(Appointment.appointment_date >= start, Appointment.appointment_date < end)
            .with_entities(func.count(Appointment.id))
            .scalar()
        )

    def find_live_within(
        self,
        doctor_id: str,
        start: datetime,
        end: datetime,
        exclude_id: Optional[str] = None,
    ) -> Optional[Appointment]:
        """First non-cancelled appointment strictly inside ``(start, end)``.

        With ``start == end`` the window collapses to the exact timestamp.
        """
        query = self._live_for_doctor(doctor_id, exclude_id)
        if start == end:
            query = query.filter(Appointment.appointment_date == start)
        else:
            query = query.filter(
                Appointment.appointment_date > start,
                Appointment.appointment_date < end,
            )
        return query.first()

    def search(
        self,
        patient_id: Optional[str] = None,
        doctor_id: Optional[str] = None,
        status: Optional[AppointmentStatus] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        page: int = 1,
        limit: int = 10,
    ) -> List[Appointment]:
        conditions = []
        if patient_id:
            conditions.append(Appointment.patient_id == patient_id)
        if doctor_id:
            conditions.append(Appointment.doctor_id == doctor_id)
        if status:
            conditions.append(Appointment.status == status)
        if start_date:
            conditions.append(Appointment.appointment_date >= start_date)
        if end_date:
            conditions.append(Appointment.appointment_date <= end_date)

        query = (
            self.db.query(Appointment)
            .options(joinedload(Appointment.patient), joinedload(Appointment.doctor))
            .filter(*conditions)
            .order_by(Appointment.appointment_date.desc())
        )
        return query.offset((page - 1) * limit).limit(limit).all()
