"""Appointment workflow: booking, rescheduling, status changes and room access."""
from datetime import datetime
from typing import List, Optional
from zoneinfo import ZoneInfo
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import (
    DependencyFailure, Forbidden, InvalidState, NotFound, SlotUnavailable, ValidationFailed
)
from ..core.permissions import authorize
from ..core.security import Principal, UserRole
from ..models import Appointment, AppointmentStatus
from ..models.appointment import JOINABLE, is_terminal, transition
from ..models.base import new_id
from ..repositories import AppointmentRepository, DoctorRepository, PatientRepository
from ..schemas.appointment import AppointmentCreate, AppointmentFilters, AppointmentUpdate
from .availability import SlotAvailabilityChecker
from .email import EmailSender, LoggingEmailSender
from . import email as templates
from .video import VideoProvider

logger = logging.getLogger(__name__)

# Fields a doctor may change on their own appointments
DOCTOR_FIELDS = frozenset({"status", "notes"})
SCHEDULING_FIELDS = frozenset({"patient_id", "doctor_id", "appointment_date"})


def room_name_for(appointment_id: str) -> str:
    return f"medvision-{appointment_id}"


def _require_aware(value: Optional[datetime], field: str) -> None:
    if value is not None and value.tzinfo is None:
        raise ValidationFailed(
            "Data deve incluir fuso horário",
            errors=[{"field": field, "message": "timezone required"}],
        )


def _format_local(moment: datetime) -> str:
    return moment.astimezone(ZoneInfo(settings.BUSINESS_TIMEZONE)).strftime("%d/%m/%Y %H:%M")


class AppointmentService:
    def __init__(
        self,
        db: Session,
        video: VideoProvider,
        email_sender: Optional[EmailSender] = None,
    ):
        self.db = db
        self.video = video
        self.email_sender = email_sender or LoggingEmailSender()
        self.appointments = AppointmentRepository(db)
        self.doctors = DoctorRepository(db)
        self.patients = PatientRepository(db)
        self.availability = SlotAvailabilityChecker(db)

    def create(self, principal: Principal, data: AppointmentCreate) -> Appointment:
        """Book an appointment and provision its video room.

        The availability check and the insert share one transaction. If the
        room cannot be provisioned nothing is persisted; if the insert loses a
        race the room is released again.
        """
        authorize(principal.role, "appointment", "create")
        _require_aware(data.appointment_date, "appointment_date")

        patient = self.patients.get(data.patient_id)
        if patient is None:
            raise NotFound("Paciente não encontrado")
        doctor = self.doctors.get(data.doctor_id)
        if doctor is None:
            raise NotFound("Médico não encontrado")

        try:
            if not self.availability.has_available_slot(data.doctor_id, data.appointment_date):
                raise SlotUnavailable()

            appointment_id = new_id()
            room = self.video.create_room(room_name_for(appointment_id))

            try:
                appointment = self.appointments.create(
                    id=appointment_id,
                    patient_id=data.patient_id,
                    doctor_id=data.doctor_id,
                    appointment_date=data.appointment_date,
                    reason=data.reason,
                    status=AppointmentStatus.SCHEDULED,
                    room_name=room.room_name,
                    room_url=room.url,
                )
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                logger.info(f"Slot for doctor {data.doctor_id} taken concurrently")
                self._release_room(room.room_name)
                raise SlotUnavailable()
        except Exception:
            if self.db.in_transaction():
                self.db.rollback()
            raise

        self.db.refresh(appointment)
        logger.info(f"Appointment {appointment.id} booked with doctor {doctor.id}")
        self._notify(
            doctor.email,
            *templates.appointment_scheduled_email(
                doctor.name, patient.name, _format_local(appointment.appointment_date), appointment.room_url
            ),
        )
        return appointment

    def get(self, principal: Principal, appointment_id: str) -> Appointment:
        authorize(principal.role, "appointment", "read")
        appointment = self.appointments.get_detail(appointment_id)
        if appointment is None:
            raise NotFound("Agendamento não encontrado")
        self._check_party(principal, appointment)
        return appointment

    def list(self, principal: Principal, filters: AppointmentFilters) -> List[Appointment]:
        authorize(principal.role, "appointment", "list")
        _require_aware(filters.start_date, "start_date")
        _require_aware(filters.end_date, "end_date")

        patient_id, doctor_id = filters.patient_id, filters.doctor_id
        role = UserRole(principal.role)
        if role == UserRole.PATIENT:
            patient_id = principal.id
        elif role == UserRole.DOCTOR:
            doctor_id = principal.id

        return self.appointments.search(
            patient_id=patient_id,
            doctor_id=doctor_id,
            status=filters.status,
            start_date=filters.start_date,
            end_date=filters.end_date,
            page=filters.page,
            limit=filters.limit,
        )

    def update(self, principal: Principal, appointment_id: str, patch: AppointmentUpdate) -> Appointment:
        authorize(principal.role, "appointment", "update")
        # Only notes can be cleared
        changes = {
            field: value
            for field, value in patch.model_dump(exclude_unset=True).items()
            if value is not None or field == "notes"
        }
        if not changes:
            raise ValidationFailed("Nenhum campo para atualizar")
        _require_aware(changes.get("appointment_date"), "appointment_date")

        appointment = self.appointments.get(appointment_id)
        if appointment is None:
            raise NotFound("Agendamento não encontrado")

        if UserRole(principal.role) == UserRole.DOCTOR:
            if appointment.doctor_id != principal.id:
                raise Forbidden()
            if set(changes) - DOCTOR_FIELDS:
                raise Forbidden("Médicos podem alterar apenas status e observações")

        previous_status = AppointmentStatus(appointment.status)
        try:
            if "status" in changes:
                changes["status"] = transition(previous_status, changes["status"])

            if SCHEDULING_FIELDS & set(changes):
                self._reschedule(appointment, changes)

            self.appointments.update(appointment, changes)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise SlotUnavailable()
        except Exception:
            if self.db.in_transaction():
                self.db.rollback()
            raise

        self.db.refresh(appointment)
        logger.info(f"Appointment {appointment.id} updated by {principal.role.value} {principal.id}")

        if appointment.status == AppointmentStatus.CANCELLED and previous_status != AppointmentStatus.CANCELLED:
            self._notify_cancelled(appointment)
        return self.appointments.get_detail(appointment.id)

    def _reschedule(self, appointment: Appointment, changes: dict) -> None:
        if is_terminal(appointment.status):
            raise InvalidState("Não é possível reagendar um agendamento finalizado ou cancelado")

        patient_id = changes.get("patient_id", appointment.patient_id)
        doctor_id = changes.get("doctor_id", appointment.doctor_id)
        when = changes.get("appointment_date", appointment.appointment_date)

        if self.patients.get(patient_id) is None:
            raise NotFound("Paciente não encontrado")
        if self.doctors.get(doctor_id) is None:
            raise NotFound("Médico não encontrado")

        if doctor_id != appointment.doctor_id or when != appointment.appointment_date:
            if not self.availability.has_available_slot(doctor_id, when, exclude_appointment_id=appointment.id):
                raise SlotUnavailable()

    def delete(self, principal: Principal, appointment_id: str) -> None:
        authorize(principal.role, "appointment", "delete")
        appointment = self.appointments.get(appointment_id)
        if appointment is None:
            raise NotFound("Agendamento não encontrado")

        if appointment.room_name:
            self._release_room(appointment.room_name)

        for prescription in appointment.prescriptions:
            prescription.appointment_id = None
        self.appointments.delete(appointment)
        self.db.commit()
        logger.info(f"Appointment {appointment_id} deleted by admin {principal.id}")

    def issue_access_token(self, principal: Principal, appointment_id: str) -> dict:
        """Mint a video room token for an admin or a party to the appointment."""
        authorize(principal.role, "appointment", "issue_token")
        appointment = self.appointments.get(appointment_id)
        if appointment is None:
            raise NotFound("Agendamento não encontrado")
        self._check_party(principal, appointment)

        if AppointmentStatus(appointment.status) not in JOINABLE:
            raise InvalidState("Agendamento não está disponível para videochamada")
        if not appointment.room_name:
            raise InvalidState("Agendamento sem sala de vídeo")

        expires_in = settings.ROOM_TOKEN_EXPIRE_SECONDS
        token = self.video.generate_access_token(
            appointment.room_name,
            principal.id,
            UserRole(principal.role).value,
            user_name=principal.name,
            expires_in=expires_in,
        )
        return {
            "token": token,
            "room_name": appointment.room_name,
            "room_url": appointment.room_url,
            "expires_in": expires_in,
        }

    def check_availability(self, principal: Principal, doctor_id: str, when: datetime) -> bool:
        authorize(principal.role, "appointment", "availability")
        _require_aware(when, "date")
        try:
            return self.availability.has_available_slot(doctor_id, when)
        finally:
            self.db.rollback()

    # Helpers

    @staticmethod
    def _check_party(principal: Principal, appointment: Appointment) -> None:
        role = UserRole(principal.role)
        if role == UserRole.PATIENT and appointment.patient_id != principal.id:
            raise Forbidden()
        if role == UserRole.DOCTOR and appointment.doctor_id != principal.id:
            raise Forbidden()

    def _release_room(self, room_name: str) -> None:
        try:
            self.video.delete_room(room_name)
        except DependencyFailure as e:
            logger.warning(f"Could not delete video room {room_name}: {e.message}")

    def _notify_cancelled(self, appointment: Appointment) -> None:
        doctor = self.doctors.get(appointment.doctor_id)
        patient = self.patients.get(appointment.patient_id)
        if doctor is None or patient is None:
            return
        self._notify(
            doctor.email,
            *templates.appointment_cancelled_email(
                doctor.name, patient.name, _format_local(appointment.appointment_date)
            ),
        )

    def _notify(self, to: str, subject: str, html: str) -> None:
        if not self.email_sender.send(to, subject, html):
            logger.warning(f"Notification '{subject}' to {to} was not delivered")
