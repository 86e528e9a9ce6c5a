from sqlalchemy import Column, String, ForeignKey, Text, Index, Enum as SQLEnum, text
from sqlalchemy.orm import relationship
import enum

from ..core.database import Base
from ..core.exceptions import InvalidTransition
from ..core.types import UTCDateTime, utcnow
from .base import new_id

class AppointmentStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

# Allowed status changes; completed and cancelled are terminal
TRANSITIONS = {
    AppointmentStatus.SCHEDULED: frozenset({
        AppointmentStatus.IN_PROGRESS,
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
    }),
    AppointmentStatus.IN_PROGRESS: frozenset({
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
    }),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
}

# States in which the video room may still be joined
JOINABLE = frozenset({AppointmentStatus.SCHEDULED, AppointmentStatus.IN_PROGRESS})

def transition(current: AppointmentStatus, requested: AppointmentStatus) -> AppointmentStatus:
    """Return the new status or raise InvalidTransition."""
    current = AppointmentStatus(current)
    requested = AppointmentStatus(requested)
    if requested not in TRANSITIONS[current]:
        raise InvalidTransition(
            f"Transição de status inválida: {current.value} -> {requested.value}"
        )
    return requested

def is_terminal(status: AppointmentStatus) -> bool:
    return not TRANSITIONS[AppointmentStatus(status)]

class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        # One live appointment per exact (doctor, timestamp)
        Index(
            "uq_appointments_doctor_slot",
            "doctor_id",
            "appointment_date",
            unique=True,
            sqlite_where=text("status != 'cancelled'"),
            postgresql_where=text("status != 'cancelled'"),
        ),
    )

    id = Column(String(36), primary_key=True, default=new_id)

    # Relationships
    patient_id = Column(String(36), ForeignKey("patients.id"), nullable=False, index=True)
    doctor_id = Column(String(36), ForeignKey("doctors.id"), nullable=False, index=True)

    # Appointment details
    appointment_date = Column(UTCDateTime, nullable=False, index=True)
    status = Column(
        SQLEnum(AppointmentStatus, values_callable=lambda e: [m.value for m in e]),
        default=AppointmentStatus.SCHEDULED,
        nullable=False,
    )
    reason = Column(Text, nullable=False)
    notes = Column(Text, nullable=True)

    # Video room
    room_name = Column(String(128), nullable=True)
    room_url = Column(String(512), nullable=True)

    # Tracking
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    patient = relationship("Patient", back_populates="appointments")
    doctor = relationship("Doctor", back_populates="appointments")
    prescriptions = relationship("Prescription", back_populates="appointment")

    def __repr__(self):
        return f"<Appointment(id={self.id}, patient_id={self.patient_id}, doctor_id={self.doctor_id}, date='{self.appointment_date}')>"
