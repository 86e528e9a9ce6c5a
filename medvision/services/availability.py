from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple
from zoneinfo import ZoneInfo
import logging

from sqlalchemy.orm import Session

from ..core.config import settings
from ..repositories import AppointmentRepository, DoctorRepository

logger = logging.getLogger(__name__)


def month_bounds(moment: datetime, tz_name: str = settings.BUSINESS_TIMEZONE) -> Tuple[datetime, datetime]:
    """Return ``[start, end)`` of the calendar month containing ``moment``.

    The month is taken in the business time zone and both bounds are returned
    in UTC, so an appointment at 23:30 on the last day of the month in
    Sao Paulo counts towards that month even though it is already the 1st in
    UTC.
    """
    tz = ZoneInfo(tz_name)
    local = moment.astimezone(tz)
    start = local.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


class SlotAvailabilityChecker:
    """Decides whether a doctor can take one more appointment at a given time.

    Must run inside the same transaction as the insert that follows it.
    """

    def __init__(self, db: Session, duration_minutes: Optional[int] = None):
        self.db = db
        self.doctors = DoctorRepository(db)
        self.appointments = AppointmentRepository(db)
        if duration_minutes is None:
            duration_minutes = settings.APPOINTMENT_DURATION_MINUTES
        self.duration = timedelta(minutes=duration_minutes)

    def has_available_slot(
        self,
        doctor_id: str,
        candidate: datetime,
        exclude_appointment_id: Optional[str] = None,
    ) -> bool:
        if candidate.tzinfo is None:
            raise ValueError("candidate must be timezone-aware")

        doctor = self.doctors.get_for_update(doctor_id)
        if doctor is None:
            return False

        start, end = month_bounds(candidate)
        booked = self.appointments.count_live_between(doctor_id, start, end, exclude_appointment_id)
        if booked >= doctor.monthly_slots:
            logger.info(f"Doctor {doctor_id} has no slots left in month starting {start.isoformat()}")
            return False

        # Two fixed-length slots overlap when their starts are closer than one duration
        clash = self.appointments.find_live_within(
            doctor_id,
            candidate - self.duration,
            candidate + self.duration,
            exclude_appointment_id,
        )
        if clash is not None:
            logger.info(f"Doctor {doctor_id} already booked at {clash.appointment_date.isoformat()}")
            return False

        return True
