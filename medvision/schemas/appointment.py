from datetime import datetime
from typing import Annotated, Optional

from pydantic import AwareDatetime, BaseModel, BeforeValidator, ConfigDict, Field

from ..models.appointment import AppointmentStatus
from .common import Pagination
from .people import DoctorSummary, PatientSummary


def _status_alias(value):
    # Both spellings reach the API
    if isinstance(value, str) and value.strip().lower() == "canceled":
        return AppointmentStatus.CANCELLED.value
    return value


StatusInput = Annotated[AppointmentStatus, BeforeValidator(_status_alias)]


class AppointmentCreate(BaseModel):
    patient_id: str = Field(..., min_length=1, max_length=36)
    doctor_id: str = Field(..., min_length=1, max_length=36)
    appointment_date: AwareDatetime
    reason: str = Field(..., min_length=3, max_length=500)


class AppointmentUpdate(BaseModel):
    patient_id: Optional[str] = Field(None, min_length=1, max_length=36)
    doctor_id: Optional[str] = Field(None, min_length=1, max_length=36)
    appointment_date: Optional[AwareDatetime] = None
    reason: Optional[str] = Field(None, min_length=3, max_length=500)
    notes: Optional[str] = Field(None, max_length=1000)
    status: Optional[StatusInput] = None


class AppointmentFilters(Pagination):
    patient_id: Optional[str] = None
    doctor_id: Optional[str] = None
    status: Optional[StatusInput] = None
    start_date: Optional[AwareDatetime] = None
    end_date: Optional[AwareDatetime] = None


class AppointmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    patient_id: str
    doctor_id: str
    appointment_date: datetime
    reason: str
    status: AppointmentStatus
    notes: Optional[str] = None
    room_name: Optional[str] = None
    room_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class AppointmentDetail(AppointmentResponse):
    patient: Optional[PatientSummary] = None
    doctor: Optional[DoctorSummary] = None


class AvailabilityResponse(BaseModel):
    doctor_id: str
    appointment_date: datetime
    available: bool


class RoomAccessResponse(BaseModel):
    token: str
    room_name: str
    room_url: Optional[str] = None
    expires_in: int
