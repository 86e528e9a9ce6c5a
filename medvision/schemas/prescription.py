from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models.prescription import PrescriptionStatus
from .people import DoctorSummary, PatientSummary


class PrescriptionCreate(BaseModel):
    patient_id: str = Field(..., min_length=1, max_length=36)
    doctor_id: str = Field(..., min_length=1, max_length=36)
    appointment_id: Optional[str] = Field(None, min_length=1, max_length=36)
    content: str = Field(..., min_length=5, max_length=2000)


class PrescriptionUpdate(BaseModel):
    content: Optional[str] = Field(None, min_length=5, max_length=2000)
    status: Optional[PrescriptionStatus] = None


class PrescriptionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    patient_id: str
    doctor_id: str
    appointment_id: Optional[str] = None
    content: str
    status: PrescriptionStatus
    created_at: datetime
    updated_at: datetime


class PrescriptionDetail(PrescriptionResponse):
    patient: Optional[PatientSummary] = None
    doctor: Optional[DoctorSummary] = None
