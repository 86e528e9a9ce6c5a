from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import ValidationError

from ...core.exceptions import ValidationFailed
from ...core.security import Principal
from ...api.deps import get_appointment_service, get_current_principal
from ...services.appointment_service import AppointmentService
from ...schemas.appointment import (
    AppointmentCreate, AppointmentDetail, AppointmentFilters, AppointmentResponse,
    AppointmentUpdate, AvailabilityResponse, RoomAccessResponse
)
from ...schemas.common import ApiResponse, envelope

router = APIRouter(prefix="/appointment", tags=["Appointments"])


@router.post("", status_code=201, response_model=ApiResponse[AppointmentResponse])
def create_appointment(
    data: AppointmentCreate,
    principal: Principal = Depends(get_current_principal),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Book an appointment and provision its video room (admin only)."""
    appointment = service.create(principal, data)
    return envelope(appointment, "Agendamento criado com sucesso")


@router.get("", response_model=ApiResponse[List[AppointmentDetail]])
def list_appointments(
    patient_id: Optional[str] = None,
    doctor_id: Optional[str] = None,
    status: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    principal: Principal = Depends(get_current_principal),
    service: AppointmentService = Depends(get_appointment_service),
):
    """List appointments visible to the caller. Patients and doctors only see their own."""
    try:
        filters = AppointmentFilters(
            patient_id=patient_id,
            doctor_id=doctor_id,
            status=status,
            start_date=start_date,
            end_date=end_date,
            page=page,
            limit=limit,
        )
    except ValidationError as e:
        raise ValidationFailed(errors=e.errors(include_url=False, include_context=False))
    return envelope(service.list(principal, filters))


@router.get("/availability", response_model=ApiResponse[AvailabilityResponse])
def check_availability(
    doctor_id: str,
    date: datetime,
    principal: Principal = Depends(get_current_principal),
    service: AppointmentService = Depends(get_appointment_service),
):
    available = service.check_availability(principal, doctor_id, date)
    return envelope({"doctor_id": doctor_id, "appointment_date": date, "available": available})


@router.get("/{appointment_id}", response_model=ApiResponse[AppointmentDetail])
def get_appointment(
    appointment_id: str,
    principal: Principal = Depends(get_current_principal),
    service: AppointmentService = Depends(get_appointment_service),
):
    return envelope(service.get(principal, appointment_id))


@router.patch("/{appointment_id}", response_model=ApiResponse[AppointmentDetail])
def update_appointment(
    appointment_id: str,
    patch: AppointmentUpdate,
    principal: Principal = Depends(get_current_principal),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Change status or notes (doctor, own appointments) or any field (admin)."""
    appointment = service.update(principal, appointment_id, patch)
    return envelope(appointment, "Agendamento atualizado com sucesso")


@router.delete("/{appointment_id}")
def delete_appointment(
    appointment_id: str,
    principal: Principal = Depends(get_current_principal),
    service: AppointmentService = Depends(get_appointment_service),
):
    service.delete(principal, appointment_id)
    return envelope(message="Agendamento excluído com sucesso")


@router.get("/{appointment_id}/token", response_model=ApiResponse[RoomAccessResponse])
def get_room_token(
    appointment_id: str,
    principal: Principal = Depends(get_current_principal),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Video room token for a party to the appointment."""
    return envelope(service.issue_access_token(principal, appointment_id))
