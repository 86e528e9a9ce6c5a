from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from ...core.security import Principal
from ...api.deps import get_current_principal, get_prescription_service
from ...models import PrescriptionStatus
from ...services.prescription_service import PrescriptionService
from ...schemas.common import ApiResponse, envelope
from ...schemas.prescription import (
    PrescriptionCreate, PrescriptionDetail, PrescriptionResponse, PrescriptionUpdate
)

router = APIRouter(prefix="/prescription", tags=["Prescriptions"])


@router.get("", response_model=ApiResponse[List[PrescriptionResponse]])
def list_prescriptions(
    patient_id: Optional[str] = None,
    doctor_id: Optional[str] = None,
    appointment_id: Optional[str] = None,
    status: Optional[PrescriptionStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    principal: Principal = Depends(get_current_principal),
    service: PrescriptionService = Depends(get_prescription_service),
):
    prescriptions = service.list(
        principal,
        patient_id=patient_id,
        doctor_id=doctor_id,
        appointment_id=appointment_id,
        status=status,
        page=page,
        limit=limit,
    )
    return envelope(prescriptions)


@router.get("/patient/{patient_id}", response_model=ApiResponse[List[PrescriptionResponse]])
def list_patient_prescriptions(
    patient_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    principal: Principal = Depends(get_current_principal),
    service: PrescriptionService = Depends(get_prescription_service),
):
    return envelope(service.list(principal, patient_id=patient_id, page=page, limit=limit))


@router.get("/doctor/{doctor_id}", response_model=ApiResponse[List[PrescriptionResponse]])
def list_doctor_prescriptions(
    doctor_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    principal: Principal = Depends(get_current_principal),
    service: PrescriptionService = Depends(get_prescription_service),
):
    return envelope(service.list(principal, doctor_id=doctor_id, page=page, limit=limit))


@router.get("/{prescription_id}", response_model=ApiResponse[PrescriptionDetail])
def get_prescription(
    prescription_id: str,
    principal: Principal = Depends(get_current_principal),
    service: PrescriptionService = Depends(get_prescription_service),
):
    return envelope(service.get(principal, prescription_id))


@router.post("", status_code=201, response_model=ApiResponse[PrescriptionResponse])
def create_prescription(
    data: PrescriptionCreate,
    principal: Principal = Depends(get_current_principal),
    service: PrescriptionService = Depends(get_prescription_service),
):
    """Issue a prescription. Doctors may only sign their own."""
    return envelope(service.create(principal, data), "Receita criada com sucesso")


@router.patch("/{prescription_id}", response_model=ApiResponse[PrescriptionResponse])
def update_prescription(
    prescription_id: str,
    patch: PrescriptionUpdate,
    principal: Principal = Depends(get_current_principal),
    service: PrescriptionService = Depends(get_prescription_service),
):
    return envelope(service.update(principal, prescription_id, patch), "Receita atualizada com sucesso")


@router.delete("/{prescription_id}")
def delete_prescription(
    prescription_id: str,
    principal: Principal = Depends(get_current_principal),
    service: PrescriptionService = Depends(get_prescription_service),
):
    service.delete(principal, prescription_id)
    return envelope(message="Receita excluída com sucesso")
