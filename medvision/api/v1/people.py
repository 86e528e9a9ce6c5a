from typing import List

from fastapi import APIRouter, Depends, Query

from ...core.security import Principal, UserRole
from ...api.deps import get_current_principal, get_people_service, require_role
from ...services.people_service import PeopleService
from ...schemas.common import ApiResponse, envelope
from ...schemas.people import (
    DoctorProfileUpdate, DoctorResponse, DoctorUpdate, PatientProfileUpdate,
    PatientResponse, PatientUpdate
)

admin_router = APIRouter(prefix="/admin", tags=["Admin"])


@admin_router.get("/doctors", response_model=ApiResponse[List[DoctorResponse]])
def list_doctors(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    principal: Principal = Depends(get_current_principal),
    service: PeopleService = Depends(get_people_service),
):
    return envelope(service.list(principal, UserRole.DOCTOR, page, limit))


@admin_router.get("/doctors/{doctor_id}", response_model=ApiResponse[DoctorResponse])
def get_doctor(
    doctor_id: str,
    principal: Principal = Depends(get_current_principal),
    service: PeopleService = Depends(get_people_service),
):
    return envelope(service.get(principal, UserRole.DOCTOR, doctor_id))


@admin_router.patch("/doctors/{doctor_id}", response_model=ApiResponse[DoctorResponse])
def update_doctor(
    doctor_id: str,
    patch: DoctorUpdate,
    principal: Principal = Depends(get_current_principal),
    service: PeopleService = Depends(get_people_service),
):
    return envelope(service.update(principal, UserRole.DOCTOR, doctor_id, patch), "Médico atualizado com sucesso")


@admin_router.delete("/doctors/{doctor_id}")
def delete_doctor(
    doctor_id: str,
    principal: Principal = Depends(get_current_principal),
    service: PeopleService = Depends(get_people_service),
):
    service.delete(principal, UserRole.DOCTOR, doctor_id)
    return envelope(message="Médico excluído com sucesso")


@admin_router.get("/patients", response_model=ApiResponse[List[PatientResponse]])
def list_patients(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    principal: Principal = Depends(get_current_principal),
    service: PeopleService = Depends(get_people_service),
):
    return envelope(service.list(principal, UserRole.PATIENT, page, limit))


@admin_router.get("/patients/{patient_id}", response_model=ApiResponse[PatientResponse])
def get_patient(
    patient_id: str,
    principal: Principal = Depends(get_current_principal),
    service: PeopleService = Depends(get_people_service),
):
    return envelope(service.get(principal, UserRole.PATIENT, patient_id))


@admin_router.patch("/patients/{patient_id}", response_model=ApiResponse[PatientResponse])
def update_patient(
    patient_id: str,
    patch: PatientUpdate,
    principal: Principal = Depends(get_current_principal),
    service: PeopleService = Depends(get_people_service),
):
    return envelope(service.update(principal, UserRole.PATIENT, patient_id, patch), "Paciente atualizado com sucesso")


@admin_router.delete("/patients/{patient_id}")
def delete_patient(
    patient_id: str,
    principal: Principal = Depends(get_current_principal),
    service: PeopleService = Depends(get_people_service),
):
    service.delete(principal, UserRole.PATIENT, patient_id)
    return envelope(message="Paciente excluído com sucesso")


doctor_router = APIRouter(prefix="/doctor", tags=["Doctor"])


@doctor_router.get("/me", response_model=ApiResponse[DoctorResponse])
def get_doctor_profile(principal: Principal = Depends(require_role(UserRole.DOCTOR))):
    return envelope(principal.entity)


@doctor_router.patch("/me", response_model=ApiResponse[DoctorResponse])
def update_doctor_profile(
    patch: DoctorProfileUpdate,
    principal: Principal = Depends(require_role(UserRole.DOCTOR)),
    service: PeopleService = Depends(get_people_service),
):
    return envelope(service.update_own_profile(principal, patch), "Perfil atualizado com sucesso")


patient_router = APIRouter(prefix="/patient", tags=["Patient"])


@patient_router.get("/me", response_model=ApiResponse[PatientResponse])
def get_patient_profile(principal: Principal = Depends(require_role(UserRole.PATIENT))):
    return envelope(principal.entity)


@patient_router.patch("/me", response_model=ApiResponse[PatientResponse])
def update_patient_profile(
    patch: PatientProfileUpdate,
    principal: Principal = Depends(require_role(UserRole.PATIENT)),
    service: PeopleService = Depends(get_people_service),
):
    return envelope(service.update_own_profile(principal, patch), "Perfil atualizado com sucesso")
