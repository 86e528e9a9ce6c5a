from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from .validators import AdminPassword, Cpf, Crm, DoctorPassword, Phone


class Address(BaseModel):
    street: str = Field(..., min_length=1)
    number: str = Field(..., min_length=1)
    neighborhood: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    zipcode: str = Field(..., min_length=8, max_length=9)


# Sign-up payloads

class AdminCreate(BaseModel):
    name: str = Field(..., min_length=3, max_length=100)
    email: EmailStr
    password: AdminPassword


class DoctorCreate(BaseModel):
    name: str = Field(..., min_length=3, max_length=100)
    email: EmailStr
    phone: Phone
    crm: Crm
    specialty: str = Field(..., min_length=3, max_length=100)
    monthly_slots: Optional[int] = Field(None, ge=1, le=10000)
    password: DoctorPassword


class PatientCreate(BaseModel):
    name: str = Field(..., min_length=3, max_length=100)
    age: int = Field(..., ge=0, le=120)
    cpf: Cpf
    phone: Phone
    address: Optional[Address] = None


# Partial updates

class DoctorProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=3, max_length=100)
    phone: Optional[Phone] = None
    specialty: Optional[str] = Field(None, min_length=3, max_length=100)


class DoctorUpdate(DoctorProfileUpdate):
    monthly_slots: Optional[int] = Field(None, ge=1, le=10000)


class PatientProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=3, max_length=100)
    phone: Optional[Phone] = None
    address: Optional[Address] = None


class PatientUpdate(PatientProfileUpdate):
    age: Optional[int] = Field(None, ge=0, le=120)


# Responses

class AdminResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: str
    role: str = "admin"
    created_at: datetime


class DoctorResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: str
    phone: str
    crm: str
    specialty: str
    monthly_slots: int
    role: str = "doctor"
    created_at: datetime


class PatientResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    age: int
    cpf: str
    phone: str
    address: Optional[dict] = None
    role: str = "patient"
    created_at: datetime


class DoctorSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    crm: str
    specialty: str


class PatientSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    cpf: str
    phone: str
