from typing import Any, Dict, Optional

from pydantic import BaseModel, EmailStr, Field

from .validators import AdminPassword, Code, Cpf, DoctorPassword


class PasswordSignIn(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=200)


class PatientSignIn(BaseModel):
    cpf: Cpf


class PatientValidateCode(BaseModel):
    cpf: Cpf
    code: Code


class RecoveryPassword(BaseModel):
    email: EmailStr


class ValidateResetCode(BaseModel):
    email: EmailStr
    code: Code


class DoctorResetPassword(BaseModel):
    email: EmailStr
    code: Code
    new_password: DoctorPassword


class AdminResetPassword(BaseModel):
    email: EmailStr
    code: Code
    new_password: AdminPassword


class RefreshTokenRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class LogoutRequest(BaseModel):
    refresh_token: Optional[str] = None


class TokenResponse(BaseModel):
    token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
    user: Dict[str, Any]
