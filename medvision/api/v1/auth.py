from fastapi import APIRouter, Depends, Response
from typing import Optional, Type

from ...core.config import settings
from ...core.security import Principal, UserRole
from ...api.deps import (
    get_auth_service, get_current_principal, rate_limit
)
from ...services.auth_service import AuthService, serialize_account
from ...schemas.auth import (
    AdminResetPassword, DoctorResetPassword, LogoutRequest, PasswordSignIn,
    PatientSignIn, PatientValidateCode, RecoveryPassword, RefreshTokenRequest,
    TokenResponse, ValidateResetCode
)
from ...schemas.common import ApiResponse, envelope
from ...schemas.people import AdminCreate, DoctorCreate, PatientCreate

GENERIC_RESET_MESSAGE = "Se o email estiver cadastrado, você receberá um código de recuperação"
GENERIC_CODE_MESSAGE = "Se o CPF estiver cadastrado, você receberá um código de acesso"


def set_session_cookie(response: Response, tokens: TokenResponse) -> None:
    response.set_cookie(
        key=settings.COOKIE_NAME,
        value=tokens.token,
        max_age=tokens.expires_in,
        httponly=True,
        samesite="lax",
        secure=settings.COOKIE_SECURE,
    )


def password_auth_router(role: UserRole, signup_schema: Type, reset_schema: Type, login_scope: str) -> APIRouter:
    """Sign-up, sign-in and password recovery for an email + password role."""
    router = APIRouter(prefix=f"/{role.value}/auth", tags=[f"{role.value.capitalize()} Authentication"])

    @router.post("/signup", status_code=201)
    def signup(
        data: signup_schema,
        principal: Principal = Depends(get_current_principal),
        auth_service: AuthService = Depends(get_auth_service),
    ):
        account = auth_service.sign_up(principal, role, data)
        return envelope(serialize_account(role, account), "Cadastro realizado com sucesso")

    @router.post("/signin", response_model=ApiResponse[TokenResponse])
    def signin(
        data: PasswordSignIn,
        response: Response,
        auth_service: AuthService = Depends(get_auth_service),
        _: None = Depends(rate_limit(login_scope)),
    ):
        tokens = auth_service.sign_in_password(role, data.email, data.password)
        set_session_cookie(response, tokens)
        return envelope(tokens, "Login realizado com sucesso")

    @router.post("/recovery-password")
    def recovery_password(
        data: RecoveryPassword,
        auth_service: AuthService = Depends(get_auth_service),
        _: None = Depends(rate_limit("password_reset")),
    ):
        auth_service.request_password_reset(role, data.email)
        return envelope(message=GENERIC_RESET_MESSAGE)

    @router.post("/validate-code")
    def validate_code(
        data: ValidateResetCode,
        auth_service: AuthService = Depends(get_auth_service),
        _: None = Depends(rate_limit("validate_code")),
    ):
        auth_service.validate_reset_code(role, data.email, data.code)
        return envelope(message="Código válido")

    @router.post("/reset-password")
    def reset_password(
        data: reset_schema,
        auth_service: AuthService = Depends(get_auth_service),
        _: None = Depends(rate_limit("validate_code")),
    ):
        auth_service.confirm_password_reset(role, data.email, data.code, data.new_password)
        return envelope(message="Senha redefinida com sucesso")

    return router


admin_router = password_auth_router(UserRole.ADMIN, AdminCreate, AdminResetPassword, "admin_login")
doctor_router = password_auth_router(UserRole.DOCTOR, DoctorCreate, DoctorResetPassword, "doctor_login")

patient_router = APIRouter(prefix="/patient/auth", tags=["Patient Authentication"])


@patient_router.post("/signup", status_code=201)
def patient_signup(
    data: PatientCreate,
    principal: Principal = Depends(get_current_principal),
    auth_service: AuthService = Depends(get_auth_service),
):
    """Register a patient (admin only)."""
    patient = auth_service.sign_up(principal, UserRole.PATIENT, data)
    return envelope(serialize_account(UserRole.PATIENT, patient), "Paciente cadastrado com sucesso")


@patient_router.post("/signin")
def patient_signin(
    data: PatientSignIn,
    auth_service: AuthService = Depends(get_auth_service),
    _: None = Depends(rate_limit("patient_login")),
):
    """Step one of the patient login: send a one-time code."""
    auth_service.sign_in_otp(data.cpf)
    return envelope(message=GENERIC_CODE_MESSAGE)


@patient_router.post("/resend-code")
def patient_resend_code(
    data: PatientSignIn,
    auth_service: AuthService = Depends(get_auth_service),
    _: None = Depends(rate_limit("patient_login")),
):
    auth_service.resend_code(data.cpf)
    return envelope(message=GENERIC_CODE_MESSAGE)


@patient_router.post("/validate-code", response_model=ApiResponse[TokenResponse])
def patient_validate_code(
    data: PatientValidateCode,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service),
    _: None = Depends(rate_limit("validate_code")),
):
    """Step two: exchange the code for a session."""
    tokens = auth_service.validate_otp(data.cpf, data.code)
    set_session_cookie(response, tokens)
    return envelope(tokens, "Login realizado com sucesso")


router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/refresh", response_model=ApiResponse[TokenResponse])
def refresh_token(
    refresh_data: RefreshTokenRequest,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service),
):
    """Rotate the refresh token and issue a new access token."""
    tokens = auth_service.refresh(refresh_data.refresh_token)
    set_session_cookie(response, tokens)
    return envelope(tokens)


@router.post("/logout")
def logout(
    response: Response,
    logout_data: Optional[LogoutRequest] = None,
    auth_service: AuthService = Depends(get_auth_service),
):
    auth_service.logout(logout_data.refresh_token if logout_data else None)
    response.delete_cookie(settings.COOKIE_NAME, httponly=True, samesite="lax", secure=settings.COOKIE_SECURE)
    return envelope(message="Logout realizado com sucesso")


@router.get("/me")
def me(principal: Principal = Depends(get_current_principal)):
    """Profile of the signed-in account."""
    return envelope(serialize_account(principal.role, principal.entity))
