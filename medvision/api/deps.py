from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Callable, Optional

from ..core.config import settings
from ..core.database import get_db, get_redis
from ..core.exceptions import Forbidden, Unauthenticated
from ..core.security import Principal, UserRole, security
from ..services import email, video
from ..services.appointment_service import AppointmentService
from ..services.auth_service import AuthService
from ..services.people_service import PeopleService
from ..services.prescription_service import PrescriptionService
from ..services.rate_limit import RateLimiter


# External collaborators (overridden in tests)
def get_video_provider() -> video.VideoProvider:
    return video.get_video_provider()


def get_email_sender() -> email.EmailSender:
    return email.get_email_sender()


# Services
def get_auth_service(
    db: Session = Depends(get_db),
    email_sender: email.EmailSender = Depends(get_email_sender),
) -> AuthService:
    return AuthService(db, email_sender)


def get_appointment_service(
    db: Session = Depends(get_db),
    video_provider: video.VideoProvider = Depends(get_video_provider),
    email_sender: email.EmailSender = Depends(get_email_sender),
) -> AppointmentService:
    return AppointmentService(db, video_provider, email_sender)


def get_prescription_service(db: Session = Depends(get_db)) -> PrescriptionService:
    return PrescriptionService(db)


def get_people_service(db: Session = Depends(get_db)) -> PeopleService:
    return PeopleService(db)


# Authentication
def get_session_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """Access token from the Bearer header, falling back to the session cookie."""
    if credentials and credentials.credentials:
        return credentials.credentials
    token = request.cookies.get(settings.COOKIE_NAME)
    if not token:
        raise Unauthenticated("Token não fornecido")
    return token


def get_current_principal(
    token: str = Depends(get_session_token),
    auth_service: AuthService = Depends(get_auth_service),
) -> Principal:
    return auth_service.resolve_principal(token)


def require_role(*allowed_roles: UserRole) -> Callable:
    """Create a dependency that requires one of the given roles."""
    def role_checker(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in allowed_roles:
            raise Forbidden()
        return principal

    return role_checker


# Rate limiting
def rate_limit(scope: str) -> Callable:
    """Create a dependency counting requests per client IP for ``scope``."""
    def check(request: Request, store=Depends(get_redis)) -> None:
        if not settings.RATE_LIMIT_ENABLED:
            return
        client_ip = request.client.host if request.client else "unknown"
        RateLimiter(store).check(scope, client_ip)

    return check
