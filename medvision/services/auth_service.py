from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from datetime import datetime, timedelta, timezone
from typing import Optional, Union
import hashlib
import logging

from ..core.config import settings
from ..core.exceptions import (
    DuplicateKey, InvalidCredentials, InvalidOrExpiredCode, Unauthenticated, ValidationFailed
)
from ..core.permissions import authorize
from ..core.security import (
    Principal, UserRole, burn_password_check, codes_match, create_token_pair,
    generate_numeric_code, generate_session_id, get_password_hash, verify_password,
    verify_token
)
from ..core.types import utcnow
from ..models import Admin, Doctor, Patient, RefreshToken
from ..repositories import AdminRepository, DoctorRepository, PatientRepository
from ..schemas.auth import TokenResponse
from ..schemas.people import (
    AdminCreate, AdminResponse, DoctorCreate, DoctorResponse, PatientCreate, PatientResponse
)
from . import email as templates
from .email import EmailSender, LoggingEmailSender

logger = logging.getLogger(__name__)

Account = Union[Admin, Doctor, Patient]

# Roles that sign in with email + password
PASSWORD_ROLES = (UserRole.ADMIN, UserRole.DOCTOR)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def serialize_account(role: UserRole, account: Account) -> dict:
    schema = {
        UserRole.ADMIN.value: AdminResponse,
        UserRole.DOCTOR.value: DoctorResponse,
        UserRole.PATIENT.value: PatientResponse,
    }[UserRole(role).value]
    return schema.model_validate(account).model_dump(mode="json")


class AuthService:
    """Sign-up, sign-in and credential recovery for the three account kinds.

    Sign-in and recovery never reveal whether an account exists: unknown
    emails get the same error (or the same generic success) as known ones.
    """

    def __init__(self, db: Session, email_sender: Optional[EmailSender] = None):
        self.db = db
        self.email_sender = email_sender or LoggingEmailSender()
        self.repositories = {
            UserRole.ADMIN.value: AdminRepository(db),
            UserRole.DOCTOR.value: DoctorRepository(db),
            UserRole.PATIENT.value: PatientRepository(db),
        }

    def _repository(self, role: UserRole):
        return self.repositories[UserRole(role).value]

    # Sign-up

    def sign_up(
        self,
        principal: Principal,
        role: UserRole,
        data: Union[AdminCreate, DoctorCreate, PatientCreate],
    ) -> Account:
        """Create an account of ``role``. Only admins may register accounts."""
        role = UserRole(role)
        authorize(principal.role, role.value, "create")

        if role == UserRole.ADMIN:
            account = self._create_admin(data)
        elif role == UserRole.DOCTOR:
            account = self._create_doctor(data)
        else:
            account = self._create_patient(data)

        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise DuplicateKey()
        self.db.refresh(account)

        logger.info(f"{role.value} {account.id} registered by admin {principal.id}")
        if role in PASSWORD_ROLES:
            self._notify(account.email, *templates.welcome_email(account.name, role.value))
        return account

    def _create_admin(self, data: AdminCreate) -> Admin:
        repository = self._repository(UserRole.ADMIN)
        if repository.get_by_email(data.email):
            raise DuplicateKey("Email já cadastrado")
        return repository.create(
            name=data.name,
            email=data.email.lower(),
            password_hash=get_password_hash(data.password),
        )

    def _create_doctor(self, data: DoctorCreate) -> Doctor:
        repository = self._repository(UserRole.DOCTOR)
        if repository.get_by_email(data.email):
            raise DuplicateKey("Email já cadastrado")
        if repository.get_by_crm(data.crm):
            raise DuplicateKey("CRM já cadastrado")
        return repository.create(
            name=data.name,
            email=data.email.lower(),
            phone=data.phone,
            crm=data.crm,
            specialty=data.specialty,
            monthly_slots=data.monthly_slots or settings.DEFAULT_MONTHLY_SLOTS,
            password_hash=get_password_hash(data.password),
        )

    def _create_patient(self, data: PatientCreate) -> Patient:
        repository = self._repository(UserRole.PATIENT)
        if repository.get_by_cpf(data.cpf):
            raise DuplicateKey("CPF já cadastrado")
        return repository.create(
            name=data.name,
            age=data.age,
            cpf=data.cpf,
            phone=data.phone,
            address=data.address.model_dump() if data.address else None,
        )

    # Admin / doctor sign-in

    def sign_in_password(self, role: UserRole, email: str, password: str) -> TokenResponse:
        role = UserRole(role)
        if role not in PASSWORD_ROLES:
            raise ValidationFailed("Pacientes entram com CPF e código")

        account = self._repository(role).get_by_email(email)
        if account is None:
            burn_password_check(password)
            logger.info(f"Failed {role.value} sign-in for unknown email")
            raise InvalidCredentials()

        if not verify_password(password, account.password_hash):
            logger.info(f"Failed {role.value} sign-in for {account.id}")
            raise InvalidCredentials()

        response = self._issue_tokens(role, account)
        self.db.commit()
        logger.info(f"{role.value} {account.id} signed in")
        return response

    # Patient one-time code

    def sign_in_otp(self, cpf: str) -> None:
        """Issue a login code for ``cpf``. Unknown CPFs are ignored silently."""
        patient = self._repository(UserRole.PATIENT).get_by_cpf(cpf)
        if patient is None:
            logger.info("Login code requested for unknown CPF")
            return

        code = generate_numeric_code()
        patient.code = code
        patient.code_expires_at = utcnow() + timedelta(minutes=settings.OTP_EXPIRE_MINUTES)
        self.db.commit()

        # Delivered by SMS in production; never log above DEBUG
        logger.debug(f"Login code for patient {patient.id}: {code}")
        logger.info(f"Login code issued for patient {patient.id}")

    def resend_code(self, cpf: str) -> None:
        self.sign_in_otp(cpf)

    def validate_otp(self, cpf: str, code: str) -> TokenResponse:
        patient = self._repository(UserRole.PATIENT).get_by_cpf(cpf)
        if patient is None or not self._code_is_valid(patient.code, patient.code_expires_at, code):
            raise InvalidOrExpiredCode()

        # Single use
        patient.code = None
        patient.code_expires_at = None

        response = self._issue_tokens(UserRole.PATIENT, patient)
        self.db.commit()
        logger.info(f"patient {patient.id} signed in")
        return response

    # Password recovery

    def request_password_reset(self, role: UserRole, email: str) -> None:
        role = UserRole(role)
        account = self._password_account(role, email)
        if account is None:
            logger.info(f"Password reset requested for unknown {role.value} email")
            return

        code = generate_numeric_code()
        account.reset_code = code
        account.reset_code_expires_at = utcnow() + timedelta(minutes=settings.RESET_CODE_EXPIRE_MINUTES)
        self.db.commit()

        logger.debug(f"Reset code for {role.value} {account.id}: {code}")
        self._notify(
            account.email,
            *templates.reset_code_email(account.name, code, settings.RESET_CODE_EXPIRE_MINUTES),
        )

    def validate_reset_code(self, role: UserRole, email: str, code: str) -> None:
        """Check a reset code without consuming it."""
        account = self._password_account(UserRole(role), email)
        if account is None or not self._code_is_valid(account.reset_code, account.reset_code_expires_at, code):
            raise InvalidOrExpiredCode()

    def confirm_password_reset(self, role: UserRole, email: str, code: str, new_password: str) -> None:
        role = UserRole(role)
        account = self._password_account(role, email)
        if account is None or not self._code_is_valid(account.reset_code, account.reset_code_expires_at, code):
            raise InvalidOrExpiredCode()

        account.password_hash = get_password_hash(new_password)
        account.reset_code = None
        account.reset_code_expires_at = None

        # Sessions opened with the old password end here
        self.db.query(RefreshToken).filter(
            RefreshToken.subject_id == account.id,
            RefreshToken.role == role,
        ).update({"is_revoked": True})

        self.db.commit()
        logger.info(f"Password reset for {role.value} {account.id}")

    # Sessions

    def refresh(self, refresh_token: str) -> TokenResponse:
        """Rotate a refresh token: the presented one is revoked and a new pair issued."""
        payload = verify_token(refresh_token, token_type="refresh")
        if payload is None:
            raise Unauthenticated("Refresh token inválido")

        stored = self.db.query(RefreshToken).filter(
            RefreshToken.token_hash == hash_token(refresh_token),
            RefreshToken.is_revoked.is_(False),
        ).first()
        if stored is None or stored.expires_at <= utcnow():
            raise Unauthenticated("Refresh token inválido ou expirado")

        account = self._repository(payload.role).get(payload.sub)
        if account is None:
            raise Unauthenticated("Usuário não encontrado")

        stored.is_revoked = True
        response = self._issue_tokens(payload.role, account)
        self.db.commit()
        return response

    def logout(self, refresh_token: Optional[str]) -> None:
        if not refresh_token:
            return
        stored = self.db.query(RefreshToken).filter(
            RefreshToken.token_hash == hash_token(refresh_token)
        ).first()
        if stored is not None and not stored.is_revoked:
            stored.is_revoked = True
            self.db.commit()

    def resolve_principal(self, token: str) -> Principal:
        """Turn an access token into a principal backed by a live account."""
        payload = verify_token(token, token_type="access")
        if payload is None:
            raise Unauthenticated()

        account = self._repository(payload.role).get(payload.sub)
        if account is None:
            raise Unauthenticated()
        return Principal(id=account.id, role=payload.role, entity=account, claims=payload)

    # Helpers

    def _password_account(self, role: UserRole, email: str) -> Optional[Union[Admin, Doctor]]:
        if role not in PASSWORD_ROLES:
            raise ValidationFailed("Pacientes entram com CPF e código")
        return self._repository(role).get_by_email(email)

    @staticmethod
    def _code_is_valid(expected: Optional[str], expires_at: Optional[datetime], given: str) -> bool:
        if not expected or expires_at is None:
            return False
        if expires_at <= datetime.now(timezone.utc):
            return False
        return codes_match(expected, given)

    def _issue_tokens(self, role: UserRole, account: Account) -> TokenResponse:
        role = UserRole(role)
        if role == UserRole.PATIENT:
            claims = {"cpf": account.cpf}
        elif role == UserRole.DOCTOR:
            claims = {"email": account.email, "crm": account.crm}
        else:
            claims = {"email": account.email, "sessionId": generate_session_id()}

        tokens = create_token_pair(account.id, role, claims)
        self._store_refresh_token(account.id, role, tokens.refresh_token)

        return TokenResponse(
            token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            token_type=tokens.token_type,
            expires_in=tokens.expires_in,
            user=serialize_account(role, account),
        )

    def _store_refresh_token(self, subject_id: str, role: UserRole, refresh_token: str):
        payload = verify_token(refresh_token, token_type="refresh")
        expires_at = (
            datetime.fromtimestamp(payload.exp, tz=timezone.utc)
            if payload
            else utcnow() + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
        )
        self.db.add(RefreshToken(
            subject_id=subject_id,
            role=role,
            token_hash=hash_token(refresh_token),
            expires_at=expires_at,
        ))

    def _notify(self, to: str, subject: str, html: str) -> None:
        if not self.email_sender.send(to, subject, html):
            logger.warning(f"Notification '{subject}' to {to} was not delivered")
