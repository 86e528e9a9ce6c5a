from dataclasses import dataclass
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi.security import HTTPBearer
from pydantic import BaseModel
import secrets
from enum import Enum

from .config import settings

# Password hashing
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)

# Bearer header is optional, the session cookie is the primary carrier
security = HTTPBearer(auto_error=False)

class UserRole(str, Enum):
    ADMIN = "admin"
    DOCTOR = "doctor"
    PATIENT = "patient"

class Token(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int

class TokenPayload(BaseModel):
    sub: str
    role: UserRole
    exp: int
    iat: Optional[int] = None
    token_type: Optional[str] = None  # "access" or "refresh"
    jti: Optional[str] = None
    email: Optional[str] = None
    crm: Optional[str] = None
    cpf: Optional[str] = None
    sessionId: Optional[str] = None

# Password utilities
def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)

def get_password_hash(password: str) -> str:
    """Generate password hash."""
    return pwd_context.hash(password)

@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    return pwd_context.hash(secrets.token_urlsafe(16))

def burn_password_check(password: str) -> None:
    """Spend the same bcrypt work as a real check when no account matched."""
    pwd_context.verify(password, _dummy_hash())

def generate_numeric_code(length: int = 6) -> str:
    """Generate a random numeric code (OTP, password reset)."""
    return "".join(str(secrets.randbelow(10)) for _ in range(length))

def codes_match(expected: Optional[str], given: str) -> bool:
    if not expected:
        return False
    return secrets.compare_digest(expected.encode(), given.encode())

def generate_session_id() -> str:
    return secrets.token_hex(16)

# JWT utilities
def _encode(claims: dict, issued_at: int, lifetime: int, token_type: str) -> str:
    to_encode = claims.copy()
    to_encode.update({
        "iat": issued_at,
        "exp": issued_at + lifetime,
        "aud": settings.JWT_AUDIENCE,
        "iss": settings.JWT_ISSUER,
        "token_type": token_type,
        "jti": secrets.token_hex(16),
    })
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

def create_token_pair(subject_id: str, role: UserRole, claims: Optional[dict] = None) -> Token:
    """Create access and refresh tokens for a principal.

    ``claims`` carries the role-specific identity claim: ``cpf`` for patients,
    ``email``/``crm`` for doctors, ``email``/``sessionId`` for admins.
    """
    role = UserRole(role)
    token_data = {"sub": str(subject_id), "role": role.value}
    token_data.update(claims or {})

    now = int(datetime.now(timezone.utc).timestamp())
    expires_in = settings.access_token_ttl(role)
    refresh_lifetime = settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60

    return Token(
        access_token=_encode(token_data, now, expires_in, "access"),
        refresh_token=_encode(token_data, now, refresh_lifetime, "refresh"),
        expires_in=expires_in,
    )

def verify_token(token: str, token_type: Optional[str] = None) -> Optional[TokenPayload]:
    """Verify and decode JWT token."""
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            issuer=settings.JWT_ISSUER,
        )
        token_payload = TokenPayload(**payload)
    except (JWTError, ValueError):
        return None

    if token_type and token_payload.token_type != token_type:
        return None
    return token_payload

@dataclass
class Principal:
    """Authenticated caller resolved from a verified access token."""
    id: str
    role: UserRole
    entity: Any = None
    claims: Optional[TokenPayload] = None

    @property
    def name(self) -> Optional[str]:
        return getattr(self.entity, "name", None)
