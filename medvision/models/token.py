from sqlalchemy import Column, Integer, String, Boolean, Enum as SQLEnum

from ..core.database import Base
from ..core.security import UserRole
from ..core.types import UTCDateTime, utcnow

class RefreshToken(Base):
    __tablename__ = "refresh_tokens"

    id = Column(Integer, primary_key=True, index=True)
    subject_id = Column(String(36), nullable=False, index=True)
    role = Column(SQLEnum(UserRole, values_callable=lambda e: [m.value for m in e]), nullable=False)
    token_hash = Column(String(64), nullable=False, unique=True)
    expires_at = Column(UTCDateTime, nullable=False)
    is_revoked = Column(Boolean, default=False, nullable=False)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<RefreshToken(id={self.id}, subject_id={self.subject_id}, role='{self.role}')>"
