from sqlalchemy import Column, String, Text

from ..core.database import Base
from ..core.types import UTCDateTime, utcnow
from .base import new_id

class Admin(Base):
    __tablename__ = "admins"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(Text, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(Text, nullable=False)

    # Password recovery
    reset_code = Column(String(6), nullable=True)
    reset_code_expires_at = Column(UTCDateTime, nullable=True)

    # Timestamps
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<Admin(id={self.id}, email='{self.email}')>"
