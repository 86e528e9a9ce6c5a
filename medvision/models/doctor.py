from sqlalchemy import Column, Integer, String, Text
from sqlalchemy.orm import relationship

from ..core.database import Base
from ..core.types import UTCDateTime, utcnow
from .base import new_id

class Doctor(Base):
    __tablename__ = "doctors"

    id = Column(String(36), primary_key=True, default=new_id)

    # Professional information
    name = Column(Text, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(20), nullable=False)
    crm = Column(String(20), unique=True, index=True, nullable=False)
    specialty = Column(Text, nullable=False)

    # Maximum non-cancelled appointments per calendar month
    monthly_slots = Column(Integer, nullable=False)

    # Credentials
    password_hash = Column(Text, nullable=False)
    reset_code = Column(String(6), nullable=True)
    reset_code_expires_at = Column(UTCDateTime, nullable=True)

    # Timestamps
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    appointments = relationship("Appointment", back_populates="doctor")
    prescriptions = relationship("Prescription", back_populates="doctor")

    def __repr__(self):
        return f"<Doctor(id={self.id}, name='{self.name}', crm='{self.crm}')>"
