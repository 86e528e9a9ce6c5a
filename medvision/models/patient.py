from sqlalchemy import Column, Integer, String, Text, JSON
from sqlalchemy.orm import relationship

from ..core.database import Base
from ..core.types import UTCDateTime, utcnow
from .base import new_id

class Patient(Base):
    __tablename__ = "patients"

    id = Column(String(36), primary_key=True, default=new_id)

    # Personal information
    name = Column(Text, nullable=False)
    age = Column(Integer, nullable=False)
    cpf = Column(String(14), unique=True, index=True, nullable=False)

    # Contact information
    phone = Column(String(20), nullable=False)
    address = Column(JSON, nullable=True)

    # One-time login code
    code = Column(String(6), nullable=True)
    code_expires_at = Column(UTCDateTime, nullable=True)

    # Timestamps
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    appointments = relationship("Appointment", back_populates="patient")
    prescriptions = relationship("Prescription", back_populates="patient")

    def __repr__(self):
        return f"<Patient(id={self.id}, name='{self.name}')>"
