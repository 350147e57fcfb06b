from sqlalchemy import Column, Integer, String, ForeignKey, DateTime
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from ..core.database import Base

DEFAULT_ADDRESS = "Not provided"

class Patient(Base):
    __tablename__ = "patients"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=True)

    # Personal information
    name = Column(String(100), nullable=False, default="Unknown")
    age = Column(Integer, nullable=False, default=0)

    # Contact information
    phone = Column(String(15), nullable=True, default="")
    address = Column(String(200), nullable=False, default=DEFAULT_ADDRESS)

    # Medical information
    medical_history = Column(String(1000), nullable=False, default="")

    # Timestamps
    registration_date = Column(DateTime, nullable=False, server_default=func.now())

    # Relationships
    user = relationship("User", back_populates="patient")
    appointments = relationship("Appointment", back_populates="patient")

    def __repr__(self):
        return f"<Patient(id={self.id}, name='{self.name}')>"
