from sqlalchemy import Column, Integer, String, ForeignKey, Boolean
from sqlalchemy.orm import relationship

from ..core.database import Base

class Doctor(Base):
    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True, index=True)
    # Nullable while an admin provisions the doctor before linking an account
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=True)

    name = Column(String(100), nullable=False, default="Unknown Doctor")
    specialization = Column(String(50), nullable=False, default="General")

    # Contact information
    phone = Column(String(15), nullable=False, default="")
    address = Column(String(200), nullable=False, default="Not provided")

    # Availability
    is_active = Column(Boolean, nullable=False, default=True)

    # Relationships
    user = relationship("User", back_populates="doctor")
    appointments = relationship("Appointment", back_populates="doctor")

    def __repr__(self):
        return f"<Doctor(id={self.id}, name='{self.name}', specialization='{self.specialization}')>"
