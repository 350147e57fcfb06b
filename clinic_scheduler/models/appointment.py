from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Date, Time, Index, text
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum

from ..core.database import Base

class AppointmentStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    # Legacy alias of confirmed kept for rows written by older clients
    APPROVED = "approved"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

# Statuses that reserve a (doctor, date, time) slot
OCCUPYING_STATUSES = frozenset({
    AppointmentStatus.PENDING.value,
    AppointmentStatus.CONFIRMED.value,
    AppointmentStatus.APPROVED.value,
})

TERMINAL_STATUSES = frozenset({
    AppointmentStatus.COMPLETED.value,
    AppointmentStatus.CANCELLED.value,
})

# Values a caller may assign through a status update
ASSIGNABLE_STATUSES = (
    AppointmentStatus.PENDING,
    AppointmentStatus.CONFIRMED,
    AppointmentStatus.COMPLETED,
    AppointmentStatus.CANCELLED,
)

_OCCUPYING_SQL = "status IN ({})".format(
    ", ".join(f"'{s}'" for s in sorted(OCCUPYING_STATUSES))
)

class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        Index(
            "uq_appointments_occupied_slot",
            "doctor_id", "appointment_date", "appointment_time",
            unique=True,
            postgresql_where=text(_OCCUPYING_SQL),
            sqlite_where=text(_OCCUPYING_SQL),
        ),
        Index("ix_appointments_date_time", "appointment_date", "appointment_time"),
    )

    id = Column(Integer, primary_key=True, index=True)

    # Relationships
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False)

    # Appointment details
    appointment_date = Column(Date, nullable=False, index=True)
    appointment_time = Column(Time, nullable=False)
    status = Column(String(20), nullable=False, default=AppointmentStatus.PENDING.value, index=True)
    notes = Column(String(500), nullable=True)

    # Tracking
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    # Relationships
    patient = relationship("Patient", back_populates="appointments")
    doctor = relationship("Doctor", back_populates="appointments")

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def __repr__(self):
        return (
            f"<Appointment(id={self.id}, patient_id={self.patient_id}, doctor_id={self.doctor_id}, "
            f"date='{self.appointment_date}', time='{self.appointment_time}', status='{self.status}')>"
        )
