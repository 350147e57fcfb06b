from datetime import date, datetime, time
from typing import List, Optional

from pydantic import BaseModel, field_validator

from ..core.config import settings
from .patient import PatientResponse


def _validate_notes(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None

    normalized = value.strip()
    if not normalized:
        return None

    if len(normalized) > settings.MAX_NOTES_LENGTH:
        raise ValueError(f"Notes must be {settings.MAX_NOTES_LENGTH} characters or fewer.")

    return normalized


class BookAppointmentRequest(BaseModel):
    doctor_id: int
    date: date
    time: time
    notes: Optional[str] = None

    @field_validator("notes")
    @classmethod
    def validate_notes(cls, value: Optional[str]) -> Optional[str]:
        return _validate_notes(value)


class RescheduleRequest(BaseModel):
    date: date
    time: time


class StatusUpdateRequest(BaseModel):
    status: str


class MedicalNotesRequest(BaseModel):
    notes: str

    @field_validator("notes")
    @classmethod
    def validate_notes(cls, value: str) -> str:
        normalized = _validate_notes(value)
        if normalized is None:
            raise ValueError("Notes are required.")
        return normalized


class BulkDeleteRequest(BaseModel):
    appointment_ids: List[int]


class AppointmentResponse(BaseModel):
    id: int
    doctor_id: int
    patient_id: int
    date: date
    time: time
    status: str
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    doctor_name: Optional[str] = None
    patient_name: Optional[str] = None

    @classmethod
    def from_appointment(cls, appointment) -> "AppointmentResponse":
        return cls(
            id=appointment.id,
            doctor_id=appointment.doctor_id,
            patient_id=appointment.patient_id,
            date=appointment.appointment_date,
            time=appointment.appointment_time,
            status=appointment.status,
            notes=appointment.notes,
            created_at=appointment.created_at,
            doctor_name=appointment.doctor.name if appointment.doctor else None,
            patient_name=appointment.patient.name if appointment.patient else None,
        )


class AppointmentResult(BaseModel):
    success: bool = True
    message: str
    appointment: AppointmentResponse


class CancelResult(AppointmentResult):
    already_cancelled: bool = False


class AppointmentListResponse(BaseModel):
    success: bool = True
    appointments: List[AppointmentResponse]


class AvailabilityResponse(BaseModel):
    success: bool = True
    doctor_id: int
    doctor_name: str
    date: date
    slots: List[time]


class MessageResult(BaseModel):
    success: bool = True
    message: str


class BulkDeleteResult(MessageResult):
    deleted: int


class DoctorDashboardResponse(BaseModel):
    success: bool = True
    doctor_id: int
    doctor_name: str
    today_appointments: List[AppointmentResponse]
    upcoming_appointments: List[AppointmentResponse]


class PatientHistoryResponse(BaseModel):
    success: bool = True
    patient: PatientResponse
    appointments: List[AppointmentResponse]
