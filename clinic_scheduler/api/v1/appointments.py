import logging
from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ...api.deps import (
    booking_rate_limit, get_admin_principal, get_booking_principal,
    get_current_principal, get_doctor_principal, get_patient_principal
)
from ...core.database import get_db
from ...schemas.appointment import (
    AppointmentListResponse, AppointmentResponse, AppointmentResult,
    AvailabilityResponse, BookAppointmentRequest, BulkDeleteRequest,
    BulkDeleteResult, CancelResult, MedicalNotesRequest, MessageResult,
    RescheduleRequest, StatusUpdateRequest
)
from ...schemas.directory import Principal
from ...services.appointment_service import AppointmentService
from ...services.availability_service import AvailabilityService
from ...services.booking_service import BookingService
from ...repositories.appointment_store import AppointmentStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments", tags=["Appointments"])

@router.get("/availability", response_model=AvailabilityResponse)
def get_availability(
    doctor_id: int,
    appointment_date: date = Query(..., alias="date"),
    db: Session = Depends(get_db),
    _: Principal = Depends(get_current_principal)
):
    """Free slots for a doctor on a date."""
    result = AvailabilityService(AppointmentStore(db)).available_slots(doctor_id, appointment_date)
    return AvailabilityResponse(
        doctor_id=result.doctor_id,
        doctor_name=result.doctor_name,
        date=result.date,
        slots=result.slots,
    )

@router.post("", response_model=AppointmentResult, status_code=status.HTTP_201_CREATED)
def book_appointment(
    request: BookAppointmentRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_booking_principal),
    _: None = Depends(booking_rate_limit)
):
    """Book a pending appointment for the current patient."""
    appointment = BookingService(db).book(
        principal,
        request.doctor_id,
        request.date,
        request.time,
        notes=request.notes,
    )
    return AppointmentResult(
        message=(
            f"Appointment booked successfully with Dr. {appointment.doctor.name} "
            f"on {appointment.appointment_date:%b %d, %Y} at {appointment.appointment_time:%H:%M}!"
        ),
        appointment=AppointmentResponse.from_appointment(appointment),
    )

@router.get("", response_model=AppointmentListResponse)
def list_appointments(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    """Appointments visible to the current principal."""
    appointments = AppointmentService(db).list_for_principal(principal)
    return AppointmentListResponse(
        appointments=[AppointmentResponse.from_appointment(a) for a in appointments]
    )

@router.post("/bulk-delete", response_model=BulkDeleteResult)
def bulk_delete_appointments(
    request: BulkDeleteRequest,
    db: Session = Depends(get_db),
    _: Principal = Depends(get_admin_principal)
):
    count = AppointmentService(db).bulk_delete(request.appointment_ids)
    return BulkDeleteResult(message=f"Successfully deleted {count} appointments.", deleted=count)

@router.get("/{appointment_id}", response_model=AppointmentResult)
def get_appointment(
    appointment_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    appointment = AppointmentService(db).get_for_principal(appointment_id, principal)
    return AppointmentResult(
        message="Appointment retrieved successfully.",
        appointment=AppointmentResponse.from_appointment(appointment),
    )

@router.post("/{appointment_id}/reschedule", response_model=AppointmentResult)
def reschedule_appointment(
    appointment_id: int,
    request: RescheduleRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_patient_principal)
):
    appointment = AppointmentService(db).reschedule(appointment_id, principal, request.date, request.time)
    return AppointmentResult(
        message=(
            f"Appointment rescheduled to {appointment.appointment_date:%b %d, %Y} "
            f"at {appointment.appointment_time:%H:%M}."
        ),
        appointment=AppointmentResponse.from_appointment(appointment),
    )

@router.post("/{appointment_id}/cancel", response_model=CancelResult)
def cancel_appointment(
    appointment_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_patient_principal)
):
    outcome = AppointmentService(db).cancel(appointment_id, principal)
    message = (
        "Appointment is already cancelled."
        if outcome.already_cancelled
        else "Appointment cancelled successfully."
    )
    return CancelResult(
        message=message,
        appointment=AppointmentResponse.from_appointment(outcome.appointment),
        already_cancelled=outcome.already_cancelled,
    )

@router.post("/{appointment_id}/status", response_model=AppointmentResult)
def update_appointment_status(
    appointment_id: int,
    request: StatusUpdateRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_doctor_principal)
):
    appointment = AppointmentService(db).set_status(appointment_id, principal, request.status)
    return AppointmentResult(
        message=f"Appointment status updated to {appointment.status}.",
        appointment=AppointmentResponse.from_appointment(appointment),
    )

@router.post("/{appointment_id}/complete", response_model=AppointmentResult)
def complete_appointment(
    appointment_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_doctor_principal)
):
    appointment = AppointmentService(db).complete(appointment_id, principal)
    return AppointmentResult(
        message="Appointment marked as completed.",
        appointment=AppointmentResponse.from_appointment(appointment),
    )

@router.post("/{appointment_id}/notes", response_model=AppointmentResult)
def add_medical_notes(
    appointment_id: int,
    request: MedicalNotesRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_doctor_principal)
):
    appointment = AppointmentService(db).add_notes(appointment_id, principal, request.notes)
    return AppointmentResult(
        message="Medical notes added successfully.",
        appointment=AppointmentResponse.from_appointment(appointment),
    )

@router.post("/{appointment_id}/reminder", response_model=MessageResult)
def send_reminder(
    appointment_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_doctor_principal)
):
    """Simulated reminder; the message is logged, not delivered."""
    return MessageResult(message=AppointmentService(db).send_reminder(appointment_id, principal))

@router.delete("/{appointment_id}", response_model=MessageResult)
def delete_appointment(
    appointment_id: int,
    db: Session = Depends(get_db),
    _: Principal = Depends(get_admin_principal)
):
    AppointmentService(db).delete(appointment_id)
    return MessageResult(message="Appointment deleted successfully.")
