import logging
from dataclasses import dataclass, field
from datetime import date, time
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import (
    AccessDenied, InvalidSlot, InvalidStatus, NotFound, PastDate,
    SlotConflict, TerminalCompleted, TerminalState
)
from ..core.security import UserRole
from ..models.appointment import (
    ASSIGNABLE_STATUSES, Appointment, AppointmentStatus
)
from ..models.doctor import Doctor
from ..models.patient import Patient
from ..repositories.appointment_store import AppointmentStore
from ..schemas.directory import Principal
from .availability_service import AvailabilityService
from .booking_service import clean_notes
from .slot_calendar import is_bookable_slot

logger = logging.getLogger(__name__)

# Allowed edges when STRICT_STATUS_TRANSITIONS is enabled
STATUS_TRANSITIONS = {
    AppointmentStatus.PENDING.value: {
        AppointmentStatus.CONFIRMED.value,
        AppointmentStatus.CANCELLED.value,
    },
    AppointmentStatus.CONFIRMED.value: {
        AppointmentStatus.COMPLETED.value,
        AppointmentStatus.CANCELLED.value,
    },
    AppointmentStatus.APPROVED.value: {
        AppointmentStatus.COMPLETED.value,
        AppointmentStatus.CANCELLED.value,
    },
}


def parse_status(value: str) -> AppointmentStatus:
    """Map caller input onto an assignable status, case-insensitively."""
    normalized = (value or "").strip().lower()
    for candidate in ASSIGNABLE_STATUSES:
        if candidate.value == normalized:
            return candidate
    raise InvalidStatus()


@dataclass
class CancelOutcome:
    appointment: Appointment
    already_cancelled: bool = False


@dataclass
class DoctorDashboard:
    doctor: Doctor
    today_appointments: list[Appointment] = field(default_factory=list)
    upcoming_appointments: list[Appointment] = field(default_factory=list)


class AppointmentService:
    """Lifecycle operations on existing appointments.

    Patients act on appointments booked under their own profile, doctors on
    appointments assigned to them, admins on any appointment.
    """

    def __init__(self, db: Session):
        self.db = db
        self.store = AppointmentStore(db)
        self.availability = AvailabilityService(self.store)

    # ------------------------------------------------------------------
    # Scoping
    # ------------------------------------------------------------------

    def _patient_scoped(self, appointment_id: int, principal: Principal) -> Appointment:
        appointment = self.store.find_appointment(appointment_id)
        if principal.is_admin:
            if not appointment:
                raise NotFound()
            return appointment

        patient = self.store.find_patient_by_user(principal.id)
        if not patient:
            logger.warning(f"Patient profile not found for user: {principal.id}")
            raise NotFound("Patient profile not found.")
        if not appointment or appointment.patient_id != patient.id:
            logger.warning(f"Appointment {appointment_id} not found for patient {patient.id}")
            raise NotFound()
        return appointment

    def _doctor_scoped(self, appointment_id: int, principal: Principal) -> Appointment:
        appointment = self.store.find_appointment(appointment_id)
        if principal.is_admin:
            if not appointment:
                raise NotFound()
            return appointment

        if not principal.has_role(UserRole.DOCTOR):
            raise AccessDenied()
        doctor = self.store.find_doctor_by_user(principal.id)
        if not doctor:
            logger.error(f"Doctor profile not found for user: {principal.id}")
            raise AccessDenied("Doctor profile not found.")
        if not appointment or appointment.doctor_id != doctor.id:
            logger.error(f"Appointment {appointment_id} not found for doctor {doctor.id}")
            raise NotFound()
        return appointment

    def _require_doctor_profile(self, principal: Principal) -> Doctor:
        doctor = self.store.find_doctor_by_user(principal.id)
        if not doctor:
            logger.warning(f"Doctor profile not found for user: {principal.id}")
            raise AccessDenied("Doctor profile not found.")
        return doctor

    # ------------------------------------------------------------------
    # Reschedule / status / cancel
    # ------------------------------------------------------------------

    def reschedule(
        self,
        appointment_id: int,
        principal: Principal,
        new_date: date,
        new_time: time,
        today: Optional[date] = None,
    ) -> Appointment:
        """Move an appointment to a new slot and send it back to pending."""
        today = today or date.today()
        logger.info(f"Rescheduling appointment {appointment_id} to {new_date} {new_time}")

        def move(store: AppointmentStore) -> Appointment:
            appointment = self._patient_scoped(appointment_id, principal)

            if appointment.is_terminal:
                logger.warning(f"Cannot reschedule {appointment.status} appointment {appointment_id}")
                raise TerminalState(f"Cannot reschedule a {appointment.status} appointment.")

            if new_date < today:
                logger.warning(f"Cannot reschedule to past date: {new_date}")
                raise PastDate("Cannot reschedule to a past date.")

            if not is_bookable_slot(new_time):
                raise InvalidSlot()

            store.find_doctor(appointment.doctor_id, for_update=True)
            if not self.availability.is_slot_free(
                appointment.doctor_id, new_date, new_time, exclude_id=appointment.id
            ):
                logger.warning("Time slot already booked for rescheduling")
                raise SlotConflict()

            appointment.appointment_date = new_date
            appointment.appointment_time = new_time
            appointment.status = AppointmentStatus.PENDING.value
            store.update_appointment(appointment)
            return appointment

        appointment = self.store.run_in_transaction(move, "reschedule appointment")
        logger.info(f"Appointment {appointment_id} rescheduled successfully")
        return appointment

    def set_status(self, appointment_id: int, principal: Principal, new_status: str) -> Appointment:
        """Set an appointment's status directly.

        Completed and cancelled appointments never change again. Otherwise
        any assignable value is accepted unless strict transitions are on.
        """
        logger.info(f"Updating appointment {appointment_id} status to {new_status}")
        target = parse_status(new_status)

        def apply(store: AppointmentStore) -> Appointment:
            appointment = self._doctor_scoped(appointment_id, principal)
            old_status = appointment.status

            if appointment.is_terminal:
                logger.warning(f"Cannot change status of {old_status} appointment {appointment_id}")
                raise TerminalState(f"Cannot change the status of a {old_status} appointment.")

            if settings.STRICT_STATUS_TRANSITIONS and target.value not in STATUS_TRANSITIONS.get(old_status, set()):
                raise InvalidStatus(f"Cannot change status from {old_status} to {target.value}.")

            appointment.status = target.value
            store.update_appointment(appointment)
            logger.info(
                f"Appointment {appointment_id} status updated from {old_status} to {target.value}"
            )
            return appointment

        return self.store.run_in_transaction(apply, "update appointment status")

    def complete(self, appointment_id: int, principal: Principal) -> Appointment:
        return self.set_status(appointment_id, principal, AppointmentStatus.COMPLETED.value)

    def cancel(self, appointment_id: int, principal: Principal, today: Optional[date] = None) -> CancelOutcome:
        """Cancel an appointment; cancelling twice is a no-op."""
        today = today or date.today()
        logger.info(f"Cancelling appointment {appointment_id} for user: {principal.id}")

        def cancel_one(store: AppointmentStore) -> CancelOutcome:
            appointment = self._patient_scoped(appointment_id, principal)

            if appointment.status == AppointmentStatus.COMPLETED.value:
                logger.warning(f"Cannot cancel completed appointment {appointment_id}")
                raise TerminalCompleted()

            if appointment.status == AppointmentStatus.CANCELLED.value:
                logger.warning(f"Appointment {appointment_id} is already cancelled")
                return CancelOutcome(appointment=appointment, already_cancelled=True)

            if appointment.appointment_date < today:
                logger.warning(f"Cannot cancel past appointment {appointment_id}")
                raise PastDate("Cannot cancel past appointments.")

            appointment.status = AppointmentStatus.CANCELLED.value
            store.update_appointment(appointment)
            return CancelOutcome(appointment=appointment)

        outcome = self.store.run_in_transaction(cancel_one, "cancel appointment")
        if not outcome.already_cancelled:
            logger.info(f"Appointment {appointment_id} cancelled successfully")
        return outcome

    # ------------------------------------------------------------------
    # Clinical notes, listing, details
    # ------------------------------------------------------------------

    def add_notes(self, appointment_id: int, principal: Principal, notes: str) -> Appointment:
        def write(store: AppointmentStore) -> Appointment:
            appointment = self._doctor_scoped(appointment_id, principal)
            appointment.notes = clean_notes(notes)
            store.update_appointment(appointment)
            return appointment

        appointment = self.store.run_in_transaction(write, "add medical notes")
        logger.info(f"Medical notes added to appointment {appointment_id}")
        return appointment

    def list_for_principal(self, principal: Principal) -> list[Appointment]:
        if principal.is_admin:
            appointments = self.store.list_appointments()
        elif principal.has_role(UserRole.DOCTOR):
            doctor = self._require_doctor_profile(principal)
            appointments = self.store.list_appointments(doctor_id=doctor.id)
        else:
            patient = self.store.find_patient_by_user(principal.id)
            if not patient:
                logger.info(f"No patient profile found for user: {principal.id}")
                return []
            appointments = self.store.list_appointments(patient_id=patient.id)

        logger.info(f"Found {len(appointments)} appointments for user {principal.id}")
        return appointments

    def get_for_principal(self, appointment_id: int, principal: Principal) -> Appointment:
        appointment = self.store.find_appointment(appointment_id)
        if not appointment:
            logger.warning(f"Appointment {appointment_id} not found")
            raise NotFound()

        if principal.is_admin:
            return appointment

        if principal.has_role(UserRole.DOCTOR):
            doctor = self.store.find_doctor_by_user(principal.id)
            if doctor and appointment.doctor_id == doctor.id:
                return appointment
        if principal.has_role(UserRole.PATIENT):
            patient = self.store.find_patient_by_user(principal.id)
            if patient and appointment.patient_id == patient.id:
                return appointment

        logger.warning(f"Access denied - user {principal.id} cannot view appointment {appointment_id}")
        raise AccessDenied()

    # ------------------------------------------------------------------
    # Admin deletion
    # ------------------------------------------------------------------

    def delete(self, appointment_id: int) -> None:
        def remove(store: AppointmentStore) -> None:
            appointment = store.find_appointment(appointment_id)
            if not appointment:
                logger.warning(f"Appointment {appointment_id} not found for deletion")
                raise NotFound()
            store.delete_appointments([appointment])

        self.store.run_in_transaction(remove, "delete appointment")
        logger.info(f"Appointment {appointment_id} deleted successfully by admin")

    def bulk_delete(self, appointment_ids: Iterable[int]) -> int:
        appointment_ids = list(appointment_ids)
        if not appointment_ids:
            raise NotFound("No appointments selected for deletion.")

        def remove(store: AppointmentStore) -> int:
            appointments = store.find_appointments_by_ids(appointment_ids)
            if not appointments:
                raise NotFound("No valid appointments found for deletion.")
            return store.delete_appointments(appointments)

        count = self.store.run_in_transaction(remove, "bulk delete appointments")
        logger.info(f"Successfully deleted {count} appointments")
        return count

    # ------------------------------------------------------------------
    # Doctor views
    # ------------------------------------------------------------------

    def doctor_dashboard(self, principal: Principal, today: Optional[date] = None) -> DoctorDashboard:
        today = today or date.today()
        doctor = self._require_doctor_profile(principal)
        visible = {status.value for status in AppointmentStatus} - {AppointmentStatus.CANCELLED.value}
        return DoctorDashboard(
            doctor=doctor,
            today_appointments=self.store.find_appointments_for(doctor.id, today, statuses=visible),
            upcoming_appointments=self.store.upcoming_appointments(
                doctor.id,
                today,
                AppointmentStatus.PENDING.value,
                settings.DOCTOR_UPCOMING_LIMIT,
            ),
        )

    def patient_history(self, principal: Principal, patient_id: int) -> tuple[Patient, list[Appointment]]:
        """A patient's appointments with the requesting doctor."""
        doctor = self._require_doctor_profile(principal)
        patient = self.store.find_patient(patient_id)
        if not patient:
            logger.warning(f"Patient {patient_id} not found")
            raise NotFound("Patient not found.")
        return patient, self.store.list_appointments(doctor_id=doctor.id, patient_id=patient.id)

    def send_reminder(self, appointment_id: int, principal: Principal) -> str:
        """Simulated reminder; delivery channels are out of scope."""
        appointment = self.get_for_principal(appointment_id, principal)
        message = (
            f"Reminder sent for appointment with {appointment.patient.name} and "
            f"Dr. {appointment.doctor.name} on {appointment.appointment_date:%b %d, %Y} "
            f"at {appointment.appointment_time:%H:%M}"
        )
        logger.info(message)
        return message
