import logging
from datetime import date, datetime, time
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.exceptions import InvalidSlot, PastDate, SlotConflict
from ..models.appointment import Appointment, AppointmentStatus
from ..models.patient import DEFAULT_ADDRESS, Patient
from ..repositories.appointment_store import AppointmentStore
from ..schemas.directory import Principal
from .availability_service import AvailabilityService
from .slot_calendar import is_bookable_slot

logger = logging.getLogger(__name__)


def clean_notes(notes: Optional[str]) -> Optional[str]:
    if notes is None:
        return None
    notes = notes.strip()
    return notes or None


class BookingService:
    """Creates appointments without ever double-booking a doctor's slot.

    Booking is two separately committed steps. ``ensure_patient_profile``
    provisions a profile for principals that do not have one yet; ``book``
    then validates and inserts the appointment in a single transaction.
    A profile created by the first step is kept even when the second step
    fails, and a retried booking simply finds it.
    """

    def __init__(self, db: Session):
        self.db = db
        self.store = AppointmentStore(db)
        self.availability = AvailabilityService(self.store)

    def ensure_patient_profile(self, principal: Principal) -> Patient:
        """Return the principal's patient profile, creating it on first use."""

        def provision(store: AppointmentStore) -> Patient:
            patient = store.find_patient_by_user(principal.id)
            if patient:
                logger.info(f"Patient profile exists - ID: {patient.id}")
                return patient

            logger.info(f"Creating new patient profile for user: {principal.id}")
            patient = Patient(
                user_id=principal.id,
                name=principal.display_name or "Unknown Patient",
                age=0,
                phone=principal.phone or "",
                address=DEFAULT_ADDRESS,
                medical_history="",
                registration_date=datetime.utcnow(),
            )
            return store.create_patient(patient)

        try:
            patient = self.store.run_in_transaction(provision, "ensure patient profile")
        except IntegrityError:
            # A concurrent request provisioned the same user first
            patient = self.store.find_patient_by_user(principal.id)
            if patient is None:
                raise
        return patient

    def book(
        self,
        principal: Principal,
        doctor_id: int,
        appointment_date: date,
        appointment_time: time,
        notes: Optional[str] = None,
        today: Optional[date] = None,
    ) -> Appointment:
        """Book a pending appointment for the principal."""
        today = today or date.today()
        logger.info(
            f"Booking requested by user {principal.id} - DoctorId: {doctor_id}, "
            f"Date: {appointment_date}, Time: {appointment_time}"
        )

        patient_id = self.ensure_patient_profile(principal).id

        def reserve(store: AppointmentStore) -> Appointment:
            doctor = self.availability.require_active_doctor(doctor_id, for_update=True)

            if appointment_date < today:
                logger.warning(f"Appointment date is in the past: {appointment_date}")
                raise PastDate()

            if not is_bookable_slot(appointment_time):
                logger.warning(f"Requested time is not a calendar slot: {appointment_time}")
                raise InvalidSlot()

            if not self.availability.is_slot_free(doctor_id, appointment_date, appointment_time):
                logger.warning(
                    f"Time slot already booked - Doctor: {doctor_id}, "
                    f"Date: {appointment_date}, Time: {appointment_time}"
                )
                raise SlotConflict()

            appointment = Appointment(
                doctor_id=doctor.id,
                patient_id=patient_id,
                appointment_date=appointment_date,
                appointment_time=appointment_time,
                status=AppointmentStatus.PENDING.value,
                notes=clean_notes(notes),
                created_at=datetime.utcnow(),
            )
            return store.insert_appointment(appointment)

        appointment = self.store.run_in_transaction(reserve, "book appointment")
        logger.info(
            f"Appointment booked successfully - ID: {appointment.id}, "
            f"PatientId: {patient_id}, DoctorId: {doctor_id}"
        )
        return appointment
