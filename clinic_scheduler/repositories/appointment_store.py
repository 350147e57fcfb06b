"""Appointment store - Database operations for appointments, doctors and patients"""

import logging
import time
from datetime import date
from typing import Callable, Iterable, Optional, TypeVar

from sqlalchemy.exc import DisconnectionError, IntegrityError, OperationalError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import SlotConflict, TransientStoreFailure
from ..models.appointment import Appointment
from ..models.doctor import Doctor
from ..models.patient import Patient

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_ERRORS = (OperationalError, DisconnectionError)

OCCUPIED_SLOT_INDEX = "uq_appointments_occupied_slot"
# SQLite names the indexed columns instead of the index
SQLITE_SLOT_COLUMNS = (
    "appointments.doctor_id, appointments.appointment_date, appointments.appointment_time"
)


def is_occupied_slot_violation(exc: IntegrityError) -> bool:
    message = str(exc.orig)
    return OCCUPIED_SLOT_INDEX in message or (
        "UNIQUE constraint failed" in message and SQLITE_SLOT_COLUMNS in message
    )


class AppointmentStore:
    """Persistence boundary for the scheduling engines.

    Methods never commit on their own; callers group writes with
    ``run_in_transaction`` (or ``commit``/``rollback`` directly) so that a
    conflict check and the write it guards land in one transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Doctors
    # ------------------------------------------------------------------

    def find_doctor(self, doctor_id: int, for_update: bool = False) -> Optional[Doctor]:
        """Get a doctor by ID, optionally locking the row until commit."""
        query = self.db.query(Doctor).filter(Doctor.id == doctor_id)
        if for_update:
            # Serializes concurrent bookings for the same doctor on PostgreSQL
            query = query.with_for_update()
        return query.first()

    def find_doctor_by_user(self, user_id: int) -> Optional[Doctor]:
        return self.db.query(Doctor).filter(Doctor.user_id == user_id).first()

    def list_active_doctors(self) -> list[Doctor]:
        return (
            self.db.query(Doctor)
            .filter(Doctor.is_active.is_(True))
            .order_by(Doctor.name.asc())
            .all()
        )

    # ------------------------------------------------------------------
    # Patients
    # ------------------------------------------------------------------

    def find_patient(self, patient_id: int) -> Optional[Patient]:
        return self.db.query(Patient).filter(Patient.id == patient_id).first()

    def find_patient_by_user(self, user_id: int) -> Optional[Patient]:
        return self.db.query(Patient).filter(Patient.user_id == user_id).first()

    def create_patient(self, patient: Patient) -> Patient:
        self.db.add(patient)
        self.db.flush()
        return patient

    # ------------------------------------------------------------------
    # Appointments
    # ------------------------------------------------------------------

    def find_appointment(self, appointment_id: int) -> Optional[Appointment]:
        return self.db.query(Appointment).filter(Appointment.id == appointment_id).first()

    def find_appointments_for(
        self,
        doctor_id: int,
        appointment_date: date,
        statuses: Optional[Iterable[str]] = None,
        exclude_id: Optional[int] = None,
    ) -> list[Appointment]:
        """Get a doctor's appointments on a date, optionally filtered by status."""
        query = self.db.query(Appointment).filter(
            Appointment.doctor_id == doctor_id,
            Appointment.appointment_date == appointment_date,
        )
        if statuses is not None:
            query = query.filter(Appointment.status.in_(list(statuses)))
        if exclude_id is not None:
            query = query.filter(Appointment.id != exclude_id)
        return query.order_by(Appointment.appointment_time.asc()).all()

    def find_appointments_by_ids(self, appointment_ids: Iterable[int]) -> list[Appointment]:
        return self.db.query(Appointment).filter(Appointment.id.in_(list(appointment_ids))).all()

    def list_appointments(
        self,
        doctor_id: Optional[int] = None,
        patient_id: Optional[int] = None,
    ) -> list[Appointment]:
        """List appointments, latest date first and earliest time first within a day."""
        query = self.db.query(Appointment)
        if doctor_id is not None:
            query = query.filter(Appointment.doctor_id == doctor_id)
        if patient_id is not None:
            query = query.filter(Appointment.patient_id == patient_id)
        return query.order_by(
            Appointment.appointment_date.desc(),
            Appointment.appointment_time.asc(),
        ).all()

    def upcoming_appointments(
        self,
        doctor_id: int,
        from_date: date,
        status: str,
        limit: int,
    ) -> list[Appointment]:
        return (
            self.db.query(Appointment)
            .filter(
                Appointment.doctor_id == doctor_id,
                Appointment.appointment_date >= from_date,
                Appointment.status == status,
            )
            .order_by(Appointment.appointment_date.asc(), Appointment.appointment_time.asc())
            .limit(limit)
            .all()
        )

    def insert_appointment(self, appointment: Appointment) -> Appointment:
        self.db.add(appointment)
        self._flush_guarding_slot()
        return appointment

    def update_appointment(self, appointment: Appointment) -> None:
        self._flush_guarding_slot()

    def delete_appointments(self, appointments: Iterable[Appointment]) -> int:
        count = 0
        for appointment in appointments:
            self.db.delete(appointment)
            count += 1
        self.db.flush()
        return count

    def _flush_guarding_slot(self) -> None:
        # The partial unique index on occupied slots rejects a write that
        # slipped past the in-transaction conflict check
        try:
            self.db.flush()
        except IntegrityError as exc:
            self.db.rollback()
            if not is_occupied_slot_violation(exc):
                raise
            logger.warning(f"Occupied-slot constraint rejected write: {exc.orig}")
            raise SlotConflict() from exc

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()

    def run_in_transaction(self, work: Callable[["AppointmentStore"], T], description: str = "transaction") -> T:
        """Run ``work`` and commit, retrying transient store failures.

        Any exception rolls the session back before it propagates.
        Scheduling errors are never retried.
        """
        max_retries = settings.STORE_MAX_RETRIES
        for attempt in range(max_retries + 1):
            try:
                result = work(self)
                self.db.commit()
                return result
            except TRANSIENT_ERRORS as exc:
                self.db.rollback()
                if attempt >= max_retries:
                    logger.error(f"{description} failed after {attempt + 1} attempts: {exc}")
                    raise TransientStoreFailure() from exc
                delay = settings.STORE_RETRY_BACKOFF_SECONDS * (2 ** attempt)
                logger.warning(
                    f"Retry {attempt + 1}/{max_retries} for {description} in {delay:.2f}s: {exc}"
                )
                time.sleep(delay)
            except Exception:
                self.db.rollback()
                raise
