import csv
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time
from io import StringIO
from typing import Any, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..core.exceptions import InvalidExport, NotFound, PatientHasAppointments
from ..core.security import UserRole
from ..models.appointment import TERMINAL_STATUSES, Appointment, AppointmentStatus
from ..models.doctor import Doctor
from ..models.patient import Patient
from ..models.user import User
from ..repositories.appointment_store import AppointmentStore
from ..schemas.doctor import DoctorCreate, DoctorUpdate
from ..schemas.patient import PatientCreate, PatientUpdate

logger = logging.getLogger(__name__)

EXPORT_FIELDS = {
    "patients": ["id", "name", "age", "phone", "address", "medical_history", "registration_date"],
    "doctors": ["id", "name", "specialization", "phone", "address", "is_active"],
    "appointments": [
        "id", "patient_id", "patient_name", "doctor_id", "doctor_name",
        "appointment_date", "appointment_time", "status", "notes", "created_at",
    ],
}
EXPORT_FORMATS = ("json", "csv")


def _plain(value: Any) -> Any:
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return value


@dataclass
class ExportPayload:
    data_type: str
    format: str
    records: list[dict] = field(default_factory=list)

    @property
    def filename(self) -> str:
        return f"{self.data_type}_export_{datetime.now().strftime('%Y%m%d_%H%M%S')}.{self.format}"

    @property
    def media_type(self) -> str:
        return "text/csv" if self.format == "csv" else "application/json"

    def to_csv(self) -> str:
        output = StringIO()
        writer = csv.DictWriter(output, fieldnames=EXPORT_FIELDS[self.data_type])
        writer.writeheader()
        writer.writerows(self.records)
        return output.getvalue()


@dataclass
class UserDeletion:
    user_id: int
    patient_removed: bool = False
    doctor_outcome: str = "none"


class AdminService:
    """Directory management, deletion cascades and reporting for admins."""

    def __init__(self, db: Session):
        self.db = db
        self.store = AppointmentStore(db)

    def _count_appointments(self, **filters) -> int:
        query = self.db.query(func.count(Appointment.id))
        if "doctor_id" in filters:
            query = query.filter(Appointment.doctor_id == filters["doctor_id"])
        if "patient_id" in filters:
            query = query.filter(Appointment.patient_id == filters["patient_id"])
        if filters.get("active_only"):
            query = query.filter(Appointment.status.notin_(list(TERMINAL_STATUSES)))
        return query.scalar() or 0

    # ------------------------------------------------------------------
    # Doctors
    # ------------------------------------------------------------------

    def list_doctors(self) -> list[Doctor]:
        return self.db.query(Doctor).order_by(Doctor.name.asc()).all()

    def get_doctor(self, doctor_id: int) -> Doctor:
        doctor = self.store.find_doctor(doctor_id)
        if not doctor:
            logger.warning(f"Doctor {doctor_id} not found")
            raise NotFound("Doctor not found.")
        return doctor

    def create_doctor(self, doctor_data: DoctorCreate) -> Doctor:
        def create(store: AppointmentStore) -> Doctor:
            doctor = Doctor(**doctor_data.model_dump(), is_active=True)
            store.db.add(doctor)
            store.db.flush()
            return doctor

        doctor = self.store.run_in_transaction(create, "create doctor")
        logger.info(f"Doctor created - ID: {doctor.id}, Name: {doctor.name}")
        return doctor

    def update_doctor(self, doctor_id: int, doctor_data: DoctorUpdate) -> Doctor:
        def update(store: AppointmentStore) -> Doctor:
            doctor = self.get_doctor(doctor_id)
            for key, value in doctor_data.model_dump(exclude_unset=True).items():
                setattr(doctor, key, value)
            store.db.flush()
            return doctor

        doctor = self.store.run_in_transaction(update, "update doctor")
        logger.info(f"Doctor {doctor_id} updated")
        return doctor

    def toggle_doctor(self, doctor_id: int) -> Doctor:
        def toggle(store: AppointmentStore) -> Doctor:
            doctor = self.get_doctor(doctor_id)
            doctor.is_active = not doctor.is_active
            store.db.flush()
            return doctor

        doctor = self.store.run_in_transaction(toggle, "toggle doctor")
        logger.info(f"Doctor {doctor_id} is now {'active' if doctor.is_active else 'inactive'}")
        return doctor

    def delete_doctor(self, doctor_id: int) -> bool:
        """Delete a doctor and return True when it was only deactivated.

        A doctor with pending or confirmed appointments is kept as an inactive
        record; otherwise its finished appointments go with it.
        """

        def remove(store: AppointmentStore) -> bool:
            doctor = self.get_doctor(doctor_id)
            return self._retire_doctor(store, doctor)

        soft_deleted = self.store.run_in_transaction(remove, "delete doctor")
        logger.info(
            f"Doctor {doctor_id} {'deactivated' if soft_deleted else 'deleted'} by admin"
        )
        return soft_deleted

    def _retire_doctor(self, store: AppointmentStore, doctor: Doctor) -> bool:
        if self._count_appointments(doctor_id=doctor.id, active_only=True):
            doctor.is_active = False
            store.db.flush()
            return True

        store.delete_appointments(store.list_appointments(doctor_id=doctor.id))
        store.db.delete(doctor)
        store.db.flush()
        return False

    # ------------------------------------------------------------------
    # Patients
    # ------------------------------------------------------------------

    def list_patients(self) -> list[Patient]:
        return self.db.query(Patient).order_by(Patient.name.asc()).all()

    def get_patient(self, patient_id: int) -> Patient:
        patient = self.store.find_patient(patient_id)
        if not patient:
            logger.warning(f"Patient {patient_id} not found")
            raise NotFound("Patient not found.")
        return patient

    def create_patient(self, patient_data: PatientCreate) -> Patient:
        def create(store: AppointmentStore) -> Patient:
            patient = Patient(**patient_data.model_dump(), registration_date=datetime.utcnow())
            return store.create_patient(patient)

        patient = self.store.run_in_transaction(create, "create patient")
        logger.info(f"Patient created - ID: {patient.id}, Name: {patient.name}")
        return patient

    def update_patient(self, patient_id: int, patient_data: PatientUpdate) -> Patient:
        def update(store: AppointmentStore) -> Patient:
            patient = self.get_patient(patient_id)
            for key, value in patient_data.model_dump(exclude_unset=True).items():
                setattr(patient, key, value)
            store.db.flush()
            return patient

        patient = self.store.run_in_transaction(update, "update patient")
        logger.info(f"Patient {patient_id} updated")
        return patient

    def delete_patient(self, patient_id: int) -> None:
        def remove(store: AppointmentStore) -> None:
            patient = self.get_patient(patient_id)
            if self._count_appointments(patient_id=patient.id):
                logger.warning(f"Cannot delete patient {patient_id} with existing appointments")
                raise PatientHasAppointments()
            store.db.delete(patient)
            store.db.flush()

        self.store.run_in_transaction(remove, "delete patient")
        logger.info(f"Patient {patient_id} deleted by admin")

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def _get_user(self, user_id: int) -> User:
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            logger.warning(f"User {user_id} not found")
            raise NotFound("User not found.")
        return user

    def delete_user(self, user_id: int) -> UserDeletion:
        """Delete a user together with the profiles that hang off it.

        A patient profile that still has appointments blocks the deletion.
        A doctor profile with open appointments is unlinked and deactivated
        instead of removed.
        """

        def remove(store: AppointmentStore) -> UserDeletion:
            user = self._get_user(user_id)
            outcome = UserDeletion(user_id=user.id)

            patient = store.find_patient_by_user(user.id)
            if patient and self._count_appointments(patient_id=patient.id):
                logger.warning(f"Cannot delete user {user_id}: patient profile has appointments")
                raise PatientHasAppointments()

            doctor = store.find_doctor_by_user(user.id)

            if patient:
                store.db.delete(patient)
                store.db.flush()
                outcome.patient_removed = True

            if doctor:
                doctor.user_id = None
                soft_deleted = self._retire_doctor(store, doctor)
                outcome.doctor_outcome = "deactivated" if soft_deleted else "deleted"

            store.db.delete(user)
            store.db.flush()
            return outcome

        outcome = self.store.run_in_transaction(remove, "delete user")
        logger.info(
            f"User {user_id} deleted - patient removed: {outcome.patient_removed}, "
            f"doctor: {outcome.doctor_outcome}"
        )
        return outcome

    def deactivate_user(self, user_id: int) -> User:
        """Block the account; its tokens stop resolving to a principal."""

        def deactivate(store: AppointmentStore) -> User:
            user = self._get_user(user_id)
            user.is_active = False
            store.db.flush()
            return user

        user = self.store.run_in_transaction(deactivate, "deactivate user")
        logger.info(f"User {user_id} deactivated by admin")
        return user

    def update_user_role(self, user_id: int, role: UserRole) -> User:
        def update(store: AppointmentStore) -> User:
            user = self._get_user(user_id)
            user.role = role
            store.db.flush()
            return user

        user = self.store.run_in_transaction(update, "update user role")
        logger.info(f"User {user_id} role changed to {role.value}")
        return user

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def dashboard_counts(self) -> dict:
        return {
            "total_doctors": self.db.query(func.count(Doctor.id)).filter(Doctor.is_active.is_(True)).scalar() or 0,
            "total_patients": self.db.query(func.count(Patient.id)).scalar() or 0,
            "total_appointments": self._count_appointments(),
            "pending_appointments": (
                self.db.query(func.count(Appointment.id))
                .filter(Appointment.status == AppointmentStatus.PENDING.value)
                .scalar() or 0
            ),
        }

    def appointment_counts_by_status(self) -> dict[str, int]:
        counts = {status.value: 0 for status in AppointmentStatus}
        rows = (
            self.db.query(Appointment.status, func.count(Appointment.id))
            .group_by(Appointment.status)
            .all()
        )
        for status, count in rows:
            counts[status] = count
        return counts

    def recent_registrations(self, limit: int = 5) -> list[Patient]:
        return (
            self.db.query(Patient)
            .order_by(Patient.registration_date.desc(), Patient.id.desc())
            .limit(limit)
            .all()
        )

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export(self, data_type: str, format: str = "json") -> ExportPayload:
        data_type = (data_type or "").lower()
        format = (format or "").lower()
        if data_type not in EXPORT_FIELDS or format not in EXPORT_FORMATS:
            logger.warning(f"Invalid export request - data_type: {data_type}, format: {format}")
            raise InvalidExport()

        if data_type == "patients":
            rows = [self._row(patient, data_type) for patient in self.list_patients()]
        elif data_type == "doctors":
            rows = [self._row(doctor, data_type) for doctor in self.list_doctors()]
        else:
            rows = [self._appointment_row(appointment) for appointment in self.store.list_appointments()]

        logger.info(f"Exported {len(rows)} {data_type} as {format}")
        return ExportPayload(data_type=data_type, format=format, records=rows)

    @staticmethod
    def _row(entity, data_type: str) -> dict:
        return {name: _plain(getattr(entity, name)) for name in EXPORT_FIELDS[data_type]}

    @staticmethod
    def _appointment_row(appointment: Appointment) -> dict:
        return {
            "id": appointment.id,
            "patient_id": appointment.patient_id,
            "patient_name": appointment.patient.name if appointment.patient else None,
            "doctor_id": appointment.doctor_id,
            "doctor_name": appointment.doctor.name if appointment.doctor else None,
            "appointment_date": _plain(appointment.appointment_date),
            "appointment_time": _plain(appointment.appointment_time),
            "status": appointment.status,
            "notes": appointment.notes,
            "created_at": _plain(appointment.created_at),
        }
