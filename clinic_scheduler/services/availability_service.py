import logging
from dataclasses import dataclass, field
from datetime import date, time
from typing import Optional

from ..core.exceptions import DoctorUnavailable, InvalidDate
from ..models.appointment import OCCUPYING_STATUSES
from ..models.doctor import Doctor
from ..repositories.appointment_store import AppointmentStore
from .slot_calendar import time_slots

logger = logging.getLogger(__name__)


@dataclass
class AvailabilityResult:
    doctor_id: int
    doctor_name: str
    date: date
    slots: list[time] = field(default_factory=list)


class AvailabilityService:
    """Free slots for a doctor on a date: the calendar minus occupied times."""

    def __init__(self, store: AppointmentStore):
        self.store = store

    def require_active_doctor(self, doctor_id: int, for_update: bool = False) -> Doctor:
        doctor = self.store.find_doctor(doctor_id, for_update=for_update)
        if not doctor or not doctor.is_active:
            logger.warning(f"Doctor not found or inactive - DoctorId: {doctor_id}")
            raise DoctorUnavailable()
        return doctor

    def occupied_slots(
        self,
        doctor_id: int,
        appointment_date: date,
        exclude_id: Optional[int] = None,
    ) -> set[time]:
        appointments = self.store.find_appointments_for(
            doctor_id,
            appointment_date,
            statuses=OCCUPYING_STATUSES,
            exclude_id=exclude_id,
        )
        return {appointment.appointment_time for appointment in appointments}

    def is_slot_free(
        self,
        doctor_id: int,
        appointment_date: date,
        slot_time: time,
        exclude_id: Optional[int] = None,
    ) -> bool:
        return slot_time not in self.occupied_slots(doctor_id, appointment_date, exclude_id=exclude_id)

    def available_slots(self, doctor_id: int, appointment_date: date, today: Optional[date] = None) -> AvailabilityResult:
        """Get the ordered free slots for an active doctor on a non-past date."""
        logger.info(f"Getting available time slots for doctor {doctor_id} on {appointment_date}")
        today = today or date.today()

        if appointment_date < today:
            logger.warning(f"Cannot get time slots for past date: {appointment_date}")
            raise InvalidDate()

        doctor = self.require_active_doctor(doctor_id)

        all_slots = time_slots()
        occupied = self.occupied_slots(doctor_id, appointment_date)
        available = [slot for slot in all_slots if slot not in occupied]

        logger.info(
            f"Found {len(available)} available slots out of {len(all_slots)} "
            f"for doctor {doctor_id} on {appointment_date}"
        )
        return AvailabilityResult(
            doctor_id=doctor.id,
            doctor_name=doctor.name,
            date=appointment_date,
            slots=available,
        )
