from datetime import time, timedelta

import pytest

from clinic_scheduler.core.exceptions import DoctorUnavailable, InvalidDate
from clinic_scheduler.repositories.appointment_store import AppointmentStore
from clinic_scheduler.services.availability_service import AvailabilityService
from clinic_scheduler.services.slot_calendar import time_slots


@pytest.fixture
def availability(db):
    return AvailabilityService(AppointmentStore(db))


def test_all_slots_free_without_appointments(availability, doctor, future_date):
    result = availability.available_slots(doctor.id, future_date)

    assert result.doctor_id == doctor.id
    assert result.doctor_name == "Alice Smith"
    assert result.slots == time_slots()


def test_available_slots_are_the_complement_of_occupied(
    availability, doctor, patient, future_date, make_appointment
):
    make_appointment(doctor, patient, future_date, time(10, 0), status="pending")
    make_appointment(doctor, patient, future_date, time(11, 0), status="confirmed")
    make_appointment(doctor, patient, future_date, time(12, 0), status="approved")
    make_appointment(doctor, patient, future_date, time(13, 0), status="cancelled")
    make_appointment(doctor, patient, future_date, time(14, 0), status="completed")

    slots = availability.available_slots(doctor.id, future_date).slots

    occupied = {time(10, 0), time(11, 0), time(12, 0)}
    assert slots == [slot for slot in time_slots() if slot not in occupied]
    assert time(13, 0) in slots
    assert time(14, 0) in slots


def test_other_doctors_and_dates_do_not_occupy(
    availability, doctor, other_doctor, patient, future_date, make_appointment
):
    make_appointment(other_doctor, patient, future_date, time(10, 0))
    make_appointment(doctor, patient, future_date + timedelta(days=1), time(10, 0))

    assert time(10, 0) in availability.available_slots(doctor.id, future_date).slots


def test_today_is_allowed(availability, doctor, today):
    assert availability.available_slots(doctor.id, today, today=today).slots == time_slots()


def test_past_date_is_rejected(availability, doctor, today):
    with pytest.raises(InvalidDate):
        availability.available_slots(doctor.id, today - timedelta(days=1), today=today)


def test_inactive_doctor_is_unavailable(availability, inactive_doctor, future_date):
    with pytest.raises(DoctorUnavailable):
        availability.available_slots(inactive_doctor.id, future_date)


def test_unknown_doctor_is_unavailable(availability, future_date):
    with pytest.raises(DoctorUnavailable):
        availability.available_slots(9999, future_date)


def test_is_slot_free_can_exclude_an_appointment(
    availability, doctor, patient, future_date, make_appointment
):
    appointment = make_appointment(doctor, patient, future_date, time(10, 0))

    assert not availability.is_slot_free(doctor.id, future_date, time(10, 0))
    assert availability.is_slot_free(doctor.id, future_date, time(10, 0), exclude_id=appointment.id)
