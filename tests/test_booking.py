import threading
from datetime import time, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from clinic_scheduler.core.exceptions import (
    DoctorUnavailable, InvalidSlot, PastDate, SlotConflict
)
from clinic_scheduler.core.database import Base
from clinic_scheduler.core.security import UserRole
from clinic_scheduler.models.appointment import Appointment
from clinic_scheduler.models.doctor import Doctor
from clinic_scheduler.models.patient import DEFAULT_ADDRESS, Patient
from clinic_scheduler.models.user import User
from clinic_scheduler.schemas.directory import Principal
from clinic_scheduler.services.appointment_service import AppointmentService
from clinic_scheduler.services.availability_service import AvailabilityService
from clinic_scheduler.services.booking_service import BookingService


def _count_appointments(db):
    return db.query(Appointment).count()


class TestBook:
    def test_books_pending_appointment(self, db, doctor, patient, patient_principal, future_date):
        appointment = BookingService(db).book(
            patient_principal, doctor.id, future_date, time(9, 0), notes="  Chest pain  "
        )

        assert appointment.id is not None
        assert appointment.status == "pending"
        assert appointment.patient_id == patient.id
        assert appointment.doctor_id == doctor.id
        assert appointment.notes == "Chest pain"

    def test_blank_notes_are_stored_as_none(self, db, doctor, patient, patient_principal, future_date):
        appointment = BookingService(db).book(
            patient_principal, doctor.id, future_date, time(9, 0), notes="   "
        )

        assert appointment.notes is None

    def test_past_date_inserts_nothing(self, db, doctor, patient, patient_principal, today):
        with pytest.raises(PastDate):
            BookingService(db).book(
                patient_principal, doctor.id, today - timedelta(days=1), time(9, 0), today=today
            )

        assert _count_appointments(db) == 0

    def test_inactive_doctor_is_rejected(self, db, inactive_doctor, patient, patient_principal, future_date):
        with pytest.raises(DoctorUnavailable):
            BookingService(db).book(patient_principal, inactive_doctor.id, future_date, time(9, 0))

        assert _count_appointments(db) == 0

    def test_off_calendar_time_is_rejected(self, db, doctor, patient, patient_principal, future_date):
        with pytest.raises(InvalidSlot):
            BookingService(db).book(patient_principal, doctor.id, future_date, time(9, 15))

    def test_occupied_slot_is_rejected(
        self, db, doctor, patient, patient_principal, other_patient_user, future_date
    ):
        service = BookingService(db)
        service.book(patient_principal, doctor.id, future_date, time(9, 0))

        with pytest.raises(SlotConflict):
            service.book(Principal.from_user(other_patient_user), doctor.id, future_date, time(9, 0))

        assert _count_appointments(db) == 1

    def test_cancelled_slot_can_be_rebooked(
        self, db, doctor, patient, patient_principal, future_date, make_appointment
    ):
        make_appointment(doctor, patient, future_date, time(9, 0), status="cancelled")

        appointment = BookingService(db).book(patient_principal, doctor.id, future_date, time(9, 0))

        assert appointment.status == "pending"
        assert _count_appointments(db) == 2

    def test_unique_index_rejects_double_booking_when_check_is_bypassed(
        self, db, doctor, patient, patient_principal, other_patient_user, future_date, monkeypatch
    ):
        service = BookingService(db)
        service.book(patient_principal, doctor.id, future_date, time(9, 0))

        monkeypatch.setattr(AvailabilityService, "is_slot_free", lambda self, *args, **kwargs: True)

        with pytest.raises(SlotConflict):
            service.book(Principal.from_user(other_patient_user), doctor.id, future_date, time(9, 0))

        db.expire_all()
        assert _count_appointments(db) == 1


class TestPatientProvisioning:
    def test_first_booking_creates_profile(self, db, doctor, other_patient_user, future_date):
        principal = Principal.from_user(other_patient_user)

        appointment = BookingService(db).book(principal, doctor.id, future_date, time(10, 0))

        profile = db.query(Patient).filter(Patient.user_id == other_patient_user.id).one()
        assert appointment.patient_id == profile.id
        assert profile.name == "Sam Lee"
        assert profile.age == 0
        assert profile.address == DEFAULT_ADDRESS
        assert profile.medical_history == ""

    def test_existing_profile_is_reused(self, db, patient, patient_principal):
        service = BookingService(db)

        assert service.ensure_patient_profile(patient_principal).id == patient.id
        assert service.ensure_patient_profile(patient_principal).id == patient.id
        assert db.query(Patient).count() == 1

    def test_profile_survives_failed_booking(self, db, inactive_doctor, other_patient_user, future_date):
        principal = Principal.from_user(other_patient_user)

        with pytest.raises(DoctorUnavailable):
            BookingService(db).book(principal, inactive_doctor.id, future_date, time(10, 0))

        assert db.query(Patient).filter(Patient.user_id == other_patient_user.id).count() == 1


def test_book_conflict_reschedule_frees_original_slot(
    db, doctor, patient, patient_principal, other_patient_user, today
):
    tomorrow = today + timedelta(days=1)
    booking = BookingService(db)

    first = booking.book(patient_principal, doctor.id, tomorrow, time(9, 0), today=today)
    assert first.status == "pending"

    with pytest.raises(SlotConflict):
        booking.book(Principal.from_user(other_patient_user), doctor.id, tomorrow, time(9, 0), today=today)

    moved = AppointmentService(db).reschedule(first.id, patient_principal, tomorrow, time(9, 30), today=today)
    assert moved.status == "pending"
    assert moved.appointment_time == time(9, 30)

    availability = AvailabilityService(booking.store)
    slots = availability.available_slots(doctor.id, tomorrow, today=today).slots
    assert time(9, 0) in slots
    assert time(9, 30) not in slots


def test_concurrent_bookings_of_one_slot_yield_exactly_one_success(tmp_path, future_date):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'concurrency.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    setup = Session()
    doctor = Doctor(name="Alice Smith", specialization="Cardiology", is_active=True)
    users = [
        User(email=f"patient{i}@clinic.test", full_name=f"Patient {i}", role=UserRole.PATIENT)
        for i in range(8)
    ]
    setup.add(doctor)
    setup.add_all(users)
    setup.commit()
    doctor_id = doctor.id
    principals = [Principal.from_user(user) for user in users]
    setup.close()

    barrier = threading.Barrier(len(principals))
    results = []
    lock = threading.Lock()

    def attempt(principal):
        session = Session()
        try:
            barrier.wait()
            BookingService(session).book(principal, doctor_id, future_date, time(9, 0))
            outcome = "ok"
        except SlotConflict:
            outcome = "conflict"
        except Exception as exc:
            outcome = repr(exc)
        finally:
            session.close()
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=attempt, args=(p,)) for p in principals]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    check = Session()
    try:
        booked = check.query(Appointment).filter(Appointment.doctor_id == doctor_id).count()
    finally:
        check.close()
        engine.dispose()

    assert sorted(results) == ["conflict"] * 7 + ["ok"]
    assert booked == 1
