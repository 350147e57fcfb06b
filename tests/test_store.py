from datetime import time

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from clinic_scheduler.core.config import settings
from clinic_scheduler.core.exceptions import NotFound, SlotConflict, TransientStoreFailure
from clinic_scheduler.models.appointment import Appointment
from clinic_scheduler.models.doctor import Doctor
from clinic_scheduler.repositories.appointment_store import AppointmentStore, is_occupied_slot_violation


@pytest.fixture
def store(db, monkeypatch):
    monkeypatch.setattr(settings, "STORE_RETRY_BACKOFF_SECONDS", 0)
    monkeypatch.setattr(settings, "STORE_MAX_RETRIES", 2)
    return AppointmentStore(db)


def _flaky(failures):
    calls = {"count": 0}

    def work(store):
        calls["count"] += 1
        if calls["count"] <= failures:
            raise OperationalError("SELECT 1", {}, Exception("connection reset"))
        store.db.add(Doctor(name="Erin Hall", specialization="Oncology"))
        store.db.flush()
        return calls["count"]

    return work, calls


def test_transient_errors_are_retried(store, db):
    work, calls = _flaky(failures=2)

    assert store.run_in_transaction(work, "flaky write") == 3
    assert db.query(Doctor).count() == 1


def test_exhausted_retries_raise_transient_failure(store, db):
    work, calls = _flaky(failures=5)

    with pytest.raises(TransientStoreFailure):
        store.run_in_transaction(work, "flaky write")

    assert calls["count"] == 3
    assert db.query(Doctor).count() == 0


def test_scheduling_errors_roll_back_without_retry(store, db):
    calls = {"count": 0}

    def work(store):
        calls["count"] += 1
        store.db.add(Doctor(name="Erin Hall", specialization="Oncology"))
        store.db.flush()
        raise NotFound()

    with pytest.raises(NotFound):
        store.run_in_transaction(work)

    assert calls["count"] == 1
    assert db.query(Doctor).count() == 0


def test_non_slot_integrity_errors_are_not_reported_as_conflicts(store, doctor, future_date):
    appointment = Appointment(
        doctor_id=doctor.id,
        patient_id=None,
        appointment_date=future_date,
        appointment_time=time(9, 0),
        status="pending",
    )

    with pytest.raises(IntegrityError) as exc_info:
        store.insert_appointment(appointment)

    assert not is_occupied_slot_violation(exc_info.value)


def test_duplicate_occupied_slot_is_reported_as_conflict(store, doctor, patient, future_date, make_appointment):
    make_appointment(doctor, patient, future_date, time(9, 0))

    with pytest.raises(SlotConflict):
        store.insert_appointment(Appointment(
            doctor_id=doctor.id,
            patient_id=patient.id,
            appointment_date=future_date,
            appointment_time=time(9, 0),
            status="confirmed",
        ))
