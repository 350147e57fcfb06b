import os
from datetime import date, timedelta

# Set testing environment before the application modules read settings
os.environ["TESTING"] = "1"
os.environ["TEST_DATABASE_URL"] = "sqlite://"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from clinic_scheduler.main import app
from clinic_scheduler.core.database import Base, get_db, get_redis
from clinic_scheduler.core.security import UserRole, create_access_token
from clinic_scheduler.models.appointment import Appointment
from clinic_scheduler.models.doctor import Doctor
from clinic_scheduler.models.patient import Patient
from clinic_scheduler.models.user import User
from clinic_scheduler.schemas.directory import Principal


class FakeRedis:
    """In-memory stand-in for the handful of redis commands the app uses."""

    def __init__(self):
        self.store = {}

    def get(self, key):
        return self.store.get(key)

    def setex(self, key, seconds, value):
        self.store[key] = str(value)

    def incr(self, key):
        self.store[key] = str(int(self.store.get(key, 0)) + 1)
        return int(self.store[key])


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def client(session_factory, fake_redis):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = lambda: fake_redis
    with TestClient(app, base_url="http://testserver") as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def today():
    return date.today()


@pytest.fixture
def future_date(today):
    return today + timedelta(days=7)


def _make_user(db, email, full_name, role, phone=None):
    user = User(email=email, full_name=full_name, role=role, phone_number=phone, is_active=True)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin_user(db):
    return _make_user(db, "admin@clinic.test", "Clinic Admin", UserRole.ADMIN)


@pytest.fixture
def doctor_user(db):
    return _make_user(db, "alice@clinic.test", "Alice Smith", UserRole.DOCTOR)


@pytest.fixture
def patient_user(db):
    return _make_user(db, "pat@clinic.test", "Pat Jones", UserRole.PATIENT, phone="555-0101")


@pytest.fixture
def other_patient_user(db):
    return _make_user(db, "sam@clinic.test", "Sam Lee", UserRole.PATIENT)


@pytest.fixture
def doctor(db, doctor_user):
    doctor = Doctor(
        user_id=doctor_user.id,
        name="Alice Smith",
        specialization="Cardiology",
        phone="555-0100",
        address="1 Main St",
        is_active=True,
    )
    db.add(doctor)
    db.commit()
    db.refresh(doctor)
    return doctor


@pytest.fixture
def other_doctor(db):
    doctor = Doctor(name="Bob Brown", specialization="Dermatology", is_active=True)
    db.add(doctor)
    db.commit()
    db.refresh(doctor)
    return doctor


@pytest.fixture
def inactive_doctor(db):
    doctor = Doctor(name="Carol White", specialization="Pediatrics", is_active=False)
    db.add(doctor)
    db.commit()
    db.refresh(doctor)
    return doctor


@pytest.fixture
def patient(db, patient_user):
    patient = Patient(user_id=patient_user.id, name="Pat Jones", age=34, phone="555-0101")
    db.add(patient)
    db.commit()
    db.refresh(patient)
    return patient


@pytest.fixture
def make_appointment(db):
    def _make(doctor, patient, appointment_date, appointment_time, status="pending"):
        appointment = Appointment(
            doctor_id=doctor.id,
            patient_id=patient.id,
            appointment_date=appointment_date,
            appointment_time=appointment_time,
            status=status,
        )
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment

    return _make


@pytest.fixture
def admin(admin_user):
    return Principal.from_user(admin_user)


@pytest.fixture
def doctor_principal(doctor_user, doctor):
    return Principal.from_user(doctor_user)


@pytest.fixture
def patient_principal(patient_user):
    return Principal.from_user(patient_user)


def token_headers(user):
    token = create_access_token({"sub": user.id, "email": user.email, "role": user.role.value})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(admin_user):
    return token_headers(admin_user)


@pytest.fixture
def doctor_headers(doctor_user, doctor):
    return token_headers(doctor_user)


@pytest.fixture
def patient_headers(patient_user):
    return token_headers(patient_user)
