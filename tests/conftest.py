import os

os.environ["STORAGE_BACKEND"] = "memory"
os.environ["ENABLE_SCHEDULER"] = "false"
os.environ["ENVIRONMENT"] = "test"
os.environ["SECRET_KEY"] = "test-secret-key"

from datetime import date

import pytest
from fastapi.testclient import TestClient

from app.core.security import create_access_token, get_password_hash
from app.database import Base, SessionLocal, engine
from app.main import app
from app.models.doctor import AvailabilitySlot, Doctor, Weekday
from app.models.user import User, UserRole

PASSWORD = "secret123"

# 2024-01-10 is a Wednesday
BOOKING_DATE = date(2024, 1, 10)


@pytest.fixture
def db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db):
    return TestClient(app)


@pytest.fixture
def make_user(db):
    def _make_user(name, email, role=UserRole.PATIENT, phone="555-0100"):
        user = User(
            name=name,
            email=email,
            hashed_password=get_password_hash(PASSWORD),
            phone=phone,
            role=role,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make_user


@pytest.fixture
def make_doctor(db, make_user):
    def _make_doctor(name, email, license_number, consultation_fee=100.0, is_available=True, specialization="Cardiology"):
        user = make_user(name, email, role=UserRole.DOCTOR)
        doctor = Doctor(
            user_id=user.id,
            specialization=specialization,
            license_number=license_number,
            experience=10,
            languages=["English"],
            certifications=[],
            consultation_fee=consultation_fee,
            is_available=is_available,
        )
        doctor.availability = [
            AvailabilitySlot(day=Weekday.WEDNESDAY, start_time="09:00", end_time="12:00", is_available=True),
            AvailabilitySlot(day=Weekday.FRIDAY, start_time="14:00", end_time="16:00", is_available=False),
        ]
        db.add(doctor)
        db.commit()
        db.refresh(doctor)
        return doctor
    return _make_doctor


@pytest.fixture
def patient(make_user):
    return make_user("Pat Patient", "pat@example.com")


@pytest.fixture
def other_patient(make_user):
    return make_user("Olive Other", "olive@example.com")


@pytest.fixture
def admin(make_user):
    return make_user("Ada Admin", "admin@example.com", role=UserRole.ADMIN)


@pytest.fixture
def doctor(make_doctor):
    return make_doctor("Dana House", "dana@example.com", "LIC-1001", consultation_fee=150.0)


@pytest.fixture
def other_doctor(make_doctor):
    return make_doctor("Sam Other", "sam@example.com", "LIC-2002", consultation_fee=90.0, specialization="Dermatology")


def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


def booking_payload(doctor_id, start_time="09:00", end_time="09:30", appointment_date=BOOKING_DATE, reason="checkup"):
    return {
        "doctor_id": doctor_id,
        "appointment_date": appointment_date.isoformat(),
        "start_time": start_time,
        "end_time": end_time,
        "appointment_type": "in-person",
        "reason": reason,
        "symptoms": ["cough"],
    }


@pytest.fixture(name="auth_headers")
def auth_headers_fixture():
    return auth_headers


@pytest.fixture(name="booking_payload")
def booking_payload_fixture():
    return booking_payload
