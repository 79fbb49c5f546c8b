import os

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')
os.environ.setdefault('SLOT_SWEEPER_ENABLED', 'false')

from backend.database import Base  # noqa: E402
from backend.models.appointment import Appointment, AppointmentDetail  # noqa: E402,F401
from backend.models.availability import AvailabilitySlot  # noqa: E402
from backend.models.user import Doctor, Patient  # noqa: E402


@pytest.fixture
def session_factory():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)
    try:
        yield testing_session_local
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def scheduling_db(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def doctor(scheduling_db) -> Doctor:
    doctor = Doctor(name='Dr. Ana Torres', email='ana.torres@clinic.test', speciality='cardiology')
    scheduling_db.add(doctor)
    scheduling_db.commit()
    return doctor


@pytest.fixture
def other_doctor(scheduling_db) -> Doctor:
    doctor = Doctor(name='Dr. Bruno Diaz', email='bruno.diaz@clinic.test', speciality='dermatology')
    scheduling_db.add(doctor)
    scheduling_db.commit()
    return doctor


@pytest.fixture
def patient(scheduling_db) -> Patient:
    patient = Patient(name='Jane Doe', email='jane.doe@example.test')
    scheduling_db.add(patient)
    scheduling_db.commit()
    return patient


@pytest.fixture
def add_slot(scheduling_db):
    def _add_slot(doctor, year, month, day, schedule, is_available=True) -> AvailabilitySlot:
        slot = AvailabilitySlot(
            doctor_id=doctor.id,
            year=year,
            month=month,
            day=day,
            schedule=schedule,
            is_available=is_available,
        )
        scheduling_db.add(slot)
        scheduling_db.commit()
        return slot

    return _add_slot
