from datetime import datetime
from threading import Event

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from backend.database import Base
from backend.models.availability import AvailabilitySlot
from backend.models.user import Doctor
from backend.services.sweeper import ExpirationSweeper

SERVER_NOW = datetime(2025, 6, 1, 12, 0)


def _availability(session_factory) -> dict:
    db = session_factory()
    try:
        return {
            (slot.year, slot.month, slot.day, slot.schedule): slot.is_available
            for slot in db.query(AvailabilitySlot).all()
        }
    finally:
        db.close()


def test_run_once_expires_past_slot_without_appointment(session_factory, scheduling_db, doctor, add_slot) -> None:
    add_slot(doctor, 2024, 1, 1, 9)
    add_slot(doctor, 2025, 7, 1, 9)

    sweeper = ExpirationSweeper(session_factory=session_factory, clock=lambda: SERVER_NOW)
    expired = sweeper.run_once()

    assert expired == 1
    assert _availability(session_factory) == {
        (2024, 1, 1, 9): False,
        (2025, 7, 1, 9): True,
    }


def test_run_once_twice_with_same_now_is_idempotent(session_factory, scheduling_db, doctor, add_slot) -> None:
    add_slot(doctor, 2024, 1, 1, 9)
    add_slot(doctor, 2025, 5, 31, 23)
    add_slot(doctor, 2025, 6, 1, 8, is_available=False)

    sweeper = ExpirationSweeper(session_factory=session_factory)

    assert sweeper.run_once(SERVER_NOW) == 2
    state_after_first_run = _availability(session_factory)

    assert sweeper.run_once(SERVER_NOW) == 0
    assert _availability(session_factory) == state_after_first_run


def test_run_once_with_nothing_to_expire_returns_zero(session_factory, scheduling_db, doctor, add_slot) -> None:
    add_slot(doctor, 2025, 6, 1, 12)

    sweeper = ExpirationSweeper(session_factory=session_factory)

    assert sweeper.run_once(SERVER_NOW) == 0


def test_run_once_propagates_database_errors() -> None:
    engine = create_engine('sqlite:///:memory:')
    empty_session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    sweeper = ExpirationSweeper(session_factory=empty_session_factory)

    with pytest.raises(OperationalError):
        sweeper.run_once(SERVER_NOW)


def test_start_runs_a_pass_on_its_own_thread_until_stopped(tmp_path) -> None:
    engine = create_engine(f'sqlite:///{tmp_path / "sweeper.db"}')
    session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    db = session_local()
    doctor = Doctor(name='Dr. Ana Torres', email='ana.torres@clinic.test', speciality='cardiology')
    db.add(doctor)
    db.flush()
    db.add(AvailabilitySlot(doctor_id=doctor.id, year=2024, month=1, day=1, schedule=9, is_available=True))
    db.commit()
    db.close()

    clock_read = Event()

    def clock() -> datetime:
        clock_read.set()
        return SERVER_NOW

    sweeper = ExpirationSweeper(session_factory=session_local, interval_seconds=3600, clock=clock)
    sweeper.start()
    try:
        assert clock_read.wait(timeout=5)
    finally:
        sweeper.stop()

    assert sweeper.is_running is False
    assert _availability(session_local) == {(2024, 1, 1, 9): False}
    engine.dispose()
