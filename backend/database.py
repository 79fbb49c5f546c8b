from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from backend.core import config

connect_args = {"check_same_thread": False} if config.DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(config.DATABASE_URL, connect_args=connect_args)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_scheduling_schema_checked = False

SCHEDULING_INDEXES = [
    ('availability_slots', 'CREATE INDEX IF NOT EXISTS idx_slots_doctor_available ON availability_slots(doctor_id, is_available)'),
    ('availability_slots', 'CREATE INDEX IF NOT EXISTS idx_slots_available_date ON availability_slots(is_available, year, month, day)'),
    ('appointments', 'CREATE INDEX IF NOT EXISTS idx_appointments_patient_date ON appointments(patient_id, appointment_date)'),
    ('appointments', 'CREATE INDEX IF NOT EXISTS idx_appointments_doctor_date ON appointments(doctor_id, appointment_date)'),
]


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def ensure_scheduling_schema(bind=None) -> None:
    global _scheduling_schema_checked

    if _scheduling_schema_checked:
        return

    target = bind or engine

    with _schema_lock:
        if _scheduling_schema_checked:
            return

        table_names = set(inspect(target).get_table_names())

        with target.begin() as connection:
            for table_name, statement in SCHEDULING_INDEXES:
                if table_name in table_names:
                    connection.execute(text(statement))

        _scheduling_schema_checked = True
