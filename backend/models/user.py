"""Doctor and patient identity models."""

import uuid

from sqlalchemy import Column, String
from backend.database import Base


def generate_id() -> str:
    return str(uuid.uuid4())


class Doctor(Base):
    """Represents a doctor who publishes availability slots."""
    __tablename__ = "doctors"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True)
    speciality = Column(String, index=True)


class Patient(Base):
    """Represents a patient who books appointments."""
    __tablename__ = "patients"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True)
