"""Appointment model definitions."""

import enum

from sqlalchemy import Column, DateTime, Enum, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from backend.database import Base
from backend.models.user import generate_id


class AppointmentStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELED = "canceled"


class UpdatedBy(str, enum.Enum):
    NONE = "none"
    PATIENT = "patient"
    DOCTOR = "doctor"


TERMINAL_STATUSES = frozenset({AppointmentStatus.COMPLETED, AppointmentStatus.CANCELED})


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Appointment(Base):
    """Represents an appointment produced by claiming a doctor's slot."""
    __tablename__ = "appointments"

    id = Column(String(36), primary_key=True, default=generate_id)
    doctor_id = Column(String(36), ForeignKey("doctors.id"), nullable=False)
    patient_id = Column(String(36), ForeignKey("patients.id"), nullable=False)
    # slot currently held by this appointment; cleared when the slot is released
    slot_id = Column(String(36), ForeignKey("availability_slots.id", ondelete="SET NULL"), nullable=True)
    appointment_date = Column(DateTime, nullable=False)
    status = Column(
        Enum(AppointmentStatus, native_enum=False, values_callable=_enum_values),
        nullable=False,
        default=AppointmentStatus.SCHEDULED,
    )
    updated_by = Column(
        Enum(UpdatedBy, native_enum=False, values_callable=_enum_values),
        nullable=False,
        default=UpdatedBy.NONE,
    )

    doctor = relationship("Doctor", lazy="joined")
    patient = relationship("Patient", lazy="joined")
    details = relationship("AppointmentDetail", uselist=False, back_populates="appointment", lazy="joined")


class AppointmentDetail(Base):
    """Consultation metadata attached to exactly one appointment."""
    __tablename__ = "appointment_details"

    id = Column(String(36), primary_key=True, default=generate_id)
    appointment_id = Column(String(36), ForeignKey("appointments.id"), nullable=False, unique=True)
    reason_consultation = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    appointment = relationship("Appointment", back_populates="details")
