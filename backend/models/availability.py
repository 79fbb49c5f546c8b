"""Availability slot model definitions."""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from backend.database import Base
from backend.models.user import generate_id


class AvailabilitySlot(Base):
    """Represents one bookable hour published by a doctor."""
    __tablename__ = "availability_slots"
    __table_args__ = (
        UniqueConstraint("doctor_id", "year", "month", "day", "schedule", name="uq_slot_doctor_hour"),
    )

    id = Column(String(36), primary_key=True, default=generate_id)
    doctor_id = Column(String(36), ForeignKey("doctors.id"), nullable=False)
    year = Column(Integer, nullable=False)
    month = Column(Integer, nullable=False)
    day = Column(Integer, nullable=False)
    schedule = Column(Integer, nullable=False)  # hour of day, 0-23
    is_available = Column(Boolean, nullable=False, default=True)

    doctor = relationship("Doctor", lazy="joined")
