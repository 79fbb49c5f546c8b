"""Consultation details attached one-to-one to an appointment."""

from sqlalchemy.orm import Session

from backend.core.errors import NotFoundError
from backend.models.appointment import AppointmentDetail


def create_detail(db: Session, appointment_id: str, reason_consultation: str | None) -> AppointmentDetail:
    detail = AppointmentDetail(
        appointment_id=appointment_id,
        reason_consultation=reason_consultation,
        notes=None,
    )
    db.add(detail)
    db.flush()
    return detail


def find_detail(db: Session, appointment_id: str) -> AppointmentDetail:
    detail = db.query(AppointmentDetail).filter(AppointmentDetail.appointment_id == appointment_id).first()
    if not detail:
        raise NotFoundError(f'Appointment details for appointment {appointment_id} not found.')
    return detail


def update_notes(db: Session, appointment_id: str, notes: str | None) -> AppointmentDetail:
    # reason_consultation is set once at booking and never rewritten here
    detail = find_detail(db, appointment_id)
    detail.notes = notes
    db.flush()
    return detail
