"""Persistence operations for appointments and their status lifecycle."""

from datetime import datetime

from sqlalchemy import extract
from sqlalchemy.orm import Session

from backend.core.errors import ConflictError, NotFoundError
from backend.models.appointment import Appointment, AppointmentStatus, TERMINAL_STATUSES, UpdatedBy
from backend.models.user import Doctor


def _date_component_filters(year: int | None, month: int | None, day: int | None) -> list:
    criteria = []
    if year is not None:
        criteria.append(extract('year', Appointment.appointment_date) == year)
    if month is not None:
        criteria.append(extract('month', Appointment.appointment_date) == month)
    if day is not None:
        criteria.append(extract('day', Appointment.appointment_date) == day)
    return criteria


def create_appointment(
    db: Session,
    doctor_id: str,
    patient_id: str,
    appointment_date: datetime,
    slot_id: str | None,
    status: AppointmentStatus = AppointmentStatus.SCHEDULED,
) -> Appointment:
    appointment = Appointment(
        doctor_id=doctor_id,
        patient_id=patient_id,
        slot_id=slot_id,
        appointment_date=appointment_date,
        status=status,
        updated_by=UpdatedBy.NONE,
    )
    db.add(appointment)
    db.flush()
    return appointment


def find_all_for_patient(
    db: Session,
    patient_id: str,
    year: int | None = None,
    month: int | None = None,
    day: int | None = None,
    speciality: str | None = None,
) -> list[Appointment]:
    query = db.query(Appointment).filter(
        Appointment.patient_id == patient_id,
        *_date_component_filters(year, month, day),
    )
    if speciality:
        query = query.join(Doctor, Appointment.doctor_id == Doctor.id).filter(Doctor.speciality == speciality)

    appointments = query.order_by(Appointment.appointment_date.asc()).all()

    if not appointments:
        raise NotFoundError('No appointments found for this patient.')

    return appointments


def find_all_for_doctor(
    db: Session,
    doctor_id: str,
    year: int | None = None,
    month: int | None = None,
    day: int | None = None,
) -> list[Appointment]:
    appointments = db.query(Appointment).filter(
        Appointment.doctor_id == doctor_id,
        *_date_component_filters(year, month, day),
    ).order_by(Appointment.appointment_date.asc()).all()

    if not appointments:
        raise NotFoundError('No appointments found for this doctor.')

    return appointments


def find_one_for_patient(db: Session, appointment_id: str, patient_id: str) -> Appointment:
    appointment = db.query(Appointment).filter(
        Appointment.id == appointment_id,
        Appointment.patient_id == patient_id,
    ).first()

    if not appointment:
        raise NotFoundError('No appointment found for this patient.')

    return appointment


def find_one_for_doctor(db: Session, appointment_id: str, doctor_id: str) -> Appointment:
    appointment = db.query(Appointment).filter(
        Appointment.id == appointment_id,
        Appointment.doctor_id == doctor_id,
    ).first()

    if not appointment:
        raise NotFoundError('No appointment found for this doctor.')

    return appointment


def find_one(db: Session, appointment_id: str) -> Appointment:
    appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()

    if not appointment:
        raise NotFoundError('Appointment not found.')

    return appointment


def find_holder_of_slot(db: Session, slot_id: str) -> Appointment | None:
    return db.query(Appointment).filter(
        Appointment.slot_id == slot_id,
        Appointment.status == AppointmentStatus.SCHEDULED,
    ).first()


def update_date(db: Session, appointment: Appointment, appointment_date: datetime, slot_id: str | None) -> Appointment:
    if appointment.status in TERMINAL_STATUSES:
        raise ConflictError(f'Appointment is already {appointment.status.value} and cannot be moved.')

    appointment.appointment_date = appointment_date
    appointment.slot_id = slot_id
    db.flush()
    return appointment


def clear_slot(db: Session, appointment: Appointment) -> Appointment:
    appointment.slot_id = None
    db.flush()
    return appointment


def update_status(
    db: Session,
    appointment: Appointment,
    status: AppointmentStatus,
    updated_by: UpdatedBy,
) -> Appointment:
    """Move a scheduled appointment to a terminal status.

    Completed and canceled appointments never change status again.
    """
    if appointment.status in TERMINAL_STATUSES:
        raise ConflictError(f'Appointment is already {appointment.status.value} and cannot be updated.')

    appointment.status = status
    appointment.updated_by = updated_by
    db.flush()
    return appointment
