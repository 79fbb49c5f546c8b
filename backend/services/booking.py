"""Booking, rescheduling, cancellation and closure of appointments.

Every operation here touches the slot, appointment and detail stores in a
fixed order inside the caller's transaction. Nothing is committed here; a
failure at any step leaves the caller to roll the whole operation back.
"""

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from backend.core.errors import BadRequestError, ConflictError
from backend.models.appointment import Appointment, AppointmentStatus, TERMINAL_STATUSES, UpdatedBy
from backend.models.availability import AvailabilitySlot
from backend.services import appointment_details, appointment_ledger, identity, slot_store
from backend.services.slot_calendar import slot_datetime

logger = logging.getLogger(__name__)


def _release_held_slot(db: Session, appointment: Appointment) -> AvailabilitySlot | None:
    """Give the appointment's slot back to the doctor's availability.

    Best effort: a slot that is already gone or already free is skipped.
    """
    slot = None
    if appointment.slot_id:
        slot = db.get(AvailabilitySlot, appointment.slot_id)

    if slot is None:
        # rows booked before slot references were stored only carry the date
        current = appointment.appointment_date
        slot = slot_store.find_occupied_at(
            db, appointment.doctor_id, current.year, current.month, current.day, current.hour
        )
        if slot is not None:
            holder = appointment_ledger.find_holder_of_slot(db, slot.id)
            if holder is not None and holder.id != appointment.id:
                slot = None

    if slot is None or slot.is_available:
        logger.info('No occupied slot to release for appointment %s', appointment.id)
        appointment_ledger.clear_slot(db, appointment)
        return None

    slot_store.release_slot(db, slot)
    appointment_ledger.clear_slot(db, appointment)
    return slot


def book_appointment(
    db: Session,
    doctor_id: str,
    patient_id: str,
    slot_id: str,
    reason_consultation: str | None = None,
) -> Appointment:
    slot = slot_store.claim_for_doctor(db, slot_id, doctor_id)

    patient = identity.find_patient_by_id(db, patient_id)
    doctor = identity.find_doctor_by_id(db, doctor_id)

    appointment_date = slot_datetime(slot)

    appointment = appointment_ledger.create_appointment(
        db,
        doctor_id=doctor.id,
        patient_id=patient.id,
        appointment_date=appointment_date,
        slot_id=slot.id,
    )
    appointment_details.create_detail(db, appointment.id, reason_consultation)

    slot_store.occupy_slot(db, slot)

    logger.info('Appointment %s booked on slot %s for patient %s', appointment.id, slot.id, patient.id)
    db.refresh(appointment)
    return appointment


def reschedule_appointment(
    db: Session,
    appointment_id: str,
    patient_id: str,
    slot_id: str,
    now: datetime | None = None,
) -> Appointment:
    now = now or datetime.now()

    appointment = appointment_ledger.find_one_for_patient(db, appointment_id, patient_id)

    if appointment.status != AppointmentStatus.SCHEDULED:
        raise ConflictError('Only scheduled appointments can be rescheduled.')

    if appointment.appointment_date < now:
        raise ConflictError('You cannot reschedule an appointment that is already expired.')

    new_slot = slot_store.claim_for_doctor(db, slot_id, appointment.doctor_id)

    _release_held_slot(db, appointment)

    appointment_ledger.update_date(db, appointment, slot_datetime(new_slot), new_slot.id)
    slot_store.occupy_slot(db, new_slot)

    logger.info('Appointment %s rescheduled to slot %s', appointment.id, new_slot.id)
    return appointment


def cancel_appointment(
    db: Session,
    appointment_id: str,
    patient_id: str,
    actor: UpdatedBy = UpdatedBy.PATIENT,
    now: datetime | None = None,
) -> dict:
    now = now or datetime.now()

    appointment = appointment_ledger.find_one_for_patient(db, appointment_id, patient_id)

    if appointment.status != AppointmentStatus.SCHEDULED:
        raise ConflictError('Only scheduled appointments can be canceled.')

    if appointment.appointment_date < now:
        raise ConflictError('Past or ongoing appointments cannot be canceled.')

    appointment_ledger.update_status(db, appointment, AppointmentStatus.CANCELED, actor)

    if appointment.appointment_date > now:
        _release_held_slot(db, appointment)

    logger.info('Appointment %s canceled by %s', appointment.id, actor.value)
    return {
        'message': 'Appointment cancelled successfully',
        'appointment': appointment,
    }


def update_appointment_status(
    db: Session,
    appointment_id: str,
    doctor_id: str,
    status: AppointmentStatus,
    notes: str | None = None,
    now: datetime | None = None,
) -> dict:
    now = now or datetime.now()

    if status == AppointmentStatus.SCHEDULED:
        raise BadRequestError('As a doctor you cannot schedule appointments directly.')

    appointment = appointment_ledger.find_one(db, appointment_id)

    if appointment.doctor_id != doctor_id:
        raise BadRequestError('You are not authorized to update this appointment.')

    if appointment.status in TERMINAL_STATUSES:
        raise ConflictError(f'Appointment is already {appointment.status.value} and cannot be updated.')

    if status == AppointmentStatus.CANCELED and appointment.appointment_date > now:
        _release_held_slot(db, appointment)

    appointment_ledger.update_status(db, appointment, status, UpdatedBy.DOCTOR)
    appointment_details.update_notes(db, appointment.id, notes)

    logger.info('Appointment %s set to %s by doctor %s', appointment.id, status.value, doctor_id)
    return {
        'message': 'Appointment updated successfully',
        'appointment': appointment,
    }
