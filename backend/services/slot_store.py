"""Persistence operations for doctor availability slots.

Functions here flush but never commit; the caller owns the transaction so a
claim and the writes that depend on it succeed or fail together.
"""

import logging
from datetime import datetime

from sqlalchemy import and_, delete, or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.core.errors import BadRequestError, ConflictError, InternalError, NotFoundError
from backend.models.availability import AvailabilitySlot
from backend.models.user import Doctor
from backend.services.slot_calendar import slot_datetime

logger = logging.getLogger(__name__)


def build_slot_date_filter(
    year: int | None,
    month: int | None,
    day: int | None,
    now: datetime,
) -> list:
    """Build the SQL criteria for a possibly partial year/month/day filter.

    Omitted components never widen the search into the past: the year
    defaults to the current one or later, the month to the current one or
    later when the current year was requested, and the day to today or
    later when the current month was requested. With no component at all,
    only slots dated today or later match.
    """
    criteria = []

    if year is not None:
        criteria.append(AvailabilitySlot.year == year)
    else:
        criteria.append(AvailabilitySlot.year >= now.year)

    if month is not None:
        criteria.append(AvailabilitySlot.month == month)
    elif year == now.year:
        criteria.append(AvailabilitySlot.month >= now.month)

    if day is not None:
        criteria.append(AvailabilitySlot.day == day)
    elif year == now.year and month == now.month:
        criteria.append(AvailabilitySlot.day >= now.day)

    if year is None and month is None and day is None:
        criteria.append(
            or_(
                AvailabilitySlot.year > now.year,
                and_(AvailabilitySlot.year == now.year, AvailabilitySlot.month > now.month),
                and_(
                    AvailabilitySlot.year == now.year,
                    AvailabilitySlot.month == now.month,
                    AvailabilitySlot.day >= now.day,
                ),
            )
        )

    return criteria


def _chronological_order():
    return (
        AvailabilitySlot.year.asc(),
        AvailabilitySlot.month.asc(),
        AvailabilitySlot.day.asc(),
        AvailabilitySlot.schedule.asc(),
    )


def create_slot(db: Session, doctor_id: str, year: int, month: int, day: int, schedule: int) -> AvailabilitySlot:
    existing = db.query(AvailabilitySlot).filter(
        AvailabilitySlot.doctor_id == doctor_id,
        AvailabilitySlot.year == year,
        AvailabilitySlot.month == month,
        AvailabilitySlot.day == day,
        AvailabilitySlot.schedule == schedule,
    ).first()

    if existing:
        raise ConflictError('This availability already exists.')

    slot = AvailabilitySlot(
        doctor_id=doctor_id,
        year=year,
        month=month,
        day=day,
        schedule=schedule,
        is_available=True,
    )
    db.add(slot)

    try:
        db.flush()
    except IntegrityError as exc:
        # another request published the same hour between the check and the insert
        raise ConflictError('This availability already exists.') from exc

    return slot


def find_available_for_doctor(
    db: Session,
    doctor_id: str,
    year: int | None = None,
    month: int | None = None,
    day: int | None = None,
    now: datetime | None = None,
) -> list[AvailabilitySlot]:
    now = now or datetime.now()

    slots = db.query(AvailabilitySlot).filter(
        AvailabilitySlot.doctor_id == doctor_id,
        AvailabilitySlot.is_available.is_(True),
        *build_slot_date_filter(year, month, day, now),
    ).order_by(*_chronological_order()).all()

    if not slots:
        raise NotFoundError('Schedules of availability of doctors not found.')

    return slots


def find_available_across_doctors(
    db: Session,
    speciality: str | None = None,
    year: int | None = None,
    month: int | None = None,
    day: int | None = None,
    now: datetime | None = None,
) -> list[AvailabilitySlot]:
    now = now or datetime.now()

    query = db.query(AvailabilitySlot).join(Doctor, AvailabilitySlot.doctor_id == Doctor.id).filter(
        AvailabilitySlot.is_available.is_(True),
        *build_slot_date_filter(year, month, day, now),
    )
    if speciality:
        query = query.filter(Doctor.speciality == speciality)

    slots = query.order_by(Doctor.name.asc(), *_chronological_order()).all()

    if not slots:
        raise NotFoundError('Schedules of availability of doctors not found.')

    return slots


def claim_for_doctor(db: Session, slot_id: str, doctor_id: str) -> AvailabilitySlot:
    """Return the doctor's slot if it is still free, locking its row until commit."""
    slot = db.query(AvailabilitySlot).filter(
        AvailabilitySlot.id == slot_id,
        AvailabilitySlot.doctor_id == doctor_id,
        AvailabilitySlot.is_available.is_(True),
    ).with_for_update(of=AvailabilitySlot).first()

    if not slot:
        raise ConflictError('The doctor is not available at the selected time or is already scheduled.')

    return slot


def find_occupied_at(
    db: Session,
    doctor_id: str,
    year: int,
    month: int,
    day: int,
    schedule: int,
) -> AvailabilitySlot | None:
    return db.query(AvailabilitySlot).filter(
        AvailabilitySlot.doctor_id == doctor_id,
        AvailabilitySlot.year == year,
        AvailabilitySlot.month == month,
        AvailabilitySlot.day == day,
        AvailabilitySlot.schedule == schedule,
        AvailabilitySlot.is_available.is_(False),
    ).first()


def _flip_availability(db: Session, slot: AvailabilitySlot, is_available: bool) -> None:
    result = db.execute(
        update(AvailabilitySlot)
        .where(
            AvailabilitySlot.id == slot.id,
            AvailabilitySlot.is_available.is_(not is_available),
        )
        .values(is_available=is_available)
        .execution_options(synchronize_session=False)
    )

    if result.rowcount != 1:
        logger.error(
            'Availability slot %s could not be set to is_available=%s; %d rows affected',
            slot.id,
            is_available,
            result.rowcount,
        )
        raise InternalError('Failed to update availability. Availability not updated.')

    db.expire(slot, ['is_available'])


def occupy_slot(db: Session, slot: AvailabilitySlot) -> None:
    _flip_availability(db, slot, is_available=False)


def release_slot(db: Session, slot: AvailabilitySlot) -> None:
    _flip_availability(db, slot, is_available=True)


def delete_slot(db: Session, slot_id: str, doctor_id: str, now: datetime | None = None) -> None:
    now = now or datetime.now()

    slot = db.query(AvailabilitySlot).filter(
        AvailabilitySlot.id == slot_id,
        AvailabilitySlot.doctor_id == doctor_id,
    ).first()

    if not slot:
        raise NotFoundError('Availability not found for the doctor.')

    if slot_datetime(slot) < now:
        raise BadRequestError('Cannot delete past availabilities.')

    if not slot.is_available:
        raise ConflictError('Cannot delete a scheduled availability.')

    result = db.execute(
        delete(AvailabilitySlot)
        .where(AvailabilitySlot.id == slot.id, AvailabilitySlot.is_available.is_(True))
        .execution_options(synchronize_session=False)
    )

    if result.rowcount != 1:
        logger.error('Availability slot %s vanished before it could be deleted', slot.id)
        raise InternalError('Failed to delete availability. Availability not removed.')

    db.expunge(slot)


def expire_stale_unclaimed(db: Session, now: datetime) -> int:
    """Mark free slots dated strictly before `now` as unavailable.

    Occupied slots are left alone; they belong to an appointment.
    """
    candidates = db.query(AvailabilitySlot.id, AvailabilitySlot.year, AvailabilitySlot.month,
                          AvailabilitySlot.day, AvailabilitySlot.schedule).filter(
        AvailabilitySlot.is_available.is_(True),
        or_(
            AvailabilitySlot.year < now.year,
            and_(AvailabilitySlot.year == now.year, AvailabilitySlot.month < now.month),
            and_(
                AvailabilitySlot.year == now.year,
                AvailabilitySlot.month == now.month,
                AvailabilitySlot.day <= now.day,
            ),
        ),
    ).all()

    # only slots dated today still need the hour compared
    expired_ids = [candidate.id for candidate in candidates if slot_datetime(candidate) < now]

    if not expired_ids:
        return 0

    result = db.execute(
        update(AvailabilitySlot)
        .where(AvailabilitySlot.id.in_(expired_ids), AvailabilitySlot.is_available.is_(True))
        .values(is_available=False)
        .execution_options(synchronize_session=False)
    )
    db.expire_all()

    return result.rowcount
