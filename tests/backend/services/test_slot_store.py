from datetime import datetime

import pytest

from backend.core.errors import BadRequestError, ConflictError, InternalError, NotFoundError
from backend.models.availability import AvailabilitySlot
from backend.services import slot_store

NOW = datetime(2025, 3, 5, 10, 30)


def test_create_slot_persists_available_slot(scheduling_db, doctor) -> None:
    slot = slot_store.create_slot(scheduling_db, doctor.id, 2025, 3, 10, 9)
    scheduling_db.commit()

    stored = scheduling_db.query(AvailabilitySlot).filter(AvailabilitySlot.id == slot.id).one()
    assert stored.is_available is True
    assert (stored.year, stored.month, stored.day, stored.schedule) == (2025, 3, 10, 9)


def test_create_slot_rejects_duplicate_hour(scheduling_db, doctor) -> None:
    slot_store.create_slot(scheduling_db, doctor.id, 2025, 3, 10, 9)
    scheduling_db.commit()

    with pytest.raises(ConflictError):
        slot_store.create_slot(scheduling_db, doctor.id, 2025, 3, 10, 9)


def test_create_slot_rejects_duplicate_even_when_taken(scheduling_db, doctor, add_slot) -> None:
    add_slot(doctor, 2025, 3, 10, 9, is_available=False)

    with pytest.raises(ConflictError):
        slot_store.create_slot(scheduling_db, doctor.id, 2025, 3, 10, 9)


def test_same_hour_is_allowed_for_different_doctors(scheduling_db, doctor, other_doctor) -> None:
    slot_store.create_slot(scheduling_db, doctor.id, 2025, 3, 10, 9)
    slot_store.create_slot(scheduling_db, other_doctor.id, 2025, 3, 10, 9)
    scheduling_db.commit()

    assert scheduling_db.query(AvailabilitySlot).count() == 2


def test_find_available_for_doctor_sorts_chronologically(scheduling_db, doctor, add_slot) -> None:
    later = add_slot(doctor, 2025, 4, 1, 8)
    earliest = add_slot(doctor, 2025, 3, 10, 9)
    middle = add_slot(doctor, 2025, 3, 10, 15)
    add_slot(doctor, 2025, 3, 11, 9, is_available=False)

    slots = slot_store.find_available_for_doctor(scheduling_db, doctor.id, now=NOW)

    assert [slot.id for slot in slots] == [earliest.id, middle.id, later.id]


def test_find_available_without_filter_skips_days_before_today(scheduling_db, doctor, add_slot) -> None:
    add_slot(doctor, 2025, 3, 1, 9)
    add_slot(doctor, 2025, 2, 20, 9)
    today = add_slot(doctor, 2025, 3, 5, 16)
    next_year = add_slot(doctor, 2026, 1, 2, 9)

    slots = slot_store.find_available_for_doctor(scheduling_db, doctor.id, now=NOW)

    assert [slot.id for slot in slots] == [today.id, next_year.id]


def test_find_available_current_year_filter_starts_at_current_month(scheduling_db, doctor, add_slot) -> None:
    add_slot(doctor, 2025, 2, 27, 9)
    early_march = add_slot(doctor, 2025, 3, 1, 9)
    april = add_slot(doctor, 2025, 4, 1, 9)

    slots = slot_store.find_available_for_doctor(scheduling_db, doctor.id, year=2025, now=NOW)

    assert [slot.id for slot in slots] == [early_march.id, april.id]


def test_find_available_current_month_filter_starts_at_today(scheduling_db, doctor, add_slot) -> None:
    add_slot(doctor, 2025, 3, 4, 9)
    today = add_slot(doctor, 2025, 3, 5, 9)

    slots = slot_store.find_available_for_doctor(scheduling_db, doctor.id, year=2025, month=3, now=NOW)

    assert [slot.id for slot in slots] == [today.id]


def test_find_available_future_month_leaves_day_unconstrained(scheduling_db, doctor, add_slot) -> None:
    first = add_slot(doctor, 2025, 6, 1, 9)
    second = add_slot(doctor, 2025, 6, 2, 9)

    slots = slot_store.find_available_for_doctor(scheduling_db, doctor.id, year=2025, month=6, now=NOW)

    assert [slot.id for slot in slots] == [first.id, second.id]


def test_find_available_for_doctor_raises_not_found_when_empty(scheduling_db, doctor, other_doctor, add_slot) -> None:
    add_slot(other_doctor, 2025, 3, 10, 9)

    with pytest.raises(NotFoundError):
        slot_store.find_available_for_doctor(scheduling_db, doctor.id, now=NOW)


def test_find_available_across_doctors_sorts_by_doctor_name_then_date(
    scheduling_db, doctor, other_doctor, add_slot
) -> None:
    bruno_early = add_slot(other_doctor, 2025, 3, 6, 9)
    ana_late = add_slot(doctor, 2025, 3, 12, 9)
    ana_early = add_slot(doctor, 2025, 3, 7, 9)

    slots = slot_store.find_available_across_doctors(scheduling_db, now=NOW)

    assert [slot.id for slot in slots] == [ana_early.id, ana_late.id, bruno_early.id]


def test_find_available_across_doctors_filters_by_speciality(scheduling_db, doctor, other_doctor, add_slot) -> None:
    add_slot(doctor, 2025, 3, 6, 9)
    dermatology = add_slot(other_doctor, 2025, 3, 6, 10)

    slots = slot_store.find_available_across_doctors(scheduling_db, speciality='dermatology', now=NOW)

    assert [slot.id for slot in slots] == [dermatology.id]

    with pytest.raises(NotFoundError):
        slot_store.find_available_across_doctors(scheduling_db, speciality='neurology', now=NOW)


def test_claim_for_doctor_returns_free_slot(scheduling_db, doctor, add_slot) -> None:
    slot = add_slot(doctor, 2025, 3, 10, 9)

    claimed = slot_store.claim_for_doctor(scheduling_db, slot.id, doctor.id)

    assert claimed.id == slot.id


@pytest.mark.parametrize('case', ['taken', 'other_doctor', 'missing'])
def test_claim_for_doctor_conflicts_when_slot_cannot_be_claimed(
    scheduling_db, doctor, other_doctor, add_slot, case: str
) -> None:
    if case == 'taken':
        slot_id = add_slot(doctor, 2025, 3, 10, 9, is_available=False).id
    elif case == 'other_doctor':
        slot_id = add_slot(other_doctor, 2025, 3, 10, 9).id
    else:
        slot_id = 'does-not-exist'

    with pytest.raises(ConflictError):
        slot_store.claim_for_doctor(scheduling_db, slot_id, doctor.id)


def test_find_occupied_at_only_matches_taken_slots(scheduling_db, doctor, add_slot) -> None:
    add_slot(doctor, 2025, 3, 10, 9)
    taken = add_slot(doctor, 2025, 3, 10, 10, is_available=False)

    assert slot_store.find_occupied_at(scheduling_db, doctor.id, 2025, 3, 10, 9) is None
    assert slot_store.find_occupied_at(scheduling_db, doctor.id, 2025, 3, 10, 10).id == taken.id


def test_occupy_and_release_flip_availability(scheduling_db, doctor, add_slot) -> None:
    slot = add_slot(doctor, 2025, 3, 10, 9)

    slot_store.occupy_slot(scheduling_db, slot)
    assert slot.is_available is False

    slot_store.release_slot(scheduling_db, slot)
    assert slot.is_available is True


def test_occupy_already_taken_slot_raises_internal_error(scheduling_db, doctor, add_slot) -> None:
    slot = add_slot(doctor, 2025, 3, 10, 9, is_available=False)

    with pytest.raises(InternalError):
        slot_store.occupy_slot(scheduling_db, slot)


def test_release_free_slot_raises_internal_error(scheduling_db, doctor, add_slot) -> None:
    slot = add_slot(doctor, 2025, 3, 10, 9)

    with pytest.raises(InternalError):
        slot_store.release_slot(scheduling_db, slot)


def test_delete_slot_removes_future_free_slot(scheduling_db, doctor, add_slot) -> None:
    slot = add_slot(doctor, 2025, 3, 10, 9)
    slot_id = slot.id

    slot_store.delete_slot(scheduling_db, slot_id, doctor.id, now=NOW)
    scheduling_db.commit()

    assert scheduling_db.query(AvailabilitySlot).filter(AvailabilitySlot.id == slot_id).first() is None


def test_delete_slot_rejects_unknown_or_foreign_slot(scheduling_db, doctor, other_doctor, add_slot) -> None:
    foreign = add_slot(other_doctor, 2025, 3, 10, 9)

    with pytest.raises(NotFoundError):
        slot_store.delete_slot(scheduling_db, foreign.id, doctor.id, now=NOW)

    with pytest.raises(NotFoundError):
        slot_store.delete_slot(scheduling_db, 'does-not-exist', doctor.id, now=NOW)


def test_delete_slot_rejects_past_slot(scheduling_db, doctor, add_slot) -> None:
    slot = add_slot(doctor, 2025, 3, 5, 9)

    with pytest.raises(BadRequestError):
        slot_store.delete_slot(scheduling_db, slot.id, doctor.id, now=NOW)


def test_delete_slot_rejects_occupied_slot(scheduling_db, doctor, add_slot) -> None:
    slot = add_slot(doctor, 2025, 3, 10, 9, is_available=False)

    with pytest.raises(ConflictError):
        slot_store.delete_slot(scheduling_db, slot.id, doctor.id, now=NOW)


def test_expire_stale_unclaimed_only_flips_past_free_slots(scheduling_db, doctor, add_slot) -> None:
    past_free = add_slot(doctor, 2025, 3, 5, 10)
    past_taken = add_slot(doctor, 2025, 3, 4, 9, is_available=False)
    last_year = add_slot(doctor, 2024, 12, 31, 23)
    future_free = add_slot(doctor, 2025, 3, 5, 11)

    expired = slot_store.expire_stale_unclaimed(scheduling_db, NOW)
    scheduling_db.commit()

    assert expired == 2
    availability = {
        slot.id: slot.is_available
        for slot in scheduling_db.query(AvailabilitySlot).all()
    }
    assert availability == {
        past_free.id: False,
        past_taken.id: False,
        last_year.id: False,
        future_free.id: True,
    }


def test_expire_stale_unclaimed_is_idempotent(scheduling_db, doctor, add_slot) -> None:
    add_slot(doctor, 2024, 1, 1, 9)

    assert slot_store.expire_stale_unclaimed(scheduling_db, NOW) == 1
    scheduling_db.commit()
    assert slot_store.expire_stale_unclaimed(scheduling_db, NOW) == 0


def test_expire_stale_unclaimed_only_compares_hours_up_to_today(
    scheduling_db, doctor, add_slot, monkeypatch: pytest.MonkeyPatch
) -> None:
    earlier_today = add_slot(doctor, 2025, 3, 5, 8)
    last_month = add_slot(doctor, 2025, 2, 28, 9)
    add_slot(doctor, 2025, 3, 6, 9)
    add_slot(doctor, 2025, 11, 1, 9)
    compared = []

    def recording_slot_datetime(slot):
        compared.append((slot.year, slot.month, slot.day))
        return datetime(slot.year, slot.month, slot.day, slot.schedule)

    monkeypatch.setattr(slot_store, 'slot_datetime', recording_slot_datetime)

    assert slot_store.expire_stale_unclaimed(scheduling_db, NOW) == 2
    assert sorted(compared) == [(2025, 2, 28), (2025, 3, 5)]
    assert scheduling_db.get(AvailabilitySlot, earlier_today.id).is_available is False
    assert scheduling_db.get(AvailabilitySlot, last_month.id).is_available is False
