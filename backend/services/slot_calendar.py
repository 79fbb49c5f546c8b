import calendar
from datetime import date, datetime

FIRST_SCHEDULE_HOUR = 0
LAST_SCHEDULE_HOUR = 23
MIN_CALENDAR_YEAR = 1850


def is_valid_calendar_day(year: int, month: int, day: int) -> bool:
    if not 1 <= month <= 12:
        return False
    return 1 <= day <= calendar.monthrange(year, month)[1]


def is_valid_schedule(schedule: int) -> bool:
    return FIRST_SCHEDULE_HOUR <= schedule <= LAST_SCHEDULE_HOUR


def compose_slot_datetime(year: int, month: int, day: int, schedule: int) -> datetime:
    return datetime(year, month, day, schedule, 0, 0)


def slot_datetime(slot) -> datetime:
    return compose_slot_datetime(slot.year, slot.month, slot.day, slot.schedule)


def filter_points_to_past(
    year: int | None,
    month: int | None,
    day: int | None,
    today: date,
) -> str | None:
    """Return an error message when a year/month/day filter lies before today."""
    if year is not None and year < today.year:
        return 'The selected year is not current or in the future.'

    if year == today.year and month is not None and month < today.month:
        return 'The selected month is not current or in the future.'

    if year == today.year and month == today.month and day is not None and day < today.day:
        return 'The selected day is not current or in the future.'

    return None
