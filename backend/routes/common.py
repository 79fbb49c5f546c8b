import logging
from contextlib import contextmanager
from datetime import date

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.core.errors import InternalError, SchedulingError
from backend.services.slot_calendar import filter_points_to_past

logger = logging.getLogger(__name__)

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'


@contextmanager
def handle_service_errors(db: Session):
    """Roll back and translate scheduling and database errors into HTTP errors."""
    try:
        yield
    except SchedulingError as exc:
        db.rollback()
        if isinstance(exc, InternalError):
            logger.error('Internal scheduling error: %s', exc.detail)
        raise HTTPException(status_code=exc.status_code, detail=exc.detail) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Database error while handling request')
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


def reject_past_filter(year: int | None, month: int | None, day: int | None, today: date | None = None) -> None:
    error_detail = filter_points_to_past(year, month, day, today or date.today())
    if error_detail:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=error_detail)
