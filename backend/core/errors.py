"""Error kinds raised by the scheduling services.

Routes translate these into HTTP responses; services never build HTTP
responses themselves.
"""

from fastapi import status


class SchedulingError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFoundError(SchedulingError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(SchedulingError):
    status_code = status.HTTP_409_CONFLICT


class BadRequestError(SchedulingError):
    status_code = status.HTTP_400_BAD_REQUEST


class InternalError(SchedulingError):
    """An update or delete that should have touched one row touched none."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
