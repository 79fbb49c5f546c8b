from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from backend.auth.dependencies import Caller, Role, require_role
from backend.database import get_db
from backend.models.appointment import Appointment, AppointmentStatus, UpdatedBy
from backend.routes.common import handle_service_errors
from backend.services import appointment_ledger, booking
from backend.services.slot_calendar import MIN_CALENDAR_YEAR

router = APIRouter(tags=['appointments'])

MAX_CONSULTATION_TEXT_LENGTH = 600


def _normalize_optional_text(value: str | None) -> str | None:
    if value is None:
        return None

    normalized = value.strip()
    if not normalized:
        return None

    if len(normalized) > MAX_CONSULTATION_TEXT_LENGTH:
        raise ValueError(f'Text must be {MAX_CONSULTATION_TEXT_LENGTH} characters or fewer.')

    return normalized


class CreateAppointmentRequest(BaseModel):
    doctor_id: str
    slot_id: str
    reason_consultation: str | None = None

    @field_validator('reason_consultation')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        return _normalize_optional_text(value)


class UpdateAppointmentStatusRequest(BaseModel):
    status: AppointmentStatus
    notes: str | None = Field(default=None)

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return _normalize_optional_text(value)


class AppointmentResponse(BaseModel):
    id: str
    doctor_id: str
    doctor_name: str
    patient_id: str
    patient_name: str
    slot_id: str | None = None
    appointment_date: datetime
    status: AppointmentStatus
    updated_by: UpdatedBy
    reason_consultation: str | None = None
    notes: str | None = None


class AppointmentMessageResponse(BaseModel):
    message: str
    appointment: AppointmentResponse


def to_appointment_response(appointment: Appointment) -> AppointmentResponse:
    details = appointment.details
    return AppointmentResponse(
        id=appointment.id,
        doctor_id=appointment.doctor_id,
        doctor_name=appointment.doctor.name,
        patient_id=appointment.patient_id,
        patient_name=appointment.patient.name,
        slot_id=appointment.slot_id,
        appointment_date=appointment.appointment_date,
        status=appointment.status,
        updated_by=appointment.updated_by,
        reason_consultation=details.reason_consultation if details else None,
        notes=details.notes if details else None,
    )


def to_message_response(result: dict) -> AppointmentMessageResponse:
    return AppointmentMessageResponse(
        message=result['message'],
        appointment=to_appointment_response(result['appointment']),
    )


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    caller: Caller = Depends(require_role(Role.PATIENT)),
    db: Session = Depends(get_db),
):
    with handle_service_errors(db):
        appointment = booking.book_appointment(
            db,
            doctor_id=data.doctor_id,
            patient_id=caller.subject_id,
            slot_id=data.slot_id,
            reason_consultation=data.reason_consultation,
        )
        response = to_appointment_response(appointment)
        db.commit()

        return response


@router.get('/doctor', response_model=list[AppointmentResponse])
def list_doctor_appointments(
    year: Annotated[int | None, Query(ge=MIN_CALENDAR_YEAR)] = None,
    month: Annotated[int | None, Query(ge=1, le=12)] = None,
    day: Annotated[int | None, Query(ge=1, le=31)] = None,
    caller: Caller = Depends(require_role(Role.DOCTOR)),
    db: Session = Depends(get_db),
):
    with handle_service_errors(db):
        appointments = appointment_ledger.find_all_for_doctor(db, caller.subject_id, year=year, month=month, day=day)

        return [to_appointment_response(appointment) for appointment in appointments]


@router.get('/patient', response_model=list[AppointmentResponse])
def list_patient_appointments(
    speciality: Annotated[str | None, Query()] = None,
    year: Annotated[int | None, Query(ge=MIN_CALENDAR_YEAR)] = None,
    month: Annotated[int | None, Query(ge=1, le=12)] = None,
    day: Annotated[int | None, Query(ge=1, le=31)] = None,
    caller: Caller = Depends(require_role(Role.PATIENT)),
    db: Session = Depends(get_db),
):
    with handle_service_errors(db):
        appointments = appointment_ledger.find_all_for_patient(
            db,
            caller.subject_id,
            year=year,
            month=month,
            day=day,
            speciality=speciality.strip() if speciality else None,
        )

        return [to_appointment_response(appointment) for appointment in appointments]


@router.get('/{appointment_id}/doctor', response_model=AppointmentResponse)
def get_doctor_appointment(
    appointment_id: str,
    caller: Caller = Depends(require_role(Role.DOCTOR)),
    db: Session = Depends(get_db),
):
    with handle_service_errors(db):
        appointment = appointment_ledger.find_one_for_doctor(db, appointment_id, caller.subject_id)

        return to_appointment_response(appointment)


@router.get('/{appointment_id}/patient', response_model=AppointmentResponse)
def get_patient_appointment(
    appointment_id: str,
    caller: Caller = Depends(require_role(Role.PATIENT)),
    db: Session = Depends(get_db),
):
    with handle_service_errors(db):
        appointment = appointment_ledger.find_one_for_patient(db, appointment_id, caller.subject_id)

        return to_appointment_response(appointment)


@router.patch('/{appointment_id}/reschedule/{slot_id}', response_model=AppointmentResponse)
def reschedule_appointment(
    appointment_id: str,
    slot_id: str,
    caller: Caller = Depends(require_role(Role.PATIENT)),
    db: Session = Depends(get_db),
):
    with handle_service_errors(db):
        appointment = booking.reschedule_appointment(db, appointment_id, caller.subject_id, slot_id)
        response = to_appointment_response(appointment)
        db.commit()

        return response


@router.patch('/{appointment_id}/status', response_model=AppointmentMessageResponse)
def update_appointment_status(
    appointment_id: str,
    data: UpdateAppointmentStatusRequest,
    caller: Caller = Depends(require_role(Role.DOCTOR)),
    db: Session = Depends(get_db),
):
    with handle_service_errors(db):
        result = booking.update_appointment_status(
            db,
            appointment_id,
            caller.subject_id,
            data.status,
            notes=data.notes,
        )
        response = to_message_response(result)
        db.commit()

        return response


@router.delete('/{appointment_id}', response_model=AppointmentMessageResponse)
def cancel_appointment(
    appointment_id: str,
    caller: Caller = Depends(require_role(Role.PATIENT)),
    db: Session = Depends(get_db),
):
    with handle_service_errors(db):
        result = booking.cancel_appointment(db, appointment_id, caller.subject_id, actor=UpdatedBy.PATIENT)
        response = to_message_response(result)
        db.commit()

        return response
