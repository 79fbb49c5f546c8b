from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field, model_validator
from sqlalchemy.orm import Session

from backend.auth.dependencies import Caller, Role, require_role
from backend.database import get_db
from backend.models.availability import AvailabilitySlot
from backend.routes.common import handle_service_errors, reject_past_filter
from backend.services import identity, slot_store
from backend.services.slot_calendar import MIN_CALENDAR_YEAR, is_valid_calendar_day, slot_datetime

router = APIRouter(tags=['availability'])


class CreateSlotRequest(BaseModel):
    year: int = Field(ge=MIN_CALENDAR_YEAR)
    month: int = Field(ge=1, le=12)
    day: int = Field(ge=1, le=31)
    schedule: int = Field(ge=0, le=23)

    @model_validator(mode='after')
    def validate_calendar_day(self) -> 'CreateSlotRequest':
        if not is_valid_calendar_day(self.year, self.month, self.day):
            raise ValueError(f'{self.year}-{self.month:02d} has no day {self.day}.')
        return self


class SlotResponse(BaseModel):
    id: str
    doctor_id: str
    doctor_name: str
    speciality: str | None = None
    year: int
    month: int
    day: int
    schedule: int
    slot_date: datetime
    is_available: bool


class MessageResponse(BaseModel):
    message: str


def to_slot_response(slot: AvailabilitySlot) -> SlotResponse:
    return SlotResponse(
        id=slot.id,
        doctor_id=slot.doctor_id,
        doctor_name=slot.doctor.name,
        speciality=slot.doctor.speciality,
        year=slot.year,
        month=slot.month,
        day=slot.day,
        schedule=slot.schedule,
        slot_date=slot_datetime(slot),
        is_available=slot.is_available,
    )


@router.post('/slots', response_model=SlotResponse, status_code=status.HTTP_201_CREATED)
def create_slot(
    data: CreateSlotRequest,
    caller: Caller = Depends(require_role(Role.DOCTOR)),
    db: Session = Depends(get_db),
):
    with handle_service_errors(db):
        doctor = identity.find_doctor_by_id(db, caller.subject_id)
        slot = slot_store.create_slot(db, doctor.id, data.year, data.month, data.day, data.schedule)
        db.commit()
        db.refresh(slot)

        return to_slot_response(slot)


@router.get('/doctor', response_model=list[SlotResponse])
def list_my_slots(
    year: Annotated[int | None, Query(ge=MIN_CALENDAR_YEAR)] = None,
    month: Annotated[int | None, Query(ge=1, le=12)] = None,
    day: Annotated[int | None, Query(ge=1, le=31)] = None,
    caller: Caller = Depends(require_role(Role.DOCTOR)),
    db: Session = Depends(get_db),
):
    reject_past_filter(year, month, day)

    with handle_service_errors(db):
        slots = slot_store.find_available_for_doctor(db, caller.subject_id, year=year, month=month, day=day)

        return [to_slot_response(slot) for slot in slots]


@router.get(
    '/patient',
    response_model=list[SlotResponse],
    dependencies=[Depends(require_role(Role.PATIENT))],
)
def list_open_slots(
    speciality: Annotated[str | None, Query()] = None,
    year: Annotated[int | None, Query(ge=MIN_CALENDAR_YEAR)] = None,
    month: Annotated[int | None, Query(ge=1, le=12)] = None,
    day: Annotated[int | None, Query(ge=1, le=31)] = None,
    db: Session = Depends(get_db),
):
    reject_past_filter(year, month, day)

    with handle_service_errors(db):
        slots = slot_store.find_available_across_doctors(
            db,
            speciality=speciality.strip() if speciality else None,
            year=year,
            month=month,
            day=day,
        )

        return [to_slot_response(slot) for slot in slots]


@router.delete('/slots/{slot_id}', response_model=MessageResponse)
def remove_slot(
    slot_id: str,
    caller: Caller = Depends(require_role(Role.DOCTOR)),
    db: Session = Depends(get_db),
):
    with handle_service_errors(db):
        slot_store.delete_slot(db, slot_id, caller.subject_id)
        db.commit()

        return MessageResponse(message='Availability deleted successfully')
