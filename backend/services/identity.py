from sqlalchemy.orm import Session

from backend.core.errors import NotFoundError
from backend.models.user import Doctor, Patient


def find_doctor_by_id(db: Session, doctor_id: str) -> Doctor:
    doctor = db.query(Doctor).filter(Doctor.id == doctor_id).first()
    if not doctor:
        raise NotFoundError('Doctor not found.')
    return doctor


def find_patient_by_id(db: Session, patient_id: str) -> Patient:
    patient = db.query(Patient).filter(Patient.id == patient_id).first()
    if not patient:
        raise NotFoundError('Patient not found.')
    return patient
