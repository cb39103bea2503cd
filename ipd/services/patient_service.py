# ipd/services/patient_service.py
import logging
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ipd.models.patient import Patient
from ipd.schemas.patient import PatientCreate, PatientUpdate
from ipd.services.errors import PatientNotFoundError
from ipd.utils.id_generators import generate_uhid

logger = logging.getLogger(__name__)


def register_patient(db: Session, *, payload: PatientCreate) -> Patient:
    """
    Register a patient and assign the next UHID for the current year.
    """
    patient = Patient(
        uhid=generate_uhid(db),
        **payload.model_dump(),
    )
    try:
        db.add(patient)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(patient)
    logger.info("Registered patient %s", patient.uhid)
    return patient


def get_patient(db: Session, *, patient_id: UUID) -> Patient:
    patient = db.query(Patient).filter(Patient.id == patient_id).first()
    if not patient:
        raise PatientNotFoundError("Patient not found")
    return patient


def update_patient(db: Session, *, patient_id: UUID, payload: PatientUpdate) -> Patient:
    patient = get_patient(db, patient_id=patient_id)

    update_data = payload.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(patient, field, value)

    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(patient)
    return patient


def list_patients(
    db: Session,
    *,
    search: str | None = None,
    is_admitted: bool | None = None,
    skip: int = 0,
    limit: int = 50,
) -> list[Patient]:
    query = db.query(Patient)

    if search:
        term = f"%{search.strip()}%"
        query = query.filter(
            or_(
                Patient.name.ilike(term),
                Patient.uhid.ilike(term),
                Patient.phone.ilike(term),
            )
        )
    if is_admitted is not None:
        query = query.filter(Patient.is_admitted.is_(is_admitted))

    return query.order_by(Patient.created_at.desc(), Patient.uhid.desc()).offset(skip).limit(limit).all()
