# ipd/services/medication_service.py
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ipd.models.medication import Medication
from ipd.schemas.medication import MedicationCreate
from ipd.services.errors import ConflictError, MedicationNotFoundError


def get_medication(db: Session, *, medication_id: UUID) -> Medication:
    medication = db.query(Medication).filter(Medication.id == medication_id).first()
    if not medication:
        raise MedicationNotFoundError("Medication not found")
    return medication


def find_medication_by_name(db: Session, name: str) -> Medication | None:
    """
    Case-insensitive catalog lookup among active medications.
    """
    return (
        db.query(Medication)
        .filter(func.lower(Medication.name) == name.strip().lower(), Medication.is_active.is_(True))
        .first()
    )


def list_medications(db: Session, *, search: str | None = None, include_inactive: bool = False) -> list[Medication]:
    query = db.query(Medication)
    if not include_inactive:
        query = query.filter(Medication.is_active.is_(True))
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(or_(Medication.name.ilike(term), Medication.generic_name.ilike(term)))
    return query.order_by(Medication.name).all()


def create_medication(db: Session, *, payload: MedicationCreate) -> Medication:
    if db.query(Medication.id).filter(func.lower(Medication.name) == payload.name.lower()).first():
        raise ConflictError(f"Medication '{payload.name}' already exists")

    data = payload.model_dump()
    data["selling_price"] = Decimal(str(data["selling_price"]))
    medication = Medication(**data)
    try:
        db.add(medication)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(medication)
    return medication
