# ipd/services/vital_service.py
from datetime import date
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ipd.models.vital import IPVital
from ipd.schemas.vital import VitalCreate
from ipd.services.bed_allocation_service import get_active_allocation
from ipd.utils.datetime_utils import as_utc, day_bounds, utc_now


def add_vital_reading(
    db: Session,
    *,
    allocation_id: UUID,
    recorded_by: UUID | None,
    payload: VitalCreate,
) -> IPVital:
    allocation = get_active_allocation(db, allocation_id=allocation_id)

    vital = IPVital(
        bed_allocation_id=allocation.id,
        created_by=recorded_by,
        **payload.model_dump(exclude={"recorded_at"}),
        recorded_at=as_utc(payload.recorded_at) if payload.recorded_at else utc_now(),
    )
    try:
        db.add(vital)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(vital)
    return vital


def list_vitals(db: Session, *, allocation_id: UUID, day: date | None = None) -> list[IPVital]:
    query = db.query(IPVital).filter(IPVital.bed_allocation_id == allocation_id)
    if day:
        start, end = day_bounds(day)
        query = query.filter(IPVital.recorded_at >= start, IPVital.recorded_at < end)
    return query.order_by(IPVital.recorded_at.desc()).all()
