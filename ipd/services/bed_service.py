# ipd/services/bed_service.py
import logging
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ipd.core.redis import BED_STATS_KEY, cache_get_json, cache_set_json, invalidate_occupancy_cache
from ipd.models.bed import Bed, BedStatus
from ipd.models.bed_allocation import AllocationStatus, BedAllocation
from ipd.schemas.bed import BedCreate, BedStats
from ipd.services.errors import BedNotFoundError, ConflictError

logger = logging.getLogger(__name__)


def get_bed(db: Session, *, bed_id: UUID) -> Bed:
    bed = db.query(Bed).filter(Bed.id == bed_id).first()
    if not bed:
        raise BedNotFoundError("Bed not found")
    return bed


def _has_active_allocation(db: Session, bed_id: UUID) -> bool:
    return (
        db.query(BedAllocation.id)
        .filter(
            BedAllocation.bed_id == bed_id,
            BedAllocation.status == AllocationStatus.ACTIVE,
        )
        .first()
        is not None
    )


def create_bed(db: Session, *, payload: BedCreate) -> Bed:
    bed_number = payload.bed_number.strip()
    if db.query(Bed.id).filter(Bed.bed_number == bed_number).first():
        raise ConflictError(f"Bed number '{bed_number}' already exists")

    bed = Bed(
        bed_number=bed_number,
        room_number=payload.room_number,
        bed_type=payload.bed_type.strip().lower(),
        department_ward=payload.department_ward,
        floor_number=payload.floor_number,
        daily_rate=Decimal(str(payload.daily_rate)) if payload.daily_rate is not None else None,
        features=list(payload.features),
        status=BedStatus.AVAILABLE,
    )
    try:
        db.add(bed)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(bed)
    invalidate_occupancy_cache()
    return bed


def list_beds(
    db: Session,
    *,
    status: BedStatus | None = None,
    bed_type: str | None = None,
    department_ward: str | None = None,
    search: str | None = None,
) -> list[Bed]:
    query = db.query(Bed)
    if status:
        query = query.filter(Bed.status == status)
    if bed_type:
        query = query.filter(Bed.bed_type == bed_type.lower())
    if department_ward:
        query = query.filter(Bed.department_ward == department_ward)
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(or_(Bed.bed_number.ilike(term), Bed.room_number.ilike(term)))
    return query.order_by(Bed.bed_number).all()


def get_available_beds(
    db: Session,
    *,
    bed_type: str | None = None,
    department_ward: str | None = None,
) -> list[Bed]:
    return list_beds(db, status=BedStatus.AVAILABLE, bed_type=bed_type, department_ward=department_ward)


def update_bed_status(db: Session, *, bed_id: UUID, status: BedStatus) -> Bed:
    """
    Manual status change (maintenance, reservation, back to available).

    Occupancy is owned by allocations: a bed is only marked occupied by
    allocating it, and a bed with an active allocation keeps its status.
    """
    bed = get_bed(db, bed_id=bed_id)

    if status == BedStatus.OCCUPIED:
        raise ValueError("Beds become occupied through allocation only")
    if _has_active_allocation(db, bed.id):
        raise ConflictError("Bed has an active allocation; discharge or transfer the patient first")

    bed.status = status
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(bed)
    invalidate_occupancy_cache()
    return bed


def delete_bed(db: Session, *, bed_id: UUID) -> None:
    bed = get_bed(db, bed_id=bed_id)
    if _has_active_allocation(db, bed.id):
        raise ConflictError("Cannot delete a bed with an active allocation")
    if db.query(BedAllocation.id).filter(BedAllocation.bed_id == bed.id).first():
        raise ConflictError("Bed has allocation history; set it to maintenance instead")

    try:
        db.delete(bed)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    invalidate_occupancy_cache()


def compute_bed_stats(db: Session) -> BedStats:
    rows = db.query(Bed.status, func.count(Bed.id)).group_by(Bed.status).all()
    counts = {status.value: count for status, count in rows}

    total = sum(counts.values())
    occupied = counts.get(BedStatus.OCCUPIED.value, 0)
    occupancy_rate = round(occupied / total * 100, 1) if total else 0.0

    return BedStats(
        total=total,
        available=counts.get(BedStatus.AVAILABLE.value, 0),
        occupied=occupied,
        maintenance=counts.get(BedStatus.MAINTENANCE.value, 0),
        reserved=counts.get(BedStatus.RESERVED.value, 0),
        occupancy_rate=occupancy_rate,
    )


def get_bed_stats(db: Session) -> BedStats:
    """
    Bed counts per status plus occupancy rate. Cached for a short TTL.
    """
    cached = cache_get_json(BED_STATS_KEY)
    if cached:
        try:
            return BedStats(**cached)
        except (TypeError, ValueError):
            logger.warning("Cached bed stats invalid. Recomputing.", exc_info=True)

    stats = compute_bed_stats(db)
    cache_set_json(BED_STATS_KEY, stats.model_dump())
    return stats
