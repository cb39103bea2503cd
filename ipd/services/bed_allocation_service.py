# ipd/services/bed_allocation_service.py
"""
Bed allocation lifecycle: admit to a bed, transfer between beds and plain
discharge (without billing). Billing discharge lives in discharge_service.
"""
import logging
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ipd.core.redis import invalidate_occupancy_cache
from ipd.models.bed import Bed, BedStatus
from ipd.models.bed_allocation import AdmissionType, AllocationStatus, BedAllocation
from ipd.models.billing import IPCharge, IPPaymentReceipt
from ipd.models.patient import Patient
from ipd.models.user import RoleName, User
from ipd.schemas.bed_allocation import BedAllocationCreate
from ipd.services.errors import (
    AllocationNotFoundError,
    BedNotFoundError,
    ConflictError,
    PatientNotFoundError,
)
from ipd.utils.datetime_utils import as_utc, utc_now
from ipd.utils.id_generators import generate_allocation_code, generate_ip_number
from ipd.utils.money import to_decimal

logger = logging.getLogger(__name__)


def get_allocation(db: Session, *, allocation_id: UUID, lock: bool = False) -> BedAllocation:
    """
    Load an allocation with patient, bed and doctor.
    With lock=True the allocation row is selected FOR UPDATE.
    """
    query = db.query(BedAllocation).filter(BedAllocation.id == allocation_id)
    if lock:
        query = query.with_for_update()
    else:
        query = query.options(
            joinedload(BedAllocation.patient),
            joinedload(BedAllocation.bed),
            joinedload(BedAllocation.doctor),
        )
    allocation = query.first()
    if not allocation:
        raise AllocationNotFoundError("Bed allocation not found")
    return allocation


def get_active_allocation(db: Session, *, allocation_id: UUID) -> BedAllocation:
    allocation = get_allocation(db, allocation_id=allocation_id)
    if allocation.status != AllocationStatus.ACTIVE:
        raise ConflictError(f"Bed allocation is {allocation.status.value}, not active")
    return allocation


def _lock_bed(db: Session, bed_id: UUID) -> Bed:
    bed = db.query(Bed).filter(Bed.id == bed_id).with_for_update().first()
    if not bed:
        raise BedNotFoundError("Bed not found")
    return bed


def _validate_doctor(db: Session, doctor_id: UUID | None) -> None:
    if doctor_id is None:
        return
    doctor = db.query(User).filter(User.id == doctor_id).first()
    if not doctor or doctor.role != RoleName.DOCTOR or not doctor.is_active:
        raise ValueError("doctor_id must reference an active doctor")


def allocate_bed(
    db: Session,
    *,
    payload: BedAllocationCreate,
    allocated_by: UUID | None = None,
) -> BedAllocation:
    """
    Admit a patient to a bed.

    Rules:
    - Bed must exist and be available
    - Patient must exist and must not hold an active allocation
    - IP number is generated unless the caller supplies one
    """
    patient = db.query(Patient).filter(Patient.id == payload.patient_id).first()
    if not patient:
        raise PatientNotFoundError("Patient not found")

    bed = _lock_bed(db, payload.bed_id)
    if bed.status != BedStatus.AVAILABLE:
        raise ConflictError(f"Bed {bed.bed_number} is {bed.status.value}")

    active = (
        db.query(BedAllocation.id)
        .filter(
            BedAllocation.patient_id == patient.id,
            BedAllocation.status == AllocationStatus.ACTIVE,
        )
        .first()
    )
    if active:
        raise ConflictError("Patient already has an active bed allocation")

    _validate_doctor(db, payload.doctor_id)

    now = utc_now()
    admission_date = as_utc(payload.admission_date) if payload.admission_date else now
    ip_number = payload.ip_number.strip() if payload.ip_number else generate_ip_number(db, now)

    allocation = BedAllocation(
        allocation_code=generate_allocation_code(db, now),
        ip_number=ip_number,
        patient_id=patient.id,
        bed_id=bed.id,
        doctor_id=payload.doctor_id,
        allocated_by=allocated_by,
        admission_date=admission_date,
        admission_type=payload.admission_type,
        admission_category=payload.admission_category,
        reason_for_admission=payload.reason_for_admission,
        status=AllocationStatus.ACTIVE,
        advance_amount=to_decimal(payload.advance_amount),
    )
    bed.status = BedStatus.OCCUPIED
    patient.is_admitted = True

    try:
        db.add(allocation)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info("Allocated bed %s to patient %s (%s)", bed.bed_number, patient.uhid, ip_number)
    invalidate_occupancy_cache()
    return get_allocation(db, allocation_id=allocation.id)


def release_allocation(
    db: Session,
    allocation: BedAllocation,
    *,
    status: AllocationStatus,
    discharge_date: datetime,
) -> None:
    """
    Close an allocation and free its bed. Caller commits.
    """
    allocation.status = status
    allocation.discharge_date = discharge_date

    bed = db.query(Bed).filter(Bed.id == allocation.bed_id).first()
    if bed:
        bed.status = BedStatus.AVAILABLE


def discharge_bed(
    db: Session,
    *,
    allocation_id: UUID,
    discharge_date: datetime | None = None,
) -> BedAllocation:
    """
    Plain discharge: release the bed without generating a bill.
    """
    allocation = get_allocation(db, allocation_id=allocation_id, lock=True)
    if allocation.status != AllocationStatus.ACTIVE:
        raise ConflictError(f"Bed allocation is {allocation.status.value}, not active")

    discharge_at = as_utc(discharge_date) if discharge_date else utc_now()
    if discharge_at < as_utc(allocation.admission_date):
        raise ValueError("Discharge date cannot be before admission date")

    release_allocation(db, allocation, status=AllocationStatus.DISCHARGED, discharge_date=discharge_at)
    patient = db.query(Patient).filter(Patient.id == allocation.patient_id).first()
    if patient:
        patient.is_admitted = False

    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    invalidate_occupancy_cache()
    return get_allocation(db, allocation_id=allocation_id)


def transfer_bed(
    db: Session,
    *,
    allocation_id: UUID,
    new_bed_id: UUID,
    reason: str | None = None,
    transferred_by: UUID | None = None,
) -> BedAllocation:
    """
    Move a patient to another bed.

    The current allocation is closed as `transferred` and a new active
    allocation on the new bed continues the episode under the same IP number.
    The running ledger (advance, charges, receipts) moves to the new leg.
    """
    current = get_allocation(db, allocation_id=allocation_id, lock=True)
    if current.status != AllocationStatus.ACTIVE:
        raise ConflictError("Only an active allocation can be transferred")
    if current.bed_id == new_bed_id:
        raise ValueError("Patient is already on this bed")

    new_bed = _lock_bed(db, new_bed_id)
    if new_bed.status != BedStatus.AVAILABLE:
        raise ConflictError(f"Bed {new_bed.bed_number} is not available for transfer")

    old_bed = db.query(Bed).filter(Bed.id == current.bed_id).first()
    old_bed_number = old_bed.bed_number if old_bed else str(current.bed_id)

    now = utc_now()
    note = f"Transferred to bed {new_bed.bed_number}."
    if reason:
        note += f" Reason: {reason}"

    new_allocation = BedAllocation(
        allocation_code=generate_allocation_code(db, now),
        ip_number=current.ip_number,
        patient_id=current.patient_id,
        bed_id=new_bed.id,
        doctor_id=current.doctor_id,
        allocated_by=transferred_by or current.allocated_by,
        admission_date=now,
        admission_type=AdmissionType.TRANSFER,
        admission_category=current.admission_category,
        reason_for_admission=f"Transfer from bed {old_bed_number}." + (f" Reason: {reason}" if reason else ""),
        status=AllocationStatus.ACTIVE,
        advance_amount=to_decimal(current.advance_amount),
    )

    release_allocation(db, current, status=AllocationStatus.TRANSFERRED, discharge_date=now)
    current.reason_for_admission = "\n".join(filter(None, [current.reason_for_admission, note]))
    current.advance_amount = Decimal("0")
    new_bed.status = BedStatus.OCCUPIED

    try:
        db.add(new_allocation)
        db.flush()
        db.query(IPCharge).filter(IPCharge.bed_allocation_id == current.id).update(
            {IPCharge.bed_allocation_id: new_allocation.id}, synchronize_session=False
        )
        db.query(IPPaymentReceipt).filter(IPPaymentReceipt.bed_allocation_id == current.id).update(
            {IPPaymentReceipt.bed_allocation_id: new_allocation.id}, synchronize_session=False
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info("Transferred %s from bed %s to %s", current.ip_number, old_bed_number, new_bed.bed_number)
    invalidate_occupancy_cache()
    return get_allocation(db, allocation_id=new_allocation.id)


def list_allocations(
    db: Session,
    *,
    status: AllocationStatus | None = None,
    patient_id: UUID | None = None,
    search: str | None = None,
    skip: int = 0,
    limit: int = 50,
) -> list[BedAllocation]:
    query = db.query(BedAllocation).join(Patient, Patient.id == BedAllocation.patient_id).options(
        joinedload(BedAllocation.patient),
        joinedload(BedAllocation.bed),
        joinedload(BedAllocation.doctor),
    )
    if status:
        query = query.filter(BedAllocation.status == status)
    if patient_id:
        query = query.filter(BedAllocation.patient_id == patient_id)
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(
            or_(
                Patient.name.ilike(term),
                Patient.uhid.ilike(term),
                BedAllocation.ip_number.ilike(term),
                BedAllocation.allocation_code.ilike(term),
            )
        )
    return query.order_by(BedAllocation.admission_date.desc()).offset(skip).limit(limit).all()


def get_patient_bed_history(db: Session, *, patient_id: UUID) -> list[BedAllocation]:
    if not db.query(Patient.id).filter(Patient.id == patient_id).first():
        raise PatientNotFoundError("Patient not found")
    return (
        db.query(BedAllocation)
        .options(joinedload(BedAllocation.bed), joinedload(BedAllocation.doctor))
        .filter(BedAllocation.patient_id == patient_id)
        .order_by(BedAllocation.admission_date.desc())
        .all()
    )


def get_episode_legs(db: Session, allocation: BedAllocation) -> list[BedAllocation]:
    """
    All allocations of the episode (same IP number and patient), oldest first.
    """
    return (
        db.query(BedAllocation)
        .options(joinedload(BedAllocation.bed))
        .filter(
            BedAllocation.ip_number == allocation.ip_number,
            BedAllocation.patient_id == allocation.patient_id,
        )
        .order_by(BedAllocation.admission_date.asc())
        .all()
    )


def record_advance(db: Session, *, allocation_id: UUID, amount: Decimal) -> BedAllocation:
    allocation = get_allocation(db, allocation_id=allocation_id, lock=True)
    if allocation.status != AllocationStatus.ACTIVE:
        raise ConflictError("Advance can only be recorded for an active allocation")
    if to_decimal(amount) <= 0:
        raise ValueError("Advance amount must be greater than zero")

    allocation.advance_amount = to_decimal(allocation.advance_amount) + to_decimal(amount)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    return get_allocation(db, allocation_id=allocation_id)
