# ipd/services/billing_service.py
"""
Inpatient billing: the pure bill arithmetic, the running ledger of an
allocation (charges and payment receipts) and the billing statement that
combines bed-days, consultation, charges and payments.
"""
import logging
import math
from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Iterable
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ipd.core.config import get_settings
from ipd.core.redis import invalidate_occupancy_cache
from ipd.models.bed import Bed
from ipd.models.bed_allocation import AllocationStatus, BedAllocation
from ipd.models.billing import Bill, ChargeCategory, IPCharge, IPPaymentReceipt, PaymentStatus
from ipd.schemas.billing import (
    BillingStatement,
    BillLine,
    BillTotals,
    ChargeCreate,
    ConsultationCharge,
    PaymentReceiptResponse,
    PaymentSplit,
    RoomCharges,
)
from ipd.services.bed_allocation_service import get_allocation, get_episode_legs
from ipd.services.errors import ConflictError, NotFoundError
from ipd.utils.datetime_utils import as_utc, utc_now
from ipd.utils.money import ZERO, round_amount, to_decimal

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60

BED_TYPE_LABELS = {
    "icu": "ICU Bed",
    "emergency": "Emergency Bed",
    "private": "Private Room",
}


class ChargeNotFoundError(NotFoundError):
    pass


# ---------------------------------------------------------------------------
# Pure arithmetic
# ---------------------------------------------------------------------------


def calculate_stay_days(admission_date: datetime, discharge_date: datetime) -> int:
    """
    Billable days: every started 24h period counts, minimum one day.
    """
    delta = abs(as_utc(discharge_date) - as_utc(admission_date))
    return max(1, math.ceil(delta.total_seconds() / SECONDS_PER_DAY))


def bed_type_label(bed_type: str | None) -> str:
    return BED_TYPE_LABELS.get((bed_type or "").strip().lower(), "General Ward Bed")


def effective_daily_rate(daily_rate, default_rate=None) -> Decimal:
    rate = to_decimal(daily_rate)
    if rate <= 0:
        if default_rate is None:
            default_rate = get_settings().default_bed_daily_rate
        return to_decimal(default_rate)
    return rate


def calculate_room_charges(
    bed: Bed | None,
    admission_date: datetime,
    discharge_date: datetime,
    default_rate=None,
) -> RoomCharges:
    days = calculate_stay_days(admission_date, discharge_date)
    rate = effective_daily_rate(bed.daily_rate if bed else None, default_rate)
    return RoomCharges(
        bed_id=bed.id if bed else None,
        bed_number=bed.bed_number if bed else None,
        bed_type=bed_type_label(bed.bed_type if bed else None),
        days=days,
        daily_rate=rate,
        total=round_amount(rate * days),
        from_date=as_utc(admission_date),
        to_date=as_utc(discharge_date),
    )


def calculate_bill_totals(
    items: Iterable[BillLine],
    tax_percentage=0,
    discount_percentage=0,
    discount_amount=None,
) -> BillTotals:
    """
    subtotal = sum(quantity x unit_rate); tax and discount are percentages of
    the subtotal unless a flat discount amount is given. Every figure is
    rounded half-up to a whole number.
    """
    subtotal = round_amount(sum((to_decimal(i.quantity) * to_decimal(i.unit_rate) for i in items), ZERO))
    tax = round_amount(subtotal * to_decimal(tax_percentage) / 100)

    if discount_amount is not None:
        discount = round_amount(discount_amount)
    else:
        discount = round_amount(subtotal * to_decimal(discount_percentage) / 100)

    if discount < 0 or tax < 0:
        raise ValueError("Tax and discount cannot be negative")
    if discount > subtotal + tax:
        raise ValueError("Discount cannot exceed the bill amount")

    return BillTotals(
        subtotal=subtotal,
        tax_amount=tax,
        discount_amount=discount,
        total_amount=subtotal + tax - discount,
    )


def determine_payment_status(total, paid) -> PaymentStatus:
    pending = to_decimal(total) - to_decimal(paid)
    if pending <= 0:
        return PaymentStatus.PAID
    if to_decimal(paid) > 0:
        return PaymentStatus.PARTIAL
    return PaymentStatus.PENDING


def consultation_fee_for(doctor) -> Decimal:
    fee = to_decimal(doctor.consultation_fee if doctor else None)
    if fee <= 0:
        return to_decimal(get_settings().default_consultation_fee)
    return fee


# ---------------------------------------------------------------------------
# Ledger: charges
# ---------------------------------------------------------------------------


def _ledger_allocation(db: Session, allocation_id: UUID) -> BedAllocation:
    allocation = get_allocation(db, allocation_id=allocation_id)
    if allocation.status == AllocationStatus.TRANSFERRED:
        raise ConflictError("Allocation was transferred; bill against the current bed allocation")
    return allocation


def _sync_if_discharged(db: Session, allocation: BedAllocation) -> bool:
    """
    Stage the summary and bill refresh of a discharged allocation in the
    current transaction. Returns whether a sync was staged.
    """
    if allocation.status != AllocationStatus.DISCHARGED:
        return False
    from ipd.services.discharge_service import sync_billing  # local import to avoid cycles

    sync_billing(db, allocation_id=allocation.id, commit=False)
    return True


def add_charge(
    db: Session,
    *,
    allocation_id: UUID,
    payload: ChargeCreate,
    user_id: UUID | None = None,
    commit: bool = True,
) -> IPCharge:
    allocation = _ledger_allocation(db, allocation_id)
    amount = (to_decimal(payload.quantity) * to_decimal(payload.unit_rate)).quantize(Decimal("0.01"))

    charge = IPCharge(
        bed_allocation_id=allocation.id,
        category=payload.category,
        description=payload.description.strip(),
        quantity=to_decimal(payload.quantity),
        unit_rate=to_decimal(payload.unit_rate),
        amount=amount,
        service_date=as_utc(payload.service_date) if payload.service_date else utc_now(),
        created_by=user_id,
    )
    db.add(charge)
    if not commit:
        db.flush()
        return charge

    try:
        db.flush()
        synced = _sync_if_discharged(db, allocation)
        db.commit()
    except (SQLAlchemyError, ValueError):
        db.rollback()
        raise
    db.refresh(charge)
    if synced:
        invalidate_occupancy_cache()
    return charge


def list_charges(
    db: Session,
    *,
    allocation_id: UUID,
    category: ChargeCategory | None = None,
) -> list[IPCharge]:
    query = db.query(IPCharge).filter(IPCharge.bed_allocation_id == allocation_id)
    if category:
        query = query.filter(IPCharge.category == category)
    return query.order_by(IPCharge.service_date.asc()).all()


def delete_charge(db: Session, *, charge_id: UUID) -> None:
    charge = db.query(IPCharge).filter(IPCharge.id == charge_id).first()
    if not charge:
        raise ChargeNotFoundError("Charge not found")
    allocation = _ledger_allocation(db, charge.bed_allocation_id)

    try:
        db.delete(charge)
        db.flush()
        synced = _sync_if_discharged(db, allocation)
        db.commit()
    except (SQLAlchemyError, ValueError):
        db.rollback()
        raise
    if synced:
        invalidate_occupancy_cache()


# ---------------------------------------------------------------------------
# Ledger: payments
# ---------------------------------------------------------------------------


def list_receipts(db: Session, *, allocation_id: UUID) -> list[IPPaymentReceipt]:
    return (
        db.query(IPPaymentReceipt)
        .filter(IPPaymentReceipt.bed_allocation_id == allocation_id)
        .order_by(IPPaymentReceipt.payment_date.asc())
        .all()
    )


def add_receipts(
    db: Session,
    allocation: BedAllocation,
    splits: list[PaymentSplit],
    *,
    amount_due: Decimal,
    user_id: UUID | None = None,
) -> list[IPPaymentReceipt]:
    """
    Validate split payments against the amount due and stage one receipt per
    split. Caller commits.
    """
    for split in splits:
        if to_decimal(split.amount) <= 0:
            raise ValueError("Each payment amount must be greater than zero")

    total = sum((to_decimal(s.amount) for s in splits), ZERO)
    if total <= 0:
        raise ValueError("Payment total must be greater than zero")
    if total > amount_due:
        raise ValueError(f"Payment total {total} exceeds the pending amount {amount_due}")

    now = utc_now()
    receipts = []
    for split in splits:
        receipt = IPPaymentReceipt(
            bed_allocation_id=allocation.id,
            payment_type=split.payment_type,
            amount=to_decimal(split.amount),
            reference_number=split.reference_number,
            notes=split.notes,
            payment_date=now,
            received_by=user_id,
        )
        db.add(receipt)
        receipts.append(receipt)
    db.flush()
    return receipts


def record_payment(
    db: Session,
    *,
    allocation_id: UUID,
    splits: list[PaymentSplit],
    user_id: UUID | None = None,
) -> list[IPPaymentReceipt]:
    """
    Record a (possibly split) payment against the allocation's pending amount.
    """
    allocation = _ledger_allocation(db, allocation_id)
    statement = get_billing_statement(db, allocation_id=allocation.id)

    try:
        receipts = add_receipts(db, allocation, splits, amount_due=statement.pending_amount, user_id=user_id)
        synced = _sync_if_discharged(db, allocation)
        db.commit()
    except (SQLAlchemyError, ValueError):
        db.rollback()
        raise

    for receipt in receipts:
        db.refresh(receipt)
    logger.info(
        "Recorded %d payment(s) totalling %s for %s",
        len(receipts),
        sum((r.amount for r in receipts), ZERO),
        allocation.ip_number,
    )
    if synced:
        invalidate_occupancy_cache()
    return receipts


# ---------------------------------------------------------------------------
# Statement
# ---------------------------------------------------------------------------


def _room_charges_for(db: Session, allocation: BedAllocation, end: datetime) -> list[RoomCharges]:
    """
    Bed charges of the stay. For an active/discharged leg that follows
    transfers, earlier legs of the same IP number are billed too.
    """
    legs: list[tuple[BedAllocation, datetime]] = []
    if allocation.status != AllocationStatus.TRANSFERRED:
        for leg in get_episode_legs(db, allocation):
            if (
                leg.id != allocation.id
                and leg.status == AllocationStatus.TRANSFERRED
                and leg.discharge_date is not None
                and as_utc(leg.admission_date) <= as_utc(allocation.admission_date)
            ):
                legs.append((leg, leg.discharge_date))
    legs.append((allocation, end))

    return [calculate_room_charges(leg.bed, leg.admission_date, leg_end) for leg, leg_end in legs]


def _resolve_adjustments(
    db: Session,
    allocation_id: UUID,
    tax_percentage,
    discount_percentage,
    discount_amount,
):
    if tax_percentage is not None or discount_percentage is not None or discount_amount is not None:
        return tax_percentage or 0, discount_percentage or 0, discount_amount

    bill = db.query(Bill).filter(Bill.bed_allocation_id == allocation_id).first()
    if not bill:
        return 0, 0, None
    if to_decimal(bill.discount_percentage) > 0:
        return bill.tax_percentage, bill.discount_percentage, None
    return bill.tax_percentage, 0, bill.discount_amount


def get_billing_statement(
    db: Session,
    *,
    allocation_id: UUID,
    as_of: datetime | None = None,
    tax_percentage=None,
    discount_percentage=None,
    discount_amount=None,
    extra_lines: list[BillLine] | None = None,
) -> BillingStatement:
    """
    Assemble the full bill of an allocation.

    Bed-days run to the discharge time (or `as_of` / now while active).
    Tax and discount default to the ones stored on the allocation's bill.
    """
    allocation = get_allocation(db, allocation_id=allocation_id)
    if allocation.status == AllocationStatus.ACTIVE:
        end = as_utc(as_of) if as_of else utc_now()
    else:
        end = as_utc(allocation.discharge_date or as_of or utc_now())
    if end < as_utc(allocation.admission_date):
        raise ValueError("Discharge date cannot be before admission date")

    room_charges = _room_charges_for(db, allocation, end)
    bed_days = sum(rc.days for rc in room_charges)

    doctor = allocation.doctor
    fee = consultation_fee_for(doctor)
    consultation = ConsultationCharge(
        doctor_id=doctor.id if doctor else None,
        doctor_name=doctor.full_name if doctor else None,
        fee=fee,
        days=bed_days,
        total=round_amount(fee * bed_days),
    )

    lines: list[BillLine] = [
        BillLine(
            category="bed",
            description=f"{rc.bed_type}" + (f" ({rc.bed_number})" if rc.bed_number else ""),
            quantity=Decimal(rc.days),
            unit_rate=rc.daily_rate,
            amount=rc.total,
        )
        for rc in room_charges
    ]
    lines.append(
        BillLine(
            category=ChargeCategory.CONSULTATION.value,
            description="Doctor Consultation" + (f" - {consultation.doctor_name}" if consultation.doctor_name else ""),
            quantity=Decimal(bed_days),
            unit_rate=fee,
            amount=consultation.total,
        )
    )

    category_totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
    category_totals["bed"] = sum((rc.total for rc in room_charges), ZERO)
    category_totals[ChargeCategory.CONSULTATION.value] = consultation.total
    for category in ChargeCategory:
        category_totals.setdefault(category.value, ZERO)

    for charge in list_charges(db, allocation_id=allocation.id):
        lines.append(
            BillLine(
                category=charge.category.value,
                description=charge.description,
                quantity=to_decimal(charge.quantity),
                unit_rate=to_decimal(charge.unit_rate),
                amount=to_decimal(charge.amount),
            )
        )
        category_totals[charge.category.value] += to_decimal(charge.amount)

    for line in extra_lines or []:
        amount = to_decimal(line.quantity) * to_decimal(line.unit_rate)
        lines.append(line.model_copy(update={"amount": amount}))
        category_totals[line.category] += amount

    tax_pct, disc_pct, flat_discount = _resolve_adjustments(
        db, allocation.id, tax_percentage, discount_percentage, discount_amount
    )
    totals = calculate_bill_totals(lines, tax_pct, disc_pct, flat_discount)

    receipts = list_receipts(db, allocation_id=allocation.id)
    receipts_total = sum((to_decimal(r.amount) for r in receipts), ZERO)
    advance = to_decimal(allocation.advance_amount)
    paid = advance + receipts_total

    splits: dict[str, Decimal] = {}
    if advance > 0:
        splits["advance"] = advance
    for receipt in receipts:
        key = receipt.payment_type.value
        splits[key] = splits.get(key, ZERO) + to_decimal(receipt.amount)

    patient = allocation.patient
    return BillingStatement(
        allocation_id=allocation.id,
        ip_number=allocation.ip_number,
        patient_id=allocation.patient_id,
        patient_name=patient.name if patient else None,
        uhid=patient.uhid if patient else None,
        admission_date=as_utc(allocation.admission_date),
        as_of=end,
        is_discharged=allocation.status == AllocationStatus.DISCHARGED,
        room_charges=room_charges,
        consultation=consultation,
        lines=lines,
        category_totals={k: round_amount(v) for k, v in category_totals.items()},
        receipts=[PaymentReceiptResponse.model_validate(r) for r in receipts],
        advance_amount=advance,
        receipts_total=receipts_total,
        gross_amount=totals.subtotal,
        tax_percentage=to_decimal(tax_pct),
        tax_amount=totals.tax_amount,
        discount_percentage=to_decimal(disc_pct),
        discount_amount=totals.discount_amount,
        net_amount=totals.total_amount,
        paid_amount=paid,
        pending_amount=max(ZERO, totals.total_amount - paid),
        payment_status=determine_payment_status(totals.total_amount, paid),
        payment_splits=splits,
    )


def get_bill(db: Session, *, allocation_id: UUID) -> Bill | None:
    return db.query(Bill).filter(Bill.bed_allocation_id == allocation_id).first()
