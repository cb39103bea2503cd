# ipd/services/discharge_service.py
"""
Discharge summary and the discharge billing reconciliation.

process_discharge settles an active stay in one transaction: bed-days,
recorded charges and extra services are totalled with tax and discount,
the final payments are receipted, and the summary, the denormalized bill
and the allocation/bed/patient rows are all updated before a single commit.
"""
import logging
from io import BytesIO
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ipd.core.config import get_settings
from ipd.core.redis import invalidate_occupancy_cache
from ipd.models.bed_allocation import AllocationStatus, BedAllocation
from ipd.models.billing import Bill, BillItem, ChargeCategory
from ipd.models.clinical_note import IPDoctorOrder
from ipd.models.discharge_summary import DischargeSummary, SummaryStatus
from ipd.models.patient import Patient
from ipd.models.prescription import Prescription, PrescriptionStatus
from ipd.schemas.billing import BillingStatement, BillLine, ChargeCreate
from ipd.schemas.discharge import (
    DischargeProcessRequest,
    DischargeSummaryFields,
    DischargeSummaryPrefill,
    DischargeSummarySave,
)
from ipd.services import billing_service
from ipd.services.bed_allocation_service import get_allocation, get_episode_legs, release_allocation
from ipd.services.clinical_service import get_latest_case_sheet
from ipd.services.errors import ConflictError, NotFoundError
from ipd.utils.datetime_utils import as_utc, utc_now
from ipd.utils.id_generators import generate_bill_number
from ipd.utils.money import ZERO

logger = logging.getLogger(__name__)

CLINICAL_FIELDS = tuple(DischargeSummaryFields.model_fields)

# Categories with their own summary column; everything else is "other".
_ITEMIZED_CATEGORIES = {
    "bed",
    ChargeCategory.PHARMACY.value,
    ChargeCategory.LAB.value,
    ChargeCategory.RADIOLOGY.value,
    ChargeCategory.PROCEDURE.value,
}


class DischargeSummaryNotFoundError(NotFoundError):
    pass


def get_discharge_summary(db: Session, *, allocation_id: UUID) -> DischargeSummary:
    summary = db.query(DischargeSummary).filter(DischargeSummary.bed_allocation_id == allocation_id).first()
    if not summary:
        raise DischargeSummaryNotFoundError("Discharge summary not found")
    return summary


def _snapshot(db: Session, allocation: BedAllocation) -> dict:
    patient = allocation.patient
    legs = get_episode_legs(db, allocation)
    episode_start = min((as_utc(leg.admission_date) for leg in legs), default=as_utc(allocation.admission_date))
    return {
        "uhid": patient.uhid if patient else None,
        "patient_name": patient.name if patient else None,
        "gender": patient.gender if patient else None,
        "age": patient.age if patient else None,
        "address": patient.address if patient else None,
        "ip_number": allocation.ip_number,
        "admission_date": episode_start,
        "discharge_date": allocation.discharge_date,
        "consultant_name": allocation.doctor.full_name if allocation.doctor else None,
    }


def _prescription_text(db: Session, allocation_id: UUID) -> str | None:
    prescriptions = (
        db.query(Prescription)
        .filter(
            Prescription.bed_allocation_id == allocation_id,
            Prescription.status == PrescriptionStatus.ACTIVE,
        )
        .order_by(Prescription.created_at.asc())
        .all()
    )
    lines = []
    for rx in prescriptions:
        for item in rx.items:
            parts = [item.medicine_name, item.dosage, item.frequency, item.duration]
            lines.append(" - ".join(p for p in parts if p))
    return "\n".join(lines) or None


def prefill_discharge_summary(db: Session, *, allocation_id: UUID) -> DischargeSummaryPrefill:
    """
    Suggest summary values from the stay: allocation, patient, the latest
    case sheet and doctor orders. Values already saved on a summary win.
    """
    allocation = get_allocation(db, allocation_id=allocation_id)
    patient = allocation.patient
    sheet = get_latest_case_sheet(db, allocation_id=allocation.id)
    latest_order = (
        db.query(IPDoctorOrder)
        .filter(
            IPDoctorOrder.bed_allocation_id == allocation.id,
            IPDoctorOrder.treatment_instructions.isnot(None),
        )
        .order_by(IPDoctorOrder.order_date.desc())
        .first()
    )

    values = {
        "presenting_complaint": (sheet and sheet.present_complaints) or allocation.reason_for_admission,
        "physical_findings": sheet.examination_notes if sheet else None,
        "investigations": sheet.investigation_summary if sheet else None,
        "past_history": (sheet and sheet.past_history) or (patient.medical_history if patient else None),
        "final_diagnosis": (sheet and sheet.provisional_diagnosis) or (patient.diagnosis if patient else None),
        "treatment_given": (latest_order.treatment_instructions if latest_order else None)
        or (sheet.treatment_plan if sheet else None),
        "prescription": _prescription_text(db, allocation.id),
        **_snapshot(db, allocation),
    }

    existing = db.query(DischargeSummary).filter(DischargeSummary.bed_allocation_id == allocation.id).first()
    if existing:
        for field in CLINICAL_FIELDS:
            value = getattr(existing, field)
            if value not in (None, ""):
                values[field] = value

    return DischargeSummaryPrefill(**values)


def _get_or_create_summary(db: Session, allocation: BedAllocation, user_id: UUID | None) -> DischargeSummary:
    summary = db.query(DischargeSummary).filter(DischargeSummary.bed_allocation_id == allocation.id).first()
    if summary is None:
        summary = DischargeSummary(
            bed_allocation_id=allocation.id,
            patient_id=allocation.patient_id,
            status=SummaryStatus.DRAFT,
            payment_splits={},
            created_by=user_id,
        )
        db.add(summary)
    for field, value in _snapshot(db, allocation).items():
        setattr(summary, field, value)
    summary.updated_by = user_id
    return summary


def _apply_clinical_fields(summary: DischargeSummary, fields: DischargeSummaryFields) -> None:
    for field, value in fields.model_dump(exclude_unset=True).items():
        if field in CLINICAL_FIELDS:
            setattr(summary, field, value)


def _finalize(summary: DischargeSummary) -> None:
    summary.status = SummaryStatus.FINAL
    summary.finalized_at = utc_now()


def save_discharge_summary(
    db: Session,
    *,
    allocation_id: UUID,
    payload: DischargeSummarySave,
    user_id: UUID | None = None,
) -> DischargeSummary:
    """
    Create or update the allocation's summary. A final summary is read-only.
    """
    allocation = get_allocation(db, allocation_id=allocation_id)
    existing = db.query(DischargeSummary).filter(DischargeSummary.bed_allocation_id == allocation.id).first()
    if existing and existing.status == SummaryStatus.FINAL:
        raise ConflictError("Discharge summary is final and can no longer be edited")

    summary = _get_or_create_summary(db, allocation, user_id)
    _apply_clinical_fields(summary, payload)
    if payload.finalize:
        _finalize(summary)

    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(summary)
    return summary


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------


def _apply_statement(summary: DischargeSummary, statement: BillingStatement) -> None:
    totals = statement.category_totals
    bed = totals.get("bed", ZERO)
    pharmacy = totals.get(ChargeCategory.PHARMACY.value, ZERO)
    lab = totals.get(ChargeCategory.LAB.value, ZERO) + totals.get(ChargeCategory.RADIOLOGY.value, ZERO)
    procedure = totals.get(ChargeCategory.PROCEDURE.value, ZERO)

    summary.bed_days = statement.bed_days
    summary.bed_daily_rate = statement.room_charges[-1].daily_rate if statement.room_charges else ZERO
    summary.bed_total = bed
    summary.pharmacy_amount = pharmacy
    summary.lab_amount = lab
    summary.procedure_amount = procedure
    summary.other_amount = sum(
        (amount for category, amount in totals.items() if category not in _ITEMIZED_CATEGORIES), ZERO
    )
    summary.gross_amount = statement.gross_amount
    summary.discount_amount = statement.discount_amount
    summary.tax_amount = statement.tax_amount
    summary.net_amount = statement.net_amount
    summary.paid_amount = statement.paid_amount
    summary.pending_amount = statement.pending_amount
    summary.payment_splits = {method: float(amount) for method, amount in statement.payment_splits.items()}


def _payment_method(statement: BillingStatement) -> str | None:
    methods = list(statement.payment_splits)
    if not methods:
        return None
    if len(methods) == 1:
        return methods[0]
    return "split"


def _upsert_bill(db: Session, allocation: BedAllocation, statement: BillingStatement) -> Bill:
    """
    Write the denormalized bill row for the allocation and replace its items.
    """
    bill = db.query(Bill).filter(Bill.bed_allocation_id == allocation.id).first()
    if bill is None:
        bill = Bill(
            bill_number=generate_bill_number(db, "IP"),
            bill_type="IP",
            bed_allocation_id=allocation.id,
            patient_id=allocation.patient_id,
        )
        db.add(bill)
        db.flush()
    else:
        db.query(BillItem).filter(BillItem.bill_id == bill.id).delete(synchronize_session=False)

    bill.subtotal = statement.gross_amount
    bill.tax_percentage = statement.tax_percentage
    bill.tax_amount = statement.tax_amount
    bill.discount_percentage = statement.discount_percentage
    bill.discount_amount = statement.discount_amount
    bill.total_amount = statement.net_amount
    bill.paid_amount = statement.paid_amount
    bill.balance_amount = statement.pending_amount
    bill.payment_status = statement.payment_status
    bill.payment_method = _payment_method(statement)
    bill.bill_date = statement.as_of

    for line in statement.lines:
        db.add(
            BillItem(
                bill_id=bill.id,
                category=line.category,
                description=line.description,
                quantity=line.quantity,
                unit_rate=line.unit_rate,
                amount=line.amount if line.amount is not None else line.quantity * line.unit_rate,
            )
        )
    db.flush()
    return bill


def preview_discharge(db: Session, *, allocation_id: UUID, request: DischargeProcessRequest) -> BillingStatement:
    """
    The bill process_discharge would produce, without saving anything.
    """
    allocation = get_allocation(db, allocation_id=allocation_id)
    if allocation.status != AllocationStatus.ACTIVE:
        raise ConflictError(f"Bed allocation is {allocation.status.value}, not active")

    return billing_service.get_billing_statement(
        db,
        allocation_id=allocation.id,
        as_of=request.discharge_date,
        tax_percentage=request.tax_percentage,
        discount_percentage=request.discount_percentage,
        discount_amount=request.discount_amount,
        extra_lines=[
            BillLine(
                category=service.category.value,
                description=service.description,
                quantity=service.quantity,
                unit_rate=service.unit_rate,
            )
            for service in request.additional_services
        ],
    )


def process_discharge(
    db: Session,
    *,
    allocation_id: UUID,
    request: DischargeProcessRequest,
    user_id: UUID | None = None,
) -> tuple[BedAllocation, DischargeSummary, Bill, BillingStatement]:
    """
    Discharge an active allocation with full billing reconciliation.

    Runs as one transaction on a locked allocation row; any failure rolls
    everything back. A second discharge of the same allocation fails with a
    conflict because the allocation is no longer active.
    """
    try:
        # 1. lock and validate
        allocation = get_allocation(db, allocation_id=allocation_id, lock=True)
        if allocation.status != AllocationStatus.ACTIVE:
            raise ConflictError(f"Bed allocation is {allocation.status.value}, not active")

        discharge_at = as_utc(request.discharge_date) if request.discharge_date else utc_now()
        if discharge_at < as_utc(allocation.admission_date):
            raise ValueError("Discharge date cannot be before admission date")

        summary = db.query(DischargeSummary).filter(DischargeSummary.bed_allocation_id == allocation.id).first()
        if request.summary is not None and summary is not None and summary.status == SummaryStatus.FINAL:
            raise ConflictError("Discharge summary is final and can no longer be edited")

        # 2-3. extra services join the recorded IP charges
        for service in request.additional_services:
            billing_service.add_charge(
                db,
                allocation_id=allocation.id,
                payload=ChargeCreate(
                    category=service.category,
                    description=service.description,
                    quantity=service.quantity,
                    unit_rate=service.unit_rate,
                    service_date=discharge_at,
                ),
                user_id=user_id,
                commit=False,
            )

        # 4. totals with tax and discount
        adjustments = {
            "as_of": discharge_at,
            "tax_percentage": request.tax_percentage,
            "discount_percentage": request.discount_percentage,
            "discount_amount": request.discount_amount,
        }
        statement = billing_service.get_billing_statement(db, allocation_id=allocation.id, **adjustments)

        # 5. final payments
        if request.payments:
            billing_service.add_receipts(
                db,
                allocation,
                request.payments,
                amount_due=statement.pending_amount,
                user_id=user_id,
            )
            statement = billing_service.get_billing_statement(db, allocation_id=allocation.id, **adjustments)

        # 8. close the stay (before the summary snapshot picks up the discharge date)
        release_allocation(db, allocation, status=AllocationStatus.DISCHARGED, discharge_date=discharge_at)
        allocation.total_charges = statement.net_amount
        patient = db.query(Patient).filter(Patient.id == allocation.patient_id).first()
        if patient:
            patient.is_admitted = False

        # 6. summary billing fields and payment breakdown
        summary = _get_or_create_summary(db, allocation, user_id)
        if request.summary is not None:
            _apply_clinical_fields(summary, request.summary)
        if request.finalize_summary and summary.status != SummaryStatus.FINAL:
            _finalize(summary)
        _apply_statement(summary, statement)

        # 7. denormalized bill
        bill = _upsert_bill(db, allocation, statement)

        # 9. one commit
        db.commit()
    except (SQLAlchemyError, ValueError, NotFoundError, ConflictError):
        db.rollback()
        raise

    logger.info(
        "Discharged %s: net %s, paid %s, pending %s",
        allocation.ip_number,
        statement.net_amount,
        statement.paid_amount,
        statement.pending_amount,
    )
    invalidate_occupancy_cache()

    db.refresh(summary)
    db.refresh(bill)
    return get_allocation(db, allocation_id=allocation_id), summary, bill, statement


def _resync(
    db: Session, allocation: BedAllocation, user_id: UUID | None
) -> tuple[DischargeSummary, Bill, BillingStatement]:
    statement = billing_service.get_billing_statement(db, allocation_id=allocation.id)
    summary = _get_or_create_summary(db, allocation, user_id)
    _apply_statement(summary, statement)
    bill = _upsert_bill(db, allocation, statement)
    allocation.total_charges = statement.net_amount
    db.flush()
    return summary, bill, statement


def sync_billing(
    db: Session,
    *,
    allocation_id: UUID,
    user_id: UUID | None = None,
    commit: bool = True,
) -> tuple[DischargeSummary, Bill, BillingStatement]:
    """
    Recompute the statement of a discharged allocation and refresh the
    summary billing fields and the bill row (after late charges or payments).

    With commit=False the rows are only flushed; the caller owns the
    transaction and rolls back if the statement cannot be built.
    """
    allocation = get_allocation(db, allocation_id=allocation_id)
    if allocation.status != AllocationStatus.DISCHARGED:
        raise ConflictError("Billing is synced for discharged allocations only")

    if not commit:
        return _resync(db, allocation, user_id)

    try:
        summary, bill, statement = _resync(db, allocation, user_id)
        db.commit()
    except (SQLAlchemyError, ValueError):
        db.rollback()
        raise
    invalidate_occupancy_cache()

    db.refresh(summary)
    db.refresh(bill)
    logger.info("Synced billing for %s: pending %s", allocation.ip_number, statement.pending_amount)
    return summary, bill, statement


def render_discharge_pdf(db: Session, *, allocation_id: UUID) -> BytesIO:
    from ipd.utils.discharge_pdf import generate_discharge_summary_pdf

    summary = get_discharge_summary(db, allocation_id=allocation_id)
    bill = db.query(Bill).filter(Bill.bed_allocation_id == allocation_id).first()
    settings = get_settings()

    data = {field: getattr(summary, field) for field in CLINICAL_FIELDS}
    data.update(
        {
            "uhid": summary.uhid,
            "patient_name": summary.patient_name,
            "gender": summary.gender,
            "age": summary.age,
            "address": summary.address,
            "ip_number": summary.ip_number,
            "admission_date": summary.admission_date,
            "discharge_date": summary.discharge_date,
            "consultant_name": summary.consultant_name,
            "status": summary.status.value,
            "bed_days": summary.bed_days,
            "gross_amount": summary.gross_amount,
            "tax_amount": summary.tax_amount,
            "discount_amount": summary.discount_amount,
            "net_amount": summary.net_amount,
            "paid_amount": summary.paid_amount,
            "pending_amount": summary.pending_amount,
            "payment_splits": summary.payment_splits or {},
            "bill_number": bill.bill_number if bill else None,
            "items": [
                {
                    "description": item.description,
                    "quantity": item.quantity,
                    "unit_rate": item.unit_rate,
                    "amount": item.amount,
                }
                for item in (bill.items if bill else [])
            ],
        }
    )
    return generate_discharge_summary_pdf(
        data,
        hospital_name=settings.hospital_name,
        hospital_address=settings.hospital_address,
        hospital_phone=settings.hospital_phone,
    )
