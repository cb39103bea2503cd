# ipd/services/pharmacy_recommendation_service.py
"""
Pharmacy recommendations for admitted patients.

The pharmacy proposes a standard prophylactic regimen, a doctor approves or
rejects each item and approved items are either dispensed directly (billed
to the stay) or converted into a prescription.
"""
import logging
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ipd.models.bed_allocation import AllocationStatus, BedAllocation
from ipd.models.billing import ChargeCategory
from ipd.models.medication import Medication
from ipd.models.patient import Patient
from ipd.models.pharmacy_recommendation import (
    PharmacyRecommendation,
    RecommendationPriority,
    RecommendationStatus,
)
from ipd.models.prescription import Prescription
from ipd.schemas.billing import ChargeCreate
from ipd.schemas.pharmacy import (
    ConvertToPrescriptionRequest,
    RecommendationDraft,
    RecommendationRequest,
    RecommendationSaveRequest,
)
from ipd.schemas.prescription import PrescriptionCreate, PrescriptionItemCreate
from ipd.services.errors import ConflictError, NotFoundError, PatientNotFoundError
from ipd.utils.datetime_utils import utc_now
from ipd.utils.dosing import calculate_quantity
from ipd.utils.money import to_decimal

logger = logging.getLogger(__name__)


class RecommendationNotFoundError(NotFoundError):
    pass


PROPHYLACTIC_MEDICATIONS = [
    {
        "medication_name": "Vitamin B Complex",
        "dosage": "1 tablet",
        "frequency": "once daily",
        "duration": "7 days",
        "reason": "Nutritional support for hospitalized patients",
    },
    {
        "medication_name": "Pantoprazole",
        "dosage": "40 mg",
        "frequency": "once daily",
        "duration": "hospital stay",
        "reason": "Stress ulcer prophylaxis",
    },
]

_PRIORITY_RANK = {
    RecommendationPriority.HIGH: 0,
    RecommendationPriority.MEDIUM: 1,
    RecommendationPriority.LOW: 2,
}

# status -> statuses it may move to
ALLOWED_TRANSITIONS = {
    RecommendationStatus.PENDING: {RecommendationStatus.APPROVED, RecommendationStatus.REJECTED},
    RecommendationStatus.APPROVED: {RecommendationStatus.DISPENSED, RecommendationStatus.REJECTED},
}


def generate_instructions(medication_name: str, dosage_form: str | None) -> str:
    name = medication_name.lower()
    parts = []
    if "pantoprazole" in name or "omeprazole" in name:
        parts.append("Take before food.")
    elif "metformin" in name:
        parts.append("Take with or after food.")

    form = (dosage_form or "").lower()
    if form == "injection":
        parts.append("For injection use only.")
    elif form == "syrup":
        parts.append("Shake well before use.")

    return " ".join(parts) or "Take as prescribed."


def recommendation_priority(reason: str | None) -> RecommendationPriority:
    reason = (reason or "").lower()
    if "prophylaxis" in reason:
        return RecommendationPriority.LOW
    if "support" in reason:
        return RecommendationPriority.MEDIUM
    return RecommendationPriority.HIGH


def _matches_any(medication: Medication, terms: list[str]) -> bool:
    names = [n.lower() for n in (medication.name, medication.generic_name) if n]
    for term in terms:
        term = term.strip().lower()
        if not term:
            continue
        if any(term in name or name in term for name in names):
            return True
    return False


def _find_catalog_medication(db: Session, name: str) -> Medication | None:
    return (
        db.query(Medication)
        .filter(Medication.name.ilike(f"%{name}%"), Medication.is_active.is_(True))
        .order_by(Medication.name)
        .first()
    )


def generate_recommendations(db: Session, *, request: RecommendationRequest) -> list[RecommendationDraft]:
    """
    Build (but do not save) the standard prophylactic recommendations.

    Each entry is resolved against the catalog; entries not stocked, or that
    the patient is allergic to or already taking, are skipped.
    """
    patient = db.query(Patient).filter(Patient.id == request.patient_id).first()
    if not patient:
        raise PatientNotFoundError("Patient not found")

    allergies = list(request.allergies)
    if patient.allergies:
        allergies.extend(a for a in patient.allergies.split(","))

    drafts: list[RecommendationDraft] = []
    for entry in PROPHYLACTIC_MEDICATIONS:
        medication = _find_catalog_medication(db, entry["medication_name"])
        if not medication:
            logger.debug("%s not in catalog; skipping", entry["medication_name"])
            continue
        if _matches_any(medication, allergies):
            logger.info("Skipping %s for patient %s: allergy", medication.name, patient.uhid)
            continue
        if _matches_any(medication, request.current_medications):
            continue

        drafts.append(
            RecommendationDraft(
                medication_id=medication.id,
                medication_name=medication.name,
                dosage=entry["dosage"],
                frequency=entry["frequency"],
                duration=entry["duration"],
                quantity=calculate_quantity(entry["frequency"], entry["duration"]),
                instructions=generate_instructions(medication.name, medication.dosage_form),
                reason=entry["reason"],
                priority=recommendation_priority(entry["reason"]),
                unit_price=float(to_decimal(medication.selling_price)),
                stock_quantity=medication.stock_quantity,
            )
        )

    drafts.sort(key=lambda d: _PRIORITY_RANK[d.priority])
    return drafts


def save_recommendations(
    db: Session,
    *,
    payload: RecommendationSaveRequest,
    user_id: UUID | None = None,
) -> list[PharmacyRecommendation]:
    if not db.query(Patient.id).filter(Patient.id == payload.patient_id).first():
        raise PatientNotFoundError("Patient not found")

    saved = []
    for draft in payload.recommendations:
        rec = PharmacyRecommendation(
            patient_id=payload.patient_id,
            bed_allocation_id=payload.bed_allocation_id,
            medication_id=draft.medication_id,
            medication_name=draft.medication_name,
            dosage=draft.dosage,
            frequency=draft.frequency,
            duration=draft.duration,
            quantity=draft.quantity,
            instructions=draft.instructions,
            reason=draft.reason,
            priority=draft.priority,
            status=RecommendationStatus.PENDING,
            recommended_by=user_id,
        )
        db.add(rec)
        saved.append(rec)

    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    for rec in saved:
        db.refresh(rec)
    return saved


def list_recommendations(
    db: Session,
    *,
    patient_id: UUID,
    status: RecommendationStatus | None = None,
) -> list[PharmacyRecommendation]:
    query = db.query(PharmacyRecommendation).filter(PharmacyRecommendation.patient_id == patient_id)
    if status:
        query = query.filter(PharmacyRecommendation.status == status)
    return query.order_by(PharmacyRecommendation.created_at.desc()).all()


def _active_allocation_for(db: Session, rec: PharmacyRecommendation) -> BedAllocation | None:
    query = db.query(BedAllocation).filter(BedAllocation.status == AllocationStatus.ACTIVE)
    if rec.bed_allocation_id:
        allocation = query.filter(BedAllocation.id == rec.bed_allocation_id).first()
        if allocation:
            return allocation
    return query.filter(BedAllocation.patient_id == rec.patient_id).first()


def _dispense(db: Session, rec: PharmacyRecommendation, user_id: UUID | None) -> None:
    """
    Take stock and post a pharmacy charge to the patient's stay. Caller commits.
    """
    from ipd.services.billing_service import add_charge  # local import to avoid cycles

    allocation = _active_allocation_for(db, rec)
    if not allocation:
        raise ConflictError("Patient has no active admission to bill the medication to")

    medication = rec.medication
    if medication is None:
        medication = _find_catalog_medication(db, rec.medication_name)
    if medication is None:
        raise ValueError(f"'{rec.medication_name}' is not in the medication catalog")

    if medication.stock_quantity < rec.quantity:
        raise ConflictError(
            f"Insufficient stock for {medication.name}: {medication.stock_quantity} available, {rec.quantity} needed"
        )
    medication.stock_quantity -= rec.quantity

    add_charge(
        db,
        allocation_id=allocation.id,
        payload=ChargeCreate(
            category=ChargeCategory.PHARMACY,
            description=f"{medication.name} x {rec.quantity}",
            quantity=rec.quantity,
            unit_rate=to_decimal(medication.selling_price),
        ),
        user_id=user_id,
        commit=False,
    )
    rec.status = RecommendationStatus.DISPENSED


def update_recommendation_status(
    db: Session,
    *,
    recommendation_id: UUID,
    status: RecommendationStatus,
    notes: str | None = None,
    user_id: UUID | None = None,
) -> PharmacyRecommendation:
    rec = db.query(PharmacyRecommendation).filter(PharmacyRecommendation.id == recommendation_id).first()
    if not rec:
        raise RecommendationNotFoundError("Recommendation not found")

    allowed = ALLOWED_TRANSITIONS.get(rec.status, set())
    if status not in allowed:
        raise ConflictError(f"Cannot change recommendation from {rec.status.value} to {status.value}")

    try:
        if status == RecommendationStatus.DISPENSED:
            _dispense(db, rec, user_id)
        else:
            rec.status = status
            if status == RecommendationStatus.APPROVED:
                rec.approved_by = user_id
                rec.approved_at = utc_now()
        if notes is not None:
            rec.notes = notes
        db.commit()
    except (SQLAlchemyError, ValueError, ConflictError):
        db.rollback()
        raise

    db.refresh(rec)
    return rec


def convert_to_prescription(
    db: Session,
    *,
    payload: ConvertToPrescriptionRequest,
    user_id: UUID | None = None,
) -> Prescription:
    """
    Turn approved recommendations into one prescription on the patient's
    active admission. Every converted recommendation is dispensed.
    """
    from ipd.services.prescription_service import create_prescription  # local import to avoid cycles

    recs = (
        db.query(PharmacyRecommendation)
        .filter(PharmacyRecommendation.id.in_(payload.recommendation_ids))
        .all()
    )
    found = {rec.id for rec in recs}
    missing = [str(i) for i in payload.recommendation_ids if i not in found]
    if missing:
        raise RecommendationNotFoundError(f"Recommendations not found: {', '.join(missing)}")

    for rec in recs:
        if rec.patient_id != payload.patient_id:
            raise ValueError("All recommendations must belong to the patient")
        if rec.status != RecommendationStatus.APPROVED:
            raise ConflictError(f"Recommendation for {rec.medication_name} is {rec.status.value}, not approved")

    allocation = _active_allocation_for(db, recs[0])
    if not allocation:
        raise ConflictError("Patient has no active admission")

    prescription_in = PrescriptionCreate(
        doctor_id=payload.doctor_id,
        items=[
            PrescriptionItemCreate(
                medication_id=rec.medication_id,
                medicine_name=rec.medication_name,
                dosage=rec.dosage,
                frequency=rec.frequency,
                duration=rec.duration,
                instructions=rec.instructions,
                quantity=rec.quantity,
            )
            for rec in recs
        ],
    )

    try:
        prescription = create_prescription(
            db,
            allocation_id=allocation.id,
            doctor_id=payload.doctor_id,
            payload=prescription_in,
            commit=False,
        )
        for rec in recs:
            if rec.bed_allocation_id is None:
                rec.bed_allocation_id = allocation.id
            _dispense(db, rec, user_id)
        db.commit()
    except (SQLAlchemyError, ValueError, NotFoundError, ConflictError):
        db.rollback()
        raise

    db.refresh(prescription)
    logger.info("Converted %d recommendation(s) into %s", len(recs), prescription.prescription_code)
    return prescription
