# ipd/services/prescription_service.py
from __future__ import annotations

import logging
from datetime import date, timedelta
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ipd.models.medication_administration import AdministrationStatus, MedicationAdministration
from ipd.models.prescription import Prescription, PrescriptionItem, PrescriptionStatus
from ipd.schemas.prescription import PrescriptionCreate
from ipd.services.bed_allocation_service import get_active_allocation, get_allocation
from ipd.services.errors import ConflictError, NotFoundError
from ipd.services.medication_service import get_medication
from ipd.utils.datetime_utils import as_utc, utc_now, utc_today
from ipd.utils.dosing import calculate_quantity, duration_days, schedule_slots
from ipd.utils.id_generators import generate_prescription_code

logger = logging.getLogger(__name__)


class PrescriptionNotFoundError(NotFoundError):
    pass


class AdministrationNotFoundError(NotFoundError):
    pass


def create_prescription(
    db: Session,
    *,
    allocation_id: UUID,
    doctor_id: UUID | None,
    payload: PrescriptionCreate,
    commit: bool = True,
) -> Prescription:
    """
    Create an IP prescription and its items for an active allocation.

    Items linked to the catalog take their name from it; free-text items
    must carry a medicine_name. Missing quantities are derived from
    frequency x duration.
    """
    allocation = get_active_allocation(db, allocation_id=allocation_id)

    prescription = Prescription(
        prescription_code=generate_prescription_code(db),
        patient_id=allocation.patient_id,
        bed_allocation_id=allocation.id,
        doctor_id=doctor_id or allocation.doctor_id,
        status=PrescriptionStatus.ACTIVE,
    )

    try:
        db.add(prescription)
        db.flush()  # assigns prescription.id

        for item_in in payload.items:
            medicine_name = (item_in.medicine_name or "").strip()
            if item_in.medication_id:
                medication = get_medication(db, medication_id=item_in.medication_id)
                medicine_name = medication.name
            if not medicine_name:
                raise ValueError("Each item needs a medication_id or a medicine_name")

            quantity = item_in.quantity
            if quantity is None:
                quantity = calculate_quantity(item_in.frequency, item_in.duration)

            db.add(
                PrescriptionItem(
                    prescription_id=prescription.id,
                    medication_id=item_in.medication_id,
                    medicine_name=medicine_name,
                    dosage=item_in.dosage,
                    frequency=item_in.frequency,
                    duration=item_in.duration,
                    instructions=item_in.instructions,
                    quantity=quantity,
                )
            )

        if commit:
            db.commit()
        else:
            db.flush()
    except (SQLAlchemyError, ValueError, NotFoundError):
        db.rollback()
        raise

    if commit:
        db.refresh(prescription)
    logger.info("Created prescription %s for allocation %s", prescription.prescription_code, allocation.id)
    return prescription


def get_prescription(db: Session, *, prescription_id: UUID) -> Prescription:
    prescription = (
        db.query(Prescription)
        .options(joinedload(Prescription.items))
        .filter(Prescription.id == prescription_id)
        .first()
    )
    if not prescription:
        raise PrescriptionNotFoundError("Prescription not found")
    return prescription


def list_prescriptions(db: Session, *, allocation_id: UUID) -> list[Prescription]:
    return (
        db.query(Prescription)
        .filter(Prescription.bed_allocation_id == allocation_id)
        .order_by(Prescription.created_at.desc())
        .all()
    )


def update_prescription_status(db: Session, *, prescription_id: UUID, status: PrescriptionStatus) -> Prescription:
    prescription = get_prescription(db, prescription_id=prescription_id)
    if prescription.status != PrescriptionStatus.ACTIVE:
        raise ConflictError(f"Prescription is already {prescription.status.value}")
    prescription.status = status
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(prescription)
    return prescription


# ---------------------------------------------------------------------------
# Medication administration
# ---------------------------------------------------------------------------


def _item_runs_on(item: PrescriptionItem, prescribed_on: date, day: date) -> bool:
    if day < prescribed_on:
        return False
    days = duration_days(item.duration)
    if days is None or "hospital stay" in (item.duration or "").lower():
        return True
    return day < prescribed_on + timedelta(days=days)


def build_medication_schedule(
    db: Session,
    *,
    allocation_id: UUID,
    day: date | None = None,
) -> list[MedicationAdministration]:
    """
    Return the day's medication checklist, creating a `pending` row for
    every scheduled slot of every active prescription item that has none yet.
    """
    allocation = get_allocation(db, allocation_id=allocation_id)
    day = day or utc_today()

    prescriptions = (
        db.query(Prescription)
        .filter(
            Prescription.bed_allocation_id == allocation.id,
            Prescription.status == PrescriptionStatus.ACTIVE,
        )
        .all()
    )

    existing = {
        (row.prescription_item_id, row.scheduled_time)
        for row in db.query(MedicationAdministration).filter(
            MedicationAdministration.bed_allocation_id == allocation.id,
            MedicationAdministration.administration_date == day,
        )
    }

    created = 0
    for prescription in prescriptions:
        prescribed_on = as_utc(prescription.created_at).date()
        for item in prescription.items:
            if not _item_runs_on(item, prescribed_on, day):
                continue
            for slot in schedule_slots(item.frequency):
                if (item.id, slot) in existing:
                    continue
                db.add(
                    MedicationAdministration(
                        prescription_item_id=item.id,
                        bed_allocation_id=allocation.id,
                        administration_date=day,
                        scheduled_time=slot,
                        status=AdministrationStatus.PENDING,
                    )
                )
                existing.add((item.id, slot))
                created += 1

    if created:
        try:
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        logger.debug("Scheduled %d administrations for allocation %s on %s", created, allocation.id, day)

    return (
        db.query(MedicationAdministration)
        .options(joinedload(MedicationAdministration.prescription_item))
        .filter(
            MedicationAdministration.bed_allocation_id == allocation.id,
            MedicationAdministration.administration_date == day,
        )
        .order_by(MedicationAdministration.scheduled_time)
        .all()
    )


def record_administration(
    db: Session,
    *,
    administration_id: UUID,
    status: AdministrationStatus,
    notes: str | None = None,
    user_id: UUID | None = None,
) -> MedicationAdministration:
    """
    Record the outcome of a scheduled dose. Only pending or delayed doses can
    be updated; `administered` stamps the time and the nurse.
    """
    entry = db.query(MedicationAdministration).filter(MedicationAdministration.id == administration_id).first()
    if not entry:
        raise AdministrationNotFoundError("Medication administration entry not found")

    get_active_allocation(db, allocation_id=entry.bed_allocation_id)

    if entry.status not in (AdministrationStatus.PENDING, AdministrationStatus.DELAYED):
        raise ConflictError(f"Dose already marked {entry.status.value}")
    if status == AdministrationStatus.PENDING:
        raise ValueError("Choose administered, skipped, refused or delayed")

    entry.status = status
    entry.notes = notes
    if status == AdministrationStatus.ADMINISTERED:
        entry.administered_at = utc_now()
        entry.administered_by = user_id

    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(entry)
    return entry
