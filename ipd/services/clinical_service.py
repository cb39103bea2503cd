# ipd/services/clinical_service.py
"""
Clinical documentation for an IP stay: daily case sheets, progress notes,
doctor orders, nurse records and the combined clinical timeline.
"""
import logging
from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ipd.models.clinical_note import IPCaseSheet, IPDoctorOrder, IPNurseRecord, IPProgressNote
from ipd.models.medication_administration import AdministrationStatus, MedicationAdministration
from ipd.models.prescription import Prescription
from ipd.models.vital import IPVital
from ipd.schemas.clinical import (
    CaseSheetUpsert,
    DoctorOrderCreate,
    NurseRecordCreate,
    ProgressNoteCreate,
    TimelineDay,
    TimelineEvent,
)
from ipd.services.bed_allocation_service import get_active_allocation, get_allocation
from ipd.utils.datetime_utils import as_utc, date_key, day_bounds, utc_now, utc_today

logger = logging.getLogger(__name__)


def _commit(db: Session) -> None:
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


# ---------------------------------------------------------------------------
# Case sheets
# ---------------------------------------------------------------------------


def get_case_sheet(db: Session, *, allocation_id: UUID, day: date | None = None) -> IPCaseSheet | None:
    get_allocation(db, allocation_id=allocation_id)
    return (
        db.query(IPCaseSheet)
        .filter(
            IPCaseSheet.bed_allocation_id == allocation_id,
            IPCaseSheet.case_sheet_date == (day or utc_today()),
        )
        .first()
    )


def get_latest_case_sheet(db: Session, *, allocation_id: UUID) -> IPCaseSheet | None:
    return (
        db.query(IPCaseSheet)
        .filter(IPCaseSheet.bed_allocation_id == allocation_id)
        .order_by(IPCaseSheet.case_sheet_date.desc())
        .first()
    )


def upsert_case_sheet(
    db: Session,
    *,
    allocation_id: UUID,
    payload: CaseSheetUpsert,
    user_id: UUID | None = None,
) -> IPCaseSheet:
    """
    Update the case sheet for the given date, or create it.

    On update every field sent is written (blank clears it).
    On insert blank fields are left out.
    """
    allocation = get_active_allocation(db, allocation_id=allocation_id)
    day = payload.case_sheet_date or utc_today()
    fields = payload.model_dump(exclude={"case_sheet_date"}, exclude_unset=True)

    sheet = (
        db.query(IPCaseSheet)
        .filter(
            IPCaseSheet.bed_allocation_id == allocation.id,
            IPCaseSheet.case_sheet_date == day,
        )
        .first()
    )

    if sheet:
        for field, value in fields.items():
            setattr(sheet, field, None if _is_blank(value) else value)
        sheet.updated_by = user_id
    else:
        sheet = IPCaseSheet(
            bed_allocation_id=allocation.id,
            patient_id=allocation.patient_id,
            case_sheet_date=day,
            created_by=user_id,
            updated_by=user_id,
            **{field: value for field, value in fields.items() if not _is_blank(value)},
        )
        db.add(sheet)

    _commit(db)
    db.refresh(sheet)
    return sheet


# ---------------------------------------------------------------------------
# Progress notes and doctor orders
# ---------------------------------------------------------------------------


def create_progress_note(
    db: Session,
    *,
    allocation_id: UUID,
    payload: ProgressNoteCreate,
    user_id: UUID | None = None,
) -> IPProgressNote:
    allocation = get_active_allocation(db, allocation_id=allocation_id)
    note = IPProgressNote(
        bed_allocation_id=allocation.id,
        note_date=as_utc(payload.note_date) if payload.note_date else utc_now(),
        content=payload.content.strip(),
        created_by=user_id,
    )
    db.add(note)
    _commit(db)
    db.refresh(note)
    return note


def list_progress_notes(db: Session, *, allocation_id: UUID) -> list[IPProgressNote]:
    return (
        db.query(IPProgressNote)
        .filter(IPProgressNote.bed_allocation_id == allocation_id)
        .order_by(IPProgressNote.note_date.desc())
        .all()
    )


def create_doctor_order(
    db: Session,
    *,
    allocation_id: UUID,
    payload: DoctorOrderCreate,
    user_id: UUID | None = None,
) -> IPDoctorOrder:
    allocation = get_active_allocation(db, allocation_id=allocation_id)
    if all(
        _is_blank(v)
        for v in (payload.assessment, payload.treatment_instructions, payload.investigation_instructions)
    ):
        raise ValueError("Doctor order must contain an assessment or instructions")

    order = IPDoctorOrder(
        bed_allocation_id=allocation.id,
        order_date=as_utc(payload.order_date) if payload.order_date else utc_now(),
        assessment=payload.assessment,
        treatment_instructions=payload.treatment_instructions,
        investigation_instructions=payload.investigation_instructions,
        created_by=user_id,
    )
    db.add(order)
    _commit(db)
    db.refresh(order)
    return order


def list_doctor_orders(db: Session, *, allocation_id: UUID) -> list[IPDoctorOrder]:
    return (
        db.query(IPDoctorOrder)
        .filter(IPDoctorOrder.bed_allocation_id == allocation_id)
        .order_by(IPDoctorOrder.order_date.desc())
        .all()
    )


# ---------------------------------------------------------------------------
# Nurse records
# ---------------------------------------------------------------------------


def create_nurse_record(
    db: Session,
    *,
    allocation_id: UUID,
    payload: NurseRecordCreate,
    user_id: UUID | None = None,
) -> IPNurseRecord:
    allocation = get_active_allocation(db, allocation_id=allocation_id)
    record = IPNurseRecord(
        bed_allocation_id=allocation.id,
        entry_time=as_utc(payload.entry_time) if payload.entry_time else utc_now(),
        remark=payload.remark.strip(),
        created_by=user_id,
    )
    db.add(record)
    _commit(db)
    db.refresh(record)
    return record


def list_nurse_records(
    db: Session,
    *,
    allocation_id: UUID,
    day: date | None = None,
) -> list[IPNurseRecord]:
    query = db.query(IPNurseRecord).filter(IPNurseRecord.bed_allocation_id == allocation_id)
    if day:
        start, end = day_bounds(day)
        query = query.filter(IPNurseRecord.entry_time >= start, IPNurseRecord.entry_time < end)
    return query.order_by(IPNurseRecord.entry_time.desc()).all()


# ---------------------------------------------------------------------------
# Timeline
# ---------------------------------------------------------------------------


def get_clinical_timeline(db: Session, *, allocation_id: UUID) -> list[TimelineDay]:
    """
    Every clinical event of the allocation, newest first, grouped by day.
    """
    allocation = get_allocation(db, allocation_id=allocation_id)
    events: list[TimelineEvent] = []

    for sheet in db.query(IPCaseSheet).filter(IPCaseSheet.bed_allocation_id == allocation.id):
        events.append(
            TimelineEvent(
                type="case_sheet",
                id=sheet.id,
                timestamp=as_utc(sheet.created_at),
                title="Case Sheet",
                subtitle=sheet.provisional_diagnosis,
                details={"case_sheet_date": sheet.case_sheet_date.isoformat()},
            )
        )

    for rx in db.query(Prescription).filter(Prescription.bed_allocation_id == allocation.id):
        events.append(
            TimelineEvent(
                type="prescription",
                id=rx.id,
                timestamp=as_utc(rx.created_at),
                title=f"Prescription {rx.prescription_code}",
                subtitle=f"{len(rx.items)} item(s)",
                details={"medicines": [item.medicine_name for item in rx.items]},
            )
        )

    for order in db.query(IPDoctorOrder).filter(IPDoctorOrder.bed_allocation_id == allocation.id):
        events.append(
            TimelineEvent(
                type="doctor_order",
                id=order.id,
                timestamp=as_utc(order.order_date),
                title="Doctor Order",
                subtitle=order.assessment,
                details={
                    "treatment_instructions": order.treatment_instructions,
                    "investigation_instructions": order.investigation_instructions,
                },
            )
        )

    for record in db.query(IPNurseRecord).filter(IPNurseRecord.bed_allocation_id == allocation.id):
        events.append(
            TimelineEvent(
                type="nurse_record",
                id=record.id,
                timestamp=as_utc(record.entry_time),
                title="Nurse Record",
                subtitle=record.remark,
            )
        )

    for note in db.query(IPProgressNote).filter(IPProgressNote.bed_allocation_id == allocation.id):
        events.append(
            TimelineEvent(
                type="progress_note",
                id=note.id,
                timestamp=as_utc(note.note_date),
                title="Progress Note",
                subtitle=note.content,
            )
        )

    for vital in db.query(IPVital).filter(IPVital.bed_allocation_id == allocation.id):
        readings = {
            name: getattr(vital, name)
            for name in ("temperature", "bp_systolic", "bp_diastolic", "pulse", "respiratory_rate", "spo2")
            if getattr(vital, name) is not None
        }
        events.append(
            TimelineEvent(
                type="vital_sign",
                id=vital.id,
                timestamp=as_utc(vital.recorded_at),
                title="Vitals Recorded",
                details=readings,
            )
        )

    administrations = db.query(MedicationAdministration).filter(
        MedicationAdministration.bed_allocation_id == allocation.id,
        MedicationAdministration.status != AdministrationStatus.PENDING,
    )
    for entry in administrations:
        events.append(
            TimelineEvent(
                type="medication_administration",
                id=entry.id,
                timestamp=as_utc(entry.administered_at or entry.updated_at),
                title=entry.prescription_item.medicine_name if entry.prescription_item else "Medication",
                subtitle=entry.status.value,
                details={"scheduled_time": entry.scheduled_time},
            )
        )

    events.sort(key=lambda e: e.timestamp, reverse=True)

    days: list[TimelineDay] = []
    for event in events:
        key = date_key(event.timestamp)
        if not days or days[-1].date != key:
            days.append(TimelineDay(date=key, events=[]))
        days[-1].events.append(event)
    return days
