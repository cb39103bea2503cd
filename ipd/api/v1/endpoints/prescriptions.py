# ipd/api/v1/endpoints/prescriptions.py
import logging
from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ipd.api.v1.endpoints.auth import get_current_user
from ipd.api.v1.errors import service_errors
from ipd.core.database import get_db
from ipd.dependencies.authz import CLINICAL_ROLES, NURSING_ROLES, require_roles
from ipd.models.medication_administration import MedicationAdministration
from ipd.models.user import RoleName, User
from ipd.schemas.prescription import (
    AdministrationEntry,
    AdministrationUpdate,
    PrescriptionCreate,
    PrescriptionResponse,
    PrescriptionStatusUpdate,
)
from ipd.services import prescription_service

logger = logging.getLogger(__name__)
router = APIRouter()


def _administration_entry(entry: MedicationAdministration) -> AdministrationEntry:
    response = AdministrationEntry.model_validate(entry)
    item = entry.prescription_item
    if item:
        response.medicine_name = item.medicine_name
        response.dosage = item.dosage
        response.frequency = item.frequency
    return response


@router.post(
    "/allocation/{allocation_id}",
    response_model=PrescriptionResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_prescription(
    allocation_id: UUID,
    payload: PrescriptionCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(CLINICAL_ROLES)),
) -> PrescriptionResponse:
    """
    Prescribe for an admitted patient.

    The prescribing doctor is payload.doctor_id, else the current user when
    they are a doctor, else the attending doctor of the allocation.
    """
    doctor_id = payload.doctor_id
    if doctor_id is None and current_user.role == RoleName.DOCTOR:
        doctor_id = current_user.id

    with service_errors():
        prescription = prescription_service.create_prescription(
            db, allocation_id=allocation_id, doctor_id=doctor_id, payload=payload
        )
    return PrescriptionResponse.model_validate(prescription)


@router.get("/allocation/{allocation_id}", response_model=list[PrescriptionResponse])
def list_prescriptions(
    allocation_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[PrescriptionResponse]:
    prescriptions = prescription_service.list_prescriptions(db, allocation_id=allocation_id)
    return [PrescriptionResponse.model_validate(p) for p in prescriptions]


@router.get("/allocation/{allocation_id}/schedule", response_model=list[AdministrationEntry])
def get_medication_schedule(
    allocation_id: UUID,
    day: Optional[date] = Query(None, alias="date", description="YYYY-MM-DD, defaults to today"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[AdministrationEntry]:
    """
    The day's medication checklist. Missing pending doses for active
    prescription items are created on first read.
    """
    with service_errors():
        entries = prescription_service.build_medication_schedule(db, allocation_id=allocation_id, day=day)
    return [_administration_entry(e) for e in entries]


@router.patch("/administrations/{administration_id}", response_model=AdministrationEntry)
def record_administration(
    administration_id: UUID,
    payload: AdministrationUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(NURSING_ROLES)),
) -> AdministrationEntry:
    with service_errors():
        entry = prescription_service.record_administration(
            db,
            administration_id=administration_id,
            status=payload.status,
            notes=payload.notes,
            user_id=current_user.id,
        )
    return _administration_entry(entry)


@router.get("/{prescription_id}", response_model=PrescriptionResponse)
def get_prescription(
    prescription_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> PrescriptionResponse:
    with service_errors():
        prescription = prescription_service.get_prescription(db, prescription_id=prescription_id)
    return PrescriptionResponse.model_validate(prescription)


@router.patch("/{prescription_id}/status", response_model=PrescriptionResponse)
def update_prescription_status(
    prescription_id: UUID,
    payload: PrescriptionStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(CLINICAL_ROLES)),
) -> PrescriptionResponse:
    """
    Complete or cancel an active prescription. Its items drop off the
    medication schedule from then on.
    """
    with service_errors():
        prescription = prescription_service.update_prescription_status(
            db, prescription_id=prescription_id, status=payload.status
        )
    return PrescriptionResponse.model_validate(prescription)
