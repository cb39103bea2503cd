# ipd/api/v1/endpoints/clinical.py
"""
Clinical documentation of an allocation: daily case sheets, progress
notes, doctor orders, nurse records and the combined timeline.
"""
from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ipd.api.v1.endpoints.auth import get_current_user
from ipd.api.v1.errors import service_errors
from ipd.core.database import get_db
from ipd.dependencies.authz import CLINICAL_ROLES, NURSING_ROLES, require_roles
from ipd.models.user import User
from ipd.schemas.clinical import (
    CaseSheetResponse,
    CaseSheetUpsert,
    DoctorOrderCreate,
    DoctorOrderResponse,
    NurseRecordCreate,
    NurseRecordResponse,
    ProgressNoteCreate,
    ProgressNoteResponse,
    TimelineDay,
)
from ipd.services import clinical_service
from ipd.services.bed_allocation_service import get_allocation

router = APIRouter()


@router.get("/{allocation_id}/case-sheet", response_model=Optional[CaseSheetResponse])
def get_case_sheet(
    allocation_id: UUID,
    day: Optional[date] = Query(None, alias="date", description="YYYY-MM-DD, defaults to today"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Optional[CaseSheetResponse]:
    """
    Case sheet of the given day, or null when none was written yet.
    """
    with service_errors():
        get_allocation(db, allocation_id=allocation_id)
        sheet = clinical_service.get_case_sheet(db, allocation_id=allocation_id, day=day)
    return CaseSheetResponse.model_validate(sheet) if sheet else None


@router.put("/{allocation_id}/case-sheet", response_model=CaseSheetResponse)
def upsert_case_sheet(
    allocation_id: UUID,
    payload: CaseSheetUpsert,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(CLINICAL_ROLES)),
) -> CaseSheetResponse:
    with service_errors():
        sheet = clinical_service.upsert_case_sheet(
            db, allocation_id=allocation_id, payload=payload, user_id=current_user.id
        )
    return CaseSheetResponse.model_validate(sheet)


@router.post(
    "/{allocation_id}/progress-notes",
    response_model=ProgressNoteResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_progress_note(
    allocation_id: UUID,
    payload: ProgressNoteCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(CLINICAL_ROLES)),
) -> ProgressNoteResponse:
    with service_errors():
        note = clinical_service.create_progress_note(
            db, allocation_id=allocation_id, payload=payload, user_id=current_user.id
        )
    return ProgressNoteResponse.model_validate(note)


@router.get("/{allocation_id}/progress-notes", response_model=list[ProgressNoteResponse])
def list_progress_notes(
    allocation_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[ProgressNoteResponse]:
    with service_errors():
        notes = clinical_service.list_progress_notes(db, allocation_id=allocation_id)
    return [ProgressNoteResponse.model_validate(n) for n in notes]


@router.post(
    "/{allocation_id}/doctor-orders",
    response_model=DoctorOrderResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_doctor_order(
    allocation_id: UUID,
    payload: DoctorOrderCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(CLINICAL_ROLES)),
) -> DoctorOrderResponse:
    with service_errors():
        order = clinical_service.create_doctor_order(
            db, allocation_id=allocation_id, payload=payload, user_id=current_user.id
        )
    return DoctorOrderResponse.model_validate(order)


@router.get("/{allocation_id}/doctor-orders", response_model=list[DoctorOrderResponse])
def list_doctor_orders(
    allocation_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[DoctorOrderResponse]:
    with service_errors():
        orders = clinical_service.list_doctor_orders(db, allocation_id=allocation_id)
    return [DoctorOrderResponse.model_validate(o) for o in orders]


@router.post(
    "/{allocation_id}/nurse-records",
    response_model=NurseRecordResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_nurse_record(
    allocation_id: UUID,
    payload: NurseRecordCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(NURSING_ROLES)),
) -> NurseRecordResponse:
    with service_errors():
        record = clinical_service.create_nurse_record(
            db, allocation_id=allocation_id, payload=payload, user_id=current_user.id
        )
    return NurseRecordResponse.model_validate(record)


@router.get("/{allocation_id}/nurse-records", response_model=list[NurseRecordResponse])
def list_nurse_records(
    allocation_id: UUID,
    day: Optional[date] = Query(None, alias="date", description="YYYY-MM-DD"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[NurseRecordResponse]:
    with service_errors():
        records = clinical_service.list_nurse_records(db, allocation_id=allocation_id, day=day)
    return [NurseRecordResponse.model_validate(r) for r in records]


@router.get("/{allocation_id}/timeline", response_model=list[TimelineDay])
def get_clinical_timeline(
    allocation_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[TimelineDay]:
    """
    Every clinical event of the stay, newest first, grouped by date.
    """
    with service_errors():
        return clinical_service.get_clinical_timeline(db, allocation_id=allocation_id)
