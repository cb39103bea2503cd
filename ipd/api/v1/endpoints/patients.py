# ipd/api/v1/endpoints/patients.py
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ipd.api.v1.endpoints.allocations import allocation_to_response
from ipd.api.v1.endpoints.auth import get_current_user
from ipd.api.v1.errors import service_errors
from ipd.core.database import get_db
from ipd.dependencies.authz import NURSING_ROLES, require_roles
from ipd.models.pharmacy_recommendation import RecommendationStatus
from ipd.models.user import User
from ipd.schemas.bed_allocation import BedAllocationResponse
from ipd.schemas.patient import PatientCreate, PatientResponse, PatientUpdate
from ipd.schemas.pharmacy import RecommendationResponse
from ipd.services import bed_allocation_service, patient_service, pharmacy_recommendation_service

router = APIRouter()


@router.post(
    "",
    response_model=PatientResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_patient(
    payload: PatientCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(NURSING_ROLES)),
) -> PatientResponse:
    """
    Register a patient. A UHID is assigned automatically.
    """
    with service_errors():
        patient = patient_service.register_patient(db, payload=payload)
    return PatientResponse.model_validate(patient)


@router.get("", response_model=list[PatientResponse])
def list_patients(
    search: Optional[str] = Query(None, description="Name, UHID or phone"),
    is_admitted: Optional[bool] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[PatientResponse]:
    patients = patient_service.list_patients(
        db, search=search, is_admitted=is_admitted, skip=skip, limit=limit
    )
    return [PatientResponse.model_validate(p) for p in patients]


@router.get("/{patient_id}", response_model=PatientResponse)
def get_patient(
    patient_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> PatientResponse:
    with service_errors():
        patient = patient_service.get_patient(db, patient_id=patient_id)
    return PatientResponse.model_validate(patient)


@router.patch("/{patient_id}", response_model=PatientResponse)
def update_patient(
    patient_id: UUID,
    payload: PatientUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(NURSING_ROLES)),
) -> PatientResponse:
    with service_errors():
        patient = patient_service.update_patient(db, patient_id=patient_id, payload=payload)
    return PatientResponse.model_validate(patient)


@router.get("/{patient_id}/bed-history", response_model=list[BedAllocationResponse])
def get_patient_bed_history(
    patient_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[BedAllocationResponse]:
    """
    Every allocation of the patient (admissions and transfer legs), newest first.
    """
    with service_errors():
        patient_service.get_patient(db, patient_id=patient_id)
        allocations = bed_allocation_service.get_patient_bed_history(db, patient_id=patient_id)
    return [allocation_to_response(a) for a in allocations]


@router.get("/{patient_id}/recommendations", response_model=list[RecommendationResponse])
def list_patient_recommendations(
    patient_id: UUID,
    status_filter: Optional[RecommendationStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[RecommendationResponse]:
    recs = pharmacy_recommendation_service.list_recommendations(db, patient_id=patient_id, status=status_filter)
    return [RecommendationResponse.model_validate(r) for r in recs]
