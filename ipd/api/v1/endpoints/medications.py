# ipd/api/v1/endpoints/medications.py
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ipd.api.v1.endpoints.auth import get_current_user
from ipd.api.v1.errors import service_errors
from ipd.core.database import get_db
from ipd.dependencies.authz import require_roles
from ipd.models.user import RoleName, User
from ipd.schemas.medication import MedicationCreate, MedicationResponse
from ipd.services import medication_service

router = APIRouter()


@router.get("", response_model=list[MedicationResponse])
def list_medications(
    search: Optional[str] = Query(None, description="Name or generic name"),
    include_inactive: bool = Query(False),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[MedicationResponse]:
    medications = medication_service.list_medications(db, search=search, include_inactive=include_inactive)
    return [MedicationResponse.model_validate(m) for m in medications]


@router.post(
    "",
    response_model=MedicationResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_medication(
    payload: MedicationCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles([RoleName.ADMIN, RoleName.PHARMACIST])),
) -> MedicationResponse:
    with service_errors():
        medication = medication_service.create_medication(db, payload=payload)
    return MedicationResponse.model_validate(medication)


@router.get("/{medication_id}", response_model=MedicationResponse)
def get_medication(
    medication_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MedicationResponse:
    with service_errors():
        medication = medication_service.get_medication(db, medication_id=medication_id)
    return MedicationResponse.model_validate(medication)
