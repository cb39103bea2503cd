# ipd/api/v1/endpoints/vitals.py
import logging
from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ipd.api.v1.endpoints.auth import get_current_user
from ipd.api.v1.errors import service_errors
from ipd.core.database import get_db
from ipd.dependencies.authz import NURSING_ROLES, require_roles
from ipd.models.user import User
from ipd.schemas.vital import VitalCreate, VitalResponse
from ipd.services import vital_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post(
    "/{allocation_id}",
    response_model=VitalResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_vital(
    allocation_id: UUID,
    payload: VitalCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(NURSING_ROLES)),
) -> VitalResponse:
    """
    Record vitals for an admitted patient.

    Rules:
    - Allocation must be active
    - At least one measurement, each within its clinical range
    - Append-only: no editing past vitals
    - recorded_at defaults to now if not provided
    """
    with service_errors():
        vital = vital_service.add_vital_reading(
            db, allocation_id=allocation_id, recorded_by=current_user.id, payload=payload
        )
    return VitalResponse.model_validate(vital)


@router.get("/{allocation_id}", response_model=list[VitalResponse])
def list_vitals(
    allocation_id: UUID,
    day: Optional[date] = Query(None, alias="date", description="YYYY-MM-DD"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[VitalResponse]:
    """
    Vitals of the allocation, most recent first.
    """
    with service_errors():
        vitals = vital_service.list_vitals(db, allocation_id=allocation_id, day=day)
    return [VitalResponse.model_validate(v) for v in vitals]
