# ipd/api/v1/endpoints/beds.py
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from ipd.api.v1.endpoints.auth import get_current_user
from ipd.api.v1.errors import service_errors
from ipd.core.database import get_db
from ipd.dependencies.authz import NURSING_ROLES, require_roles
from ipd.models.bed import BedStatus
from ipd.models.user import RoleName, User
from ipd.schemas.bed import BedCreate, BedResponse, BedStats, BedStatusUpdate
from ipd.services import bed_service

router = APIRouter()


@router.post(
    "",
    response_model=BedResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_bed(
    payload: BedCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles([RoleName.ADMIN])),
) -> BedResponse:
    with service_errors():
        bed = bed_service.create_bed(db, payload=payload)
    return BedResponse.model_validate(bed)


@router.get("", response_model=list[BedResponse])
def list_beds(
    status_filter: Optional[BedStatus] = Query(None, alias="status"),
    bed_type: Optional[str] = Query(None),
    department_ward: Optional[str] = Query(None),
    search: Optional[str] = Query(None, description="Bed or room number"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[BedResponse]:
    beds = bed_service.list_beds(
        db,
        status=status_filter,
        bed_type=bed_type,
        department_ward=department_ward,
        search=search,
    )
    return [BedResponse.model_validate(b) for b in beds]


@router.get("/available", response_model=list[BedResponse])
def list_available_beds(
    bed_type: Optional[str] = Query(None),
    department_ward: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[BedResponse]:
    beds = bed_service.get_available_beds(db, bed_type=bed_type, department_ward=department_ward)
    return [BedResponse.model_validate(b) for b in beds]


@router.get("/stats", response_model=BedStats)
def get_bed_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> BedStats:
    """
    Bed counts per status and occupancy rate (cached for a short TTL).
    """
    return bed_service.get_bed_stats(db)


@router.get("/{bed_id}", response_model=BedResponse)
def get_bed(
    bed_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> BedResponse:
    with service_errors():
        bed = bed_service.get_bed(db, bed_id=bed_id)
    return BedResponse.model_validate(bed)


@router.patch("/{bed_id}/status", response_model=BedResponse)
def update_bed_status(
    bed_id: UUID,
    payload: BedStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(NURSING_ROLES)),
) -> BedResponse:
    """
    Set a bed to available, maintenance or reserved. Occupied is only ever
    set by an allocation.
    """
    with service_errors():
        bed = bed_service.update_bed_status(db, bed_id=bed_id, status=payload.status)
    return BedResponse.model_validate(bed)


@router.delete("/{bed_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_bed(
    bed_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles([RoleName.ADMIN])),
) -> Response:
    with service_errors():
        bed_service.delete_bed(db, bed_id=bed_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
