# ipd/api/v1/endpoints/allocations.py
import logging
from decimal import Decimal
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ipd.api.v1.endpoints.auth import get_current_user
from ipd.api.v1.errors import service_errors
from ipd.core.database import get_db
from ipd.dependencies.authz import BILLING_ROLES, NURSING_ROLES, require_roles
from ipd.models.bed_allocation import AllocationStatus, BedAllocation
from ipd.models.user import User
from ipd.schemas.bed_allocation import (
    AdvancePaymentRequest,
    BedAllocationCreate,
    BedAllocationResponse,
    BedDischargeRequest,
    BedTransferRequest,
)
from ipd.services import bed_allocation_service

logger = logging.getLogger(__name__)
router = APIRouter()


def allocation_to_response(allocation: BedAllocation) -> BedAllocationResponse:
    response = BedAllocationResponse.model_validate(allocation)
    if allocation.patient:
        response.patient_name = allocation.patient.name
        response.uhid = allocation.patient.uhid
    if allocation.bed:
        response.bed_number = allocation.bed.bed_number
    if allocation.doctor:
        response.doctor_name = allocation.doctor.full_name
    return response


@router.post(
    "",
    response_model=BedAllocationResponse,
    status_code=status.HTTP_201_CREATED,
)
def allocate_bed(
    payload: BedAllocationCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(NURSING_ROLES)),
) -> BedAllocationResponse:
    """
    Admit a patient to an available bed.

    Rules:
    - Bed must be available, patient must not have an active allocation
    - IP number and allocation code are generated
    - Bed becomes occupied, patient is flagged admitted
    """
    with service_errors():
        allocation = bed_allocation_service.allocate_bed(db, payload=payload, allocated_by=current_user.id)
    return allocation_to_response(allocation)


@router.get("", response_model=list[BedAllocationResponse])
def list_allocations(
    status_filter: Optional[AllocationStatus] = Query(None, alias="status"),
    patient_id: Optional[UUID] = Query(None),
    search: Optional[str] = Query(None, description="Patient name, UHID, IP number or bed number"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[BedAllocationResponse]:
    allocations = bed_allocation_service.list_allocations(
        db,
        status=status_filter,
        patient_id=patient_id,
        search=search,
        skip=skip,
        limit=limit,
    )
    return [allocation_to_response(a) for a in allocations]


@router.get("/{allocation_id}", response_model=BedAllocationResponse)
def get_allocation(
    allocation_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> BedAllocationResponse:
    with service_errors():
        allocation = bed_allocation_service.get_allocation(db, allocation_id=allocation_id)
    return allocation_to_response(allocation)


@router.post("/{allocation_id}/discharge", response_model=BedAllocationResponse)
def discharge_bed(
    allocation_id: UUID,
    payload: BedDischargeRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(NURSING_ROLES)),
) -> BedAllocationResponse:
    """
    Release the bed without billing reconciliation.
    Use /discharge/{allocation_id}/process for a billed discharge.
    """
    with service_errors():
        allocation = bed_allocation_service.discharge_bed(
            db, allocation_id=allocation_id, discharge_date=payload.discharge_date
        )
    return allocation_to_response(allocation)


@router.post("/{allocation_id}/transfer", response_model=BedAllocationResponse)
def transfer_bed(
    allocation_id: UUID,
    payload: BedTransferRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(NURSING_ROLES)),
) -> BedAllocationResponse:
    """
    Move the patient to another available bed. Returns the new allocation,
    which keeps the IP number of the stay.
    """
    with service_errors():
        allocation = bed_allocation_service.transfer_bed(
            db,
            allocation_id=allocation_id,
            new_bed_id=payload.new_bed_id,
            reason=payload.reason,
            transferred_by=current_user.id,
        )
    return allocation_to_response(allocation)


@router.post("/{allocation_id}/advance", response_model=BedAllocationResponse)
def record_advance(
    allocation_id: UUID,
    payload: AdvancePaymentRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(BILLING_ROLES)),
) -> BedAllocationResponse:
    with service_errors():
        allocation = bed_allocation_service.record_advance(
            db, allocation_id=allocation_id, amount=Decimal(str(payload.amount))
        )
    logger.info("Advance %s recorded on %s by %s", payload.amount, allocation.ip_number, current_user.email)
    return allocation_to_response(allocation)
