# ipd/api/v1/endpoints/billing.py
import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from ipd.api.v1.endpoints.auth import get_current_user
from ipd.api.v1.errors import service_errors
from ipd.core.database import get_db
from ipd.dependencies.authz import BILLING_ROLES, require_roles
from ipd.models.billing import ChargeCategory
from ipd.models.user import RoleName, User
from ipd.schemas.billing import (
    BillingStatement,
    BillResponse,
    ChargeCreate,
    ChargeResponse,
    PaymentReceiptResponse,
    PaymentRequest,
)
from ipd.services import billing_service

logger = logging.getLogger(__name__)
router = APIRouter()

CHARGE_ROLES = (RoleName.ADMIN, RoleName.BILLING, RoleName.DOCTOR, RoleName.NURSE, RoleName.PHARMACIST)


@router.get("/{allocation_id}/statement", response_model=BillingStatement)
def get_billing_statement(
    allocation_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> BillingStatement:
    """
    Running bill of the stay: bed-days up to now (or the discharge time),
    consultation, recorded charges and payments.
    """
    with service_errors():
        return billing_service.get_billing_statement(db, allocation_id=allocation_id)


@router.post(
    "/{allocation_id}/charges",
    response_model=ChargeResponse,
    status_code=status.HTTP_201_CREATED,
)
def add_charge(
    allocation_id: UUID,
    payload: ChargeCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(CHARGE_ROLES)),
) -> ChargeResponse:
    with service_errors():
        charge = billing_service.add_charge(db, allocation_id=allocation_id, payload=payload, user_id=current_user.id)
    return ChargeResponse.model_validate(charge)


@router.get("/{allocation_id}/charges", response_model=list[ChargeResponse])
def list_charges(
    allocation_id: UUID,
    category: Optional[ChargeCategory] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[ChargeResponse]:
    charges = billing_service.list_charges(db, allocation_id=allocation_id, category=category)
    return [ChargeResponse.model_validate(c) for c in charges]


@router.delete("/charges/{charge_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_charge(
    charge_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(BILLING_ROLES)),
) -> Response:
    with service_errors():
        billing_service.delete_charge(db, charge_id=charge_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{allocation_id}/payments",
    response_model=list[PaymentReceiptResponse],
    status_code=status.HTTP_201_CREATED,
)
def record_payment(
    allocation_id: UUID,
    payload: PaymentRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(BILLING_ROLES)),
) -> list[PaymentReceiptResponse]:
    """
    Record one receipt per split. The total cannot exceed the pending amount.
    """
    with service_errors():
        receipts = billing_service.record_payment(
            db, allocation_id=allocation_id, splits=payload.splits, user_id=current_user.id
        )
    return [PaymentReceiptResponse.model_validate(r) for r in receipts]


@router.get("/{allocation_id}/payments", response_model=list[PaymentReceiptResponse])
def list_payments(
    allocation_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[PaymentReceiptResponse]:
    receipts = billing_service.list_receipts(db, allocation_id=allocation_id)
    return [PaymentReceiptResponse.model_validate(r) for r in receipts]


@router.get("/{allocation_id}/bill", response_model=BillResponse)
def get_bill(
    allocation_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> BillResponse:
    """
    The final bill, written when the allocation is discharged with billing.
    """
    bill = billing_service.get_bill(db, allocation_id=allocation_id)
    if not bill:
        raise HTTPException(status_code=404, detail="No bill for this allocation yet")
    return BillResponse.model_validate(bill)
