# ipd/api/v1/endpoints/discharge.py
import logging
from uuid import UUID

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from ipd.api.v1.endpoints.allocations import allocation_to_response
from ipd.api.v1.endpoints.auth import get_current_user
from ipd.api.v1.errors import service_errors
from ipd.core.database import get_db
from ipd.dependencies.authz import BILLING_ROLES, CLINICAL_ROLES, require_roles
from ipd.models.user import RoleName, User
from ipd.schemas.billing import BillingStatement, BillResponse
from ipd.schemas.discharge import (
    DischargeProcessRequest,
    DischargeResult,
    DischargeSummaryPrefill,
    DischargeSummaryResponse,
    DischargeSummarySave,
)
from ipd.services import discharge_service

logger = logging.getLogger(__name__)
router = APIRouter()

DISCHARGE_ROLES = (RoleName.ADMIN, RoleName.DOCTOR, RoleName.BILLING)


@router.get("/{allocation_id}/summary", response_model=DischargeSummaryResponse)
def get_discharge_summary(
    allocation_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> DischargeSummaryResponse:
    with service_errors():
        summary = discharge_service.get_discharge_summary(db, allocation_id=allocation_id)
    return DischargeSummaryResponse.model_validate(summary)


@router.get("/{allocation_id}/summary/prefill", response_model=DischargeSummaryPrefill)
def prefill_discharge_summary(
    allocation_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> DischargeSummaryPrefill:
    """
    Suggested summary values from the stay's records. Nothing is saved.
    """
    with service_errors():
        return discharge_service.prefill_discharge_summary(db, allocation_id=allocation_id)


@router.put("/{allocation_id}/summary", response_model=DischargeSummaryResponse)
def save_discharge_summary(
    allocation_id: UUID,
    payload: DischargeSummarySave,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(CLINICAL_ROLES)),
) -> DischargeSummaryResponse:
    """
    Create or update the summary. `finalize=true` locks it against edits.
    """
    with service_errors():
        summary = discharge_service.save_discharge_summary(
            db, allocation_id=allocation_id, payload=payload, user_id=current_user.id
        )
    return DischargeSummaryResponse.model_validate(summary)


@router.post("/{allocation_id}/preview", response_model=BillingStatement)
def preview_discharge(
    allocation_id: UUID,
    payload: DischargeProcessRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(DISCHARGE_ROLES)),
) -> BillingStatement:
    """
    Bill the discharge would produce with these services, tax and discount.
    Payments in the request are ignored and nothing is saved.
    """
    with service_errors():
        return discharge_service.preview_discharge(db, allocation_id=allocation_id, request=payload)


@router.post("/{allocation_id}/process", response_model=DischargeResult)
def process_discharge(
    allocation_id: UUID,
    payload: DischargeProcessRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(DISCHARGE_ROLES)),
) -> DischargeResult:
    """
    Discharge with billing reconciliation, as one transaction:
    bed-days, charges and extra services are billed with tax and discount,
    final payments are receipted, the summary and bill rows are written and
    the bed is released.
    """
    with service_errors():
        allocation, summary, bill, statement = discharge_service.process_discharge(
            db, allocation_id=allocation_id, request=payload, user_id=current_user.id
        )
    logger.info("Allocation %s discharged by %s", allocation.ip_number, current_user.email)
    return DischargeResult(
        allocation=allocation_to_response(allocation),
        summary=DischargeSummaryResponse.model_validate(summary),
        bill=BillResponse.model_validate(bill),
        statement=statement,
    )


@router.post("/{allocation_id}/sync-billing", response_model=DischargeSummaryResponse)
def sync_billing(
    allocation_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(BILLING_ROLES)),
) -> DischargeSummaryResponse:
    with service_errors():
        summary, _bill, _statement = discharge_service.sync_billing(
            db, allocation_id=allocation_id, user_id=current_user.id
        )
    return DischargeSummaryResponse.model_validate(summary)


@router.get("/{allocation_id}/summary/pdf")
def download_discharge_summary_pdf(
    allocation_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> StreamingResponse:
    with service_errors():
        summary = discharge_service.get_discharge_summary(db, allocation_id=allocation_id)
        buffer = discharge_service.render_discharge_pdf(db, allocation_id=allocation_id)

    filename = f"discharge_summary_{summary.ip_number or allocation_id}.pdf"
    return StreamingResponse(
        buffer,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
