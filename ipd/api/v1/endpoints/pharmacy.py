# ipd/api/v1/endpoints/pharmacy.py
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ipd.api.v1.errors import service_errors
from ipd.core.database import get_db
from ipd.dependencies.authz import PHARMACY_ROLES, require_roles
from ipd.models.user import User
from ipd.schemas.pharmacy import (
    ConvertToPrescriptionRequest,
    RecommendationDraft,
    RecommendationRequest,
    RecommendationResponse,
    RecommendationSaveRequest,
    RecommendationStatusUpdate,
)
from ipd.schemas.prescription import PrescriptionResponse
from ipd.services import pharmacy_recommendation_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/recommendations/generate", response_model=list[RecommendationDraft])
def generate_recommendations(
    payload: RecommendationRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(PHARMACY_ROLES)),
) -> list[RecommendationDraft]:
    """
    Suggest standard prophylactic medications available in the catalog,
    skipping allergies and current medications. Nothing is saved.
    """
    with service_errors():
        return pharmacy_recommendation_service.generate_recommendations(db, request=payload)


@router.post(
    "/recommendations",
    response_model=list[RecommendationResponse],
    status_code=status.HTTP_201_CREATED,
)
def save_recommendations(
    payload: RecommendationSaveRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(PHARMACY_ROLES)),
) -> list[RecommendationResponse]:
    with service_errors():
        recs = pharmacy_recommendation_service.save_recommendations(db, payload=payload, user_id=current_user.id)
    return [RecommendationResponse.model_validate(r) for r in recs]


@router.patch("/recommendations/{recommendation_id}/status", response_model=RecommendationResponse)
def update_recommendation_status(
    recommendation_id: UUID,
    payload: RecommendationStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(PHARMACY_ROLES)),
) -> RecommendationResponse:
    """
    pending -> approved | rejected, approved -> dispensed | rejected.
    Dispensing takes stock and posts a pharmacy charge to the stay.
    """
    with service_errors():
        rec = pharmacy_recommendation_service.update_recommendation_status(
            db,
            recommendation_id=recommendation_id,
            status=payload.status,
            notes=payload.notes,
            user_id=current_user.id,
        )
    return RecommendationResponse.model_validate(rec)


@router.post(
    "/recommendations/convert",
    response_model=PrescriptionResponse,
    status_code=status.HTTP_201_CREATED,
)
def convert_to_prescription(
    payload: ConvertToPrescriptionRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(PHARMACY_ROLES)),
) -> PrescriptionResponse:
    with service_errors():
        prescription = pharmacy_recommendation_service.convert_to_prescription(
            db, payload=payload, user_id=current_user.id
        )
    return PrescriptionResponse.model_validate(prescription)
