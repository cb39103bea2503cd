# ipd/schemas/pharmacy.py
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ipd.models.pharmacy_recommendation import RecommendationPriority, RecommendationStatus


class RecommendationRequest(BaseModel):
    patient_id: UUID
    bed_allocation_id: UUID | None = None
    diagnosis: str | None = None
    allergies: list[str] = Field(default_factory=list)
    current_medications: list[str] = Field(default_factory=list)


class RecommendationDraft(BaseModel):
    """A generated (not yet saved) recommendation."""

    medication_id: UUID | None = None
    medication_name: str
    dosage: str | None = None
    frequency: str | None = None
    duration: str | None = None
    quantity: int = Field(1, ge=1)
    instructions: str | None = None
    reason: str | None = None
    priority: RecommendationPriority = RecommendationPriority.MEDIUM
    unit_price: float | None = None
    stock_quantity: int | None = None


class RecommendationSaveRequest(BaseModel):
    patient_id: UUID
    bed_allocation_id: UUID | None = None
    recommendations: list[RecommendationDraft] = Field(..., min_length=1)


class RecommendationStatusUpdate(BaseModel):
    status: RecommendationStatus
    notes: str | None = Field(None, max_length=500)


class ConvertToPrescriptionRequest(BaseModel):
    patient_id: UUID
    doctor_id: UUID | None = None
    recommendation_ids: list[UUID] = Field(..., min_length=1)


class RecommendationResponse(BaseModel):
    id: UUID
    patient_id: UUID
    bed_allocation_id: UUID | None
    medication_id: UUID | None
    medication_name: str
    dosage: str | None
    frequency: str | None
    duration: str | None
    quantity: int
    instructions: str | None
    reason: str | None
    priority: RecommendationPriority
    status: RecommendationStatus
    recommended_by: UUID | None
    approved_by: UUID | None
    approved_at: datetime | None
    notes: str | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
