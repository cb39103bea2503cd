# ipd/schemas/bed_allocation.py
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ipd.models.bed_allocation import AdmissionType, AllocationStatus


class BedAllocationCreate(BaseModel):
    patient_id: UUID
    bed_id: UUID
    doctor_id: UUID | None = None
    admission_date: datetime | None = None  # defaults to now
    admission_type: AdmissionType = AdmissionType.ELECTIVE
    admission_category: str | None = None
    reason_for_admission: str | None = None
    ip_number: str | None = Field(
        None,
        max_length=30,
        description="Use an existing IP number instead of generating one",
    )
    advance_amount: float = Field(0, ge=0)


class BedDischargeRequest(BaseModel):
    discharge_date: datetime | None = None  # defaults to now


class BedTransferRequest(BaseModel):
    new_bed_id: UUID
    reason: str | None = None


class AdvancePaymentRequest(BaseModel):
    amount: float = Field(..., gt=0)


class BedAllocationResponse(BaseModel):
    id: UUID
    allocation_code: str
    ip_number: str
    patient_id: UUID
    bed_id: UUID
    doctor_id: UUID | None
    admission_date: datetime
    discharge_date: datetime | None
    admission_type: AdmissionType
    admission_category: str | None
    reason_for_admission: str | None
    status: AllocationStatus
    advance_amount: float
    total_charges: float | None
    created_at: datetime

    # Computed fields for frontend convenience
    patient_name: str | None = None
    uhid: str | None = None
    bed_number: str | None = None
    doctor_name: str | None = None

    model_config = ConfigDict(from_attributes=True)
