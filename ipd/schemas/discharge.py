# ipd/schemas/discharge.py
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ipd.models.billing import ChargeCategory
from ipd.models.discharge_summary import DischargeCondition, SummaryStatus
from ipd.schemas.bed_allocation import BedAllocationResponse
from ipd.schemas.billing import BillingStatement, BillResponse, Money, PaymentSplit


class DischargeSummaryFields(BaseModel):
    presenting_complaint: str | None = None
    physical_findings: str | None = None
    investigations: str | None = None
    anesthesiologist: str | None = None
    past_history: str | None = None
    final_diagnosis: str | None = None
    diagnosis_category: str | None = None
    treatment_given: str | None = None
    condition_at_discharge: DischargeCondition | None = None
    follow_up_advice: str | None = None
    review_on: date | None = None
    prescription: str | None = None
    surgery_date: date | None = None


class DischargeSummarySave(DischargeSummaryFields):
    finalize: bool = False


class DischargeSummaryPrefill(DischargeSummaryFields):
    """Suggested values for a new summary (nothing is saved)."""

    uhid: str | None = None
    patient_name: str | None = None
    gender: str | None = None
    age: int | None = None
    address: str | None = None
    ip_number: str | None = None
    admission_date: datetime | None = None
    discharge_date: datetime | None = None
    consultant_name: str | None = None


class AdditionalService(BaseModel):
    description: str = Field(..., min_length=1, max_length=255)
    category: ChargeCategory = ChargeCategory.OTHER
    quantity: Decimal = Field(Decimal("1"), gt=0)
    unit_rate: Decimal = Field(..., ge=0)


class DischargeProcessRequest(BaseModel):
    discharge_date: datetime | None = None  # defaults to now
    discharge_notes: str | None = None
    additional_services: list[AdditionalService] = Field(default_factory=list)
    tax_percentage: Decimal = Field(Decimal("0"), ge=0, le=100)
    discount_percentage: Decimal = Field(Decimal("0"), ge=0, le=100)
    discount_amount: Decimal | None = Field(
        None,
        ge=0,
        description="Flat discount; overrides discount_percentage when given",
    )
    payments: list[PaymentSplit] = Field(default_factory=list)
    summary: DischargeSummaryFields | None = None
    finalize_summary: bool = False


class DischargeSummaryResponse(DischargeSummaryPrefill):
    id: UUID
    bed_allocation_id: UUID
    patient_id: UUID

    bed_days: int
    bed_daily_rate: Money
    bed_total: Money
    pharmacy_amount: Money
    lab_amount: Money
    procedure_amount: Money
    other_amount: Money
    gross_amount: Money
    discount_amount: Money
    tax_amount: Money
    net_amount: Money
    paid_amount: Money
    pending_amount: Money
    payment_splits: dict[str, float]

    status: SummaryStatus
    finalized_at: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DischargeResult(BaseModel):
    allocation: BedAllocationResponse
    summary: DischargeSummaryResponse
    bill: BillResponse
    statement: BillingStatement
