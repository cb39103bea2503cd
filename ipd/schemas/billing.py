# ipd/schemas/billing.py
from datetime import datetime
from decimal import Decimal
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer

from ipd.models.billing import ChargeCategory, PaymentStatus, PaymentType

# Decimal in Python, plain number in JSON
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class RoomCharges(BaseModel):
    bed_id: UUID | None = None
    bed_number: str | None = None
    bed_type: str
    days: int
    daily_rate: Money
    total: Money
    from_date: datetime | None = None
    to_date: datetime | None = None


class BillLine(BaseModel):
    category: str = ChargeCategory.OTHER.value
    description: str
    quantity: Money = Decimal("1")
    unit_rate: Money
    amount: Money | None = None


class BillTotals(BaseModel):
    subtotal: Money
    tax_amount: Money
    discount_amount: Money
    total_amount: Money


class ConsultationCharge(BaseModel):
    doctor_id: UUID | None = None
    doctor_name: str | None = None
    fee: Money
    days: int
    total: Money


class ChargeCreate(BaseModel):
    category: ChargeCategory
    description: str = Field(..., min_length=1, max_length=255)
    quantity: Decimal = Field(Decimal("1"), gt=0)
    unit_rate: Decimal = Field(..., ge=0)
    service_date: datetime | None = None


class ChargeResponse(BaseModel):
    id: UUID
    bed_allocation_id: UUID
    category: ChargeCategory
    description: str
    quantity: Money
    unit_rate: Money
    amount: Money
    service_date: datetime
    created_by: UUID | None

    model_config = ConfigDict(from_attributes=True)


class PaymentSplit(BaseModel):
    payment_type: PaymentType
    amount: Decimal = Field(..., gt=0)
    reference_number: str | None = Field(None, max_length=100)
    notes: str | None = Field(None, max_length=500)


class PaymentRequest(BaseModel):
    splits: list[PaymentSplit] = Field(..., min_length=1)


class PaymentReceiptResponse(BaseModel):
    id: UUID
    bed_allocation_id: UUID
    payment_type: PaymentType
    amount: Money
    reference_number: str | None
    notes: str | None
    payment_date: datetime

    model_config = ConfigDict(from_attributes=True)


class BillingStatement(BaseModel):
    """
    Complete inpatient bill of an allocation as of `as_of`
    (now for an active stay, the discharge time otherwise).
    """

    allocation_id: UUID
    ip_number: str
    patient_id: UUID
    patient_name: str | None = None
    uhid: str | None = None
    admission_date: datetime
    as_of: datetime
    is_discharged: bool = False

    room_charges: list[RoomCharges]
    consultation: ConsultationCharge
    lines: list[BillLine]
    category_totals: dict[str, Money]
    receipts: list[PaymentReceiptResponse] = Field(default_factory=list)

    advance_amount: Money
    receipts_total: Money
    gross_amount: Money
    tax_percentage: Money = Decimal("0")
    tax_amount: Money = Decimal("0")
    discount_percentage: Money = Decimal("0")
    discount_amount: Money = Decimal("0")
    net_amount: Money
    paid_amount: Money
    pending_amount: Money
    payment_status: PaymentStatus
    payment_splits: dict[str, Money] = Field(default_factory=dict)

    @property
    def bed_days(self) -> int:
        return sum(rc.days for rc in self.room_charges)


class BillItemResponse(BaseModel):
    id: UUID
    category: str
    description: str
    quantity: Money
    unit_rate: Money
    amount: Money

    model_config = ConfigDict(from_attributes=True)


class BillResponse(BaseModel):
    id: UUID
    bill_number: str
    bill_type: str
    bed_allocation_id: UUID
    patient_id: UUID
    subtotal: Money
    tax_percentage: Money
    tax_amount: Money
    discount_percentage: Money
    discount_amount: Money
    total_amount: Money
    paid_amount: Money
    balance_amount: Money
    payment_status: PaymentStatus
    payment_method: str | None
    bill_date: datetime
    items: list[BillItemResponse] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)
