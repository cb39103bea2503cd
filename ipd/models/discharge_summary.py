# ipd/models/discharge_summary.py
import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum as PyEnum
from typing import Any

from sqlalchemy import (
    JSON,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from ipd.models.base import Base, enum_values
from ipd.utils.datetime_utils import utc_now


class SummaryStatus(str, PyEnum):
    DRAFT = "draft"
    FINAL = "final"


class DischargeCondition(str, PyEnum):
    CURED = "cured"
    IMPROVED = "improved"
    REFERRED = "referred"
    DISCHARGED_AT_REQUEST = "discharged_at_request"
    LAMA = "lama"
    ABSCONDED = "absconded"


def _money_column(doc: str | None = None):
    return mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0"),
        server_default=text("0"),
        doc=doc,
    )


class DischargeSummary(Base):
    """
    Discharge summary of one allocation.

    Holds the clinical narrative, a snapshot of the patient and stay (so the
    document stays stable if the patient record is edited later) and the
    billing breakdown written by the discharge reconciliation.
    """

    __tablename__ = "discharge_summaries"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    bed_allocation_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("bed_allocations.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    patient_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("patients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Clinical
    presenting_complaint: Mapped[str | None] = mapped_column(Text, nullable=True)
    physical_findings: Mapped[str | None] = mapped_column(Text, nullable=True)
    investigations: Mapped[str | None] = mapped_column(Text, nullable=True)
    anesthesiologist: Mapped[str | None] = mapped_column(String(200), nullable=True)
    past_history: Mapped[str | None] = mapped_column(Text, nullable=True)
    final_diagnosis: Mapped[str | None] = mapped_column(Text, nullable=True)
    diagnosis_category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    treatment_given: Mapped[str | None] = mapped_column(Text, nullable=True)
    condition_at_discharge: Mapped[DischargeCondition | None] = mapped_column(
        Enum(DischargeCondition, name="discharge_condition_enum", values_callable=enum_values),
        nullable=True,
    )
    follow_up_advice: Mapped[str | None] = mapped_column(Text, nullable=True)
    review_on: Mapped[date | None] = mapped_column(Date, nullable=True)
    prescription: Mapped[str | None] = mapped_column(Text, nullable=True, doc="Discharge medication advice")
    surgery_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Snapshot
    uhid: Mapped[str | None] = mapped_column(String(30), nullable=True)
    patient_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    gender: Mapped[str | None] = mapped_column(String(10), nullable=True)
    age: Mapped[int | None] = mapped_column(Integer, nullable=True)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    ip_number: Mapped[str | None] = mapped_column(String(30), nullable=True)
    admission_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    discharge_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    consultant_name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    # Billing
    bed_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    bed_daily_rate: Mapped[Decimal] = _money_column()
    bed_total: Mapped[Decimal] = _money_column()
    pharmacy_amount: Mapped[Decimal] = _money_column()
    lab_amount: Mapped[Decimal] = _money_column(doc="Lab and radiology")
    procedure_amount: Mapped[Decimal] = _money_column()
    other_amount: Mapped[Decimal] = _money_column(doc="Consultation, additional services and other charges")
    gross_amount: Mapped[Decimal] = _money_column()
    discount_amount: Mapped[Decimal] = _money_column()
    tax_amount: Mapped[Decimal] = _money_column()
    net_amount: Mapped[Decimal] = _money_column()
    paid_amount: Mapped[Decimal] = _money_column()
    pending_amount: Mapped[Decimal] = _money_column()
    payment_splits: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
        doc="Amount paid per payment type, e.g. {'cash': 1000, 'upi': 500}",
    )

    status: Mapped[SummaryStatus] = mapped_column(
        Enum(SummaryStatus, name="summary_status_enum", values_callable=enum_values),
        nullable=False,
        default=SummaryStatus.DRAFT,
        server_default=text("'draft'"),
    )
    finalized_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    updated_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=utc_now,
    )
