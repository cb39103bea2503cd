# ipd/models/bed_allocation.py
import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum as PyEnum

from sqlalchemy import (
    DateTime,
    Enum,
    ForeignKey,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ipd.models.base import Base, enum_values
from ipd.models.bed import Bed
from ipd.models.patient import Patient
from ipd.models.user import User
from ipd.utils.datetime_utils import utc_now


class AllocationStatus(str, PyEnum):
    ACTIVE = "active"
    DISCHARGED = "discharged"
    TRANSFERRED = "transferred"


class AdmissionType(str, PyEnum):
    EMERGENCY = "emergency"
    ELECTIVE = "elective"
    SCHEDULED = "scheduled"
    REFERRED = "referred"
    TRANSFER = "transfer"


ALLOCATION_STATUS_ENUM = Enum(
    AllocationStatus,
    name="allocation_status_enum",
    values_callable=enum_values,
)

ADMISSION_TYPE_ENUM = Enum(
    AdmissionType,
    name="admission_type_enum",
    values_callable=enum_values,
)


class BedAllocation(Base):
    """
    One stay of a patient on a bed (an IP admission episode, or one leg of
    it after a transfer). Every leg of an episode shares the same
    `ip_number`.
    """

    __tablename__ = "bed_allocations"

    # Primary Key
    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    allocation_code: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        unique=True,
        index=True,
        doc="BA{YYYYMMDD}{NNNN}",
    )
    ip_number: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        index=True,
        doc="IP{YY}{MM}{NNNN}; shared by transfer legs of one episode",
    )

    # Foreign Keys
    patient_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("patients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    bed_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("beds.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    doctor_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        doc="Consultant responsible for this admission",
    )
    allocated_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Admission Details
    admission_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )
    discharge_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    admission_type: Mapped[AdmissionType] = mapped_column(
        ADMISSION_TYPE_ENUM,
        nullable=False,
        default=AdmissionType.ELECTIVE,
    )
    admission_category: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
        doc="e.g. general, insurance, corporate",
    )
    reason_for_admission: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Status
    status: Mapped[AllocationStatus] = mapped_column(
        ALLOCATION_STATUS_ENUM,
        nullable=False,
        default=AllocationStatus.ACTIVE,
        server_default=text("'active'"),
        index=True,
    )

    # Money
    advance_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0"),
        server_default=text("0"),
    )
    total_charges: Mapped[Decimal | None] = mapped_column(
        Numeric(12, 2),
        nullable=True,
        doc="Grand total settled at discharge",
    )

    # Timestamps
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

    # Relationships
    patient: Mapped["Patient"] = relationship("Patient")
    bed: Mapped["Bed"] = relationship("Bed")
    doctor: Mapped["User"] = relationship("User", foreign_keys=[doctor_id])
