# ipd/models/medication_administration.py
import uuid
from datetime import date, datetime
from enum import Enum as PyEnum

from sqlalchemy import (
    Date,
    DateTime,
    Enum,
    ForeignKey,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ipd.models.base import Base, enum_values
from ipd.models.prescription import PrescriptionItem
from ipd.utils.datetime_utils import utc_now


class AdministrationStatus(str, PyEnum):
    PENDING = "pending"
    ADMINISTERED = "administered"
    SKIPPED = "skipped"
    REFUSED = "refused"
    DELAYED = "delayed"


class MedicationAdministration(Base):
    """
    One scheduled dose of a prescription item on a given day (the nurse's
    medication checklist).
    """

    __tablename__ = "medication_administrations"
    __table_args__ = (
        UniqueConstraint(
            "prescription_item_id",
            "administration_date",
            "scheduled_time",
            name="uq_med_admin_item_date_slot",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    prescription_item_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("prescription_items.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    bed_allocation_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("bed_allocations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    administration_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    scheduled_time: Mapped[str] = mapped_column(String(5), nullable=False, doc="HH:MM")

    status: Mapped[AdministrationStatus] = mapped_column(
        Enum(AdministrationStatus, name="administration_status_enum", values_callable=enum_values),
        nullable=False,
        default=AdministrationStatus.PENDING,
        server_default=text("'pending'"),
    )
    administered_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    administered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(500), nullable=True)

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

    prescription_item: Mapped["PrescriptionItem"] = relationship("PrescriptionItem")
