# ipd/models/vital.py
import uuid
from datetime import datetime

from sqlalchemy import (
    DateTime,
    Float,
    ForeignKey,
    String,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from ipd.models.base import Base
from ipd.utils.datetime_utils import utc_now


class IPVital(Base):
    """
    A vitals reading taken on the ward during an IP stay.
    Temperature is recorded in Fahrenheit.
    """

    __tablename__ = "ip_vitals"

    # Primary Key
    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    # Foreign Keys
    bed_allocation_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("bed_allocations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    created_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Vital Signs
    temperature: Mapped[float | None] = mapped_column(Float, nullable=True)
    bp_systolic: Mapped[float | None] = mapped_column(Float, nullable=True)
    bp_diastolic: Mapped[float | None] = mapped_column(Float, nullable=True)
    pulse: Mapped[float | None] = mapped_column(Float, nullable=True)
    respiratory_rate: Mapped[float | None] = mapped_column(Float, nullable=True)
    spo2: Mapped[float | None] = mapped_column(Float, nullable=True)
    sugar_level: Mapped[float | None] = mapped_column(Float, nullable=True)
    sugar_type: Mapped[str | None] = mapped_column(
        String(20),
        nullable=True,
        doc="fasting, random, post_prandial",
    )
    consciousness_level: Mapped[str | None] = mapped_column(String(50), nullable=True)
    urine_output: Mapped[float | None] = mapped_column(Float, nullable=True, doc="ml")
    intake_fluids: Mapped[float | None] = mapped_column(Float, nullable=True, doc="ml")

    # Notes
    notes: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Timestamps
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=text("CURRENT_TIMESTAMP"),
    )
