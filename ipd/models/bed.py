# ipd/models/bed.py
import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum as PyEnum

from sqlalchemy import (
    JSON,
    DateTime,
    Enum,
    Integer,
    Numeric,
    String,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from ipd.models.base import Base, enum_values
from ipd.utils.datetime_utils import utc_now


class BedStatus(str, PyEnum):
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    MAINTENANCE = "maintenance"
    RESERVED = "reserved"


BED_STATUS_ENUM = Enum(
    BedStatus,
    name="bed_status_enum",
    values_callable=enum_values,
)


class Bed(Base):
    """
    Physical inpatient bed. `status` is driven by allocations: a bed holding
    an active allocation is always `occupied`.
    """

    __tablename__ = "beds"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    bed_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True, index=True)
    room_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    bed_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="general",
        doc="general, semi_private, private, icu, emergency, ...",
    )
    department_ward: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    floor_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    daily_rate: Mapped[Decimal | None] = mapped_column(
        Numeric(12, 2),
        nullable=True,
        doc="Per-day room charge. Missing or zero falls back to the configured default.",
    )
    features: Mapped[list[str]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
        doc="Free-form amenities, e.g. ['oxygen', 'monitor'].",
    )

    status: Mapped[BedStatus] = mapped_column(
        BED_STATUS_ENUM,
        nullable=False,
        default=BedStatus.AVAILABLE,
        server_default=text("'available'"),
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=utc_now,
    )
