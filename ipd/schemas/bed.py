# ipd/schemas/bed.py
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ipd.models.bed import BedStatus


class BedCreate(BaseModel):
    bed_number: str = Field(..., min_length=1, max_length=50)
    room_number: str | None = None
    bed_type: str = Field("general", max_length=50)
    department_ward: str | None = None
    floor_number: int | None = None
    daily_rate: float | None = Field(None, ge=0)
    features: list[str] = Field(default_factory=list)


class BedStatusUpdate(BaseModel):
    status: BedStatus


class BedResponse(BaseModel):
    id: UUID
    bed_number: str
    room_number: str | None
    bed_type: str
    department_ward: str | None
    floor_number: int | None
    daily_rate: float | None
    features: list[str]
    status: BedStatus
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BedStats(BaseModel):
    total: int = 0
    available: int = 0
    occupied: int = 0
    maintenance: int = 0
    reserved: int = 0
    occupancy_rate: float = 0.0
