# ipd/schemas/medication.py
from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any
from uuid import UUID

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StringConstraints,
    field_validator,
)

NameStr = Annotated[
    str,
    StringConstraints(strip_whitespace=True, min_length=1, max_length=255),
]

OptStr50 = (
    Annotated[
        str,
        StringConstraints(strip_whitespace=True, max_length=50),
    ]
    | None
)


class MedicationBase(BaseModel):
    """
    Shared fields for create/response.

    Empty strings from UI are normalized to None.
    """

    name: NameStr
    generic_name: Annotated[str, StringConstraints(strip_whitespace=True, max_length=255)] | None = None
    dosage_form: OptStr50 = None
    strength: OptStr50 = None
    selling_price: float = Field(default=0, ge=0)
    stock_quantity: int = Field(default=0, ge=0)
    is_active: bool = True

    @field_validator("generic_name", "dosage_form", "strength", mode="before")
    @classmethod
    def empty_str_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v


class MedicationCreate(MedicationBase):
    model_config = ConfigDict(extra="forbid")


class MedicationResponse(MedicationBase):
    id: UUID
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
