# ipd/schemas/user.py
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from ipd.models.user import RoleName


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field("", max_length=100)
    phone: str | None = None
    role: RoleName
    specialization: str | None = None
    license_number: str | None = None
    consultation_fee: float | None = Field(None, ge=0)

    @field_validator("first_name", "last_name")
    @classmethod
    def strip_names(cls, v: str) -> str:
        return v.strip()


class UserResponse(BaseModel):
    id: UUID
    email: EmailStr
    first_name: str
    last_name: str
    full_name: str
    phone: str | None
    role: RoleName
    specialization: str | None
    consultation_fee: float | None
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
