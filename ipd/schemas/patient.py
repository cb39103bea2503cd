# ipd/schemas/patient.py
from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PatientCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    age: int | None = Field(None, ge=0, le=150)
    gender: Literal["male", "female", "other"] | None = None
    phone: str | None = Field(None, max_length=50)
    address: str | None = Field(None, max_length=500)
    medical_history: str | None = None
    diagnosis: str | None = None
    allergies: str | None = None
    is_critical: bool = False

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name cannot be empty")
        return v

    @field_validator("gender", mode="before")
    @classmethod
    def normalize_gender(cls, v):
        if isinstance(v, str):
            return v.strip().lower() or None
        return v


class PatientUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=200)
    age: int | None = Field(None, ge=0, le=150)
    phone: str | None = Field(None, max_length=50)
    address: str | None = Field(None, max_length=500)
    medical_history: str | None = None
    diagnosis: str | None = None
    allergies: str | None = None
    is_critical: bool | None = None


class PatientResponse(BaseModel):
    id: UUID
    uhid: str
    name: str
    age: int | None
    gender: str | None
    phone: str | None
    address: str | None
    medical_history: str | None
    diagnosis: str | None
    allergies: str | None
    is_critical: bool
    is_admitted: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
