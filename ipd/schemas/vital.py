# ipd/schemas/vital.py
from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

MEASUREMENT_FIELDS = (
    "temperature",
    "bp_systolic",
    "bp_diastolic",
    "pulse",
    "respiratory_rate",
    "spo2",
    "sugar_level",
    "urine_output",
    "intake_fluids",
)


class VitalCreate(BaseModel):
    temperature: float | None = None
    bp_systolic: float | None = None
    bp_diastolic: float | None = None
    pulse: float | None = None
    respiratory_rate: float | None = None
    spo2: float | None = None
    sugar_level: float | None = None
    sugar_type: Literal["fasting", "random", "post_prandial"] | None = None
    consciousness_level: str | None = None
    urine_output: float | None = None
    intake_fluids: float | None = None
    notes: str | None = None
    recorded_at: datetime | None = None

    @field_validator("bp_systolic", "bp_diastolic")
    @classmethod
    def validate_bp(cls, v: float | None) -> float | None:
        if v is not None and (v < 0 or v > 300):
            raise ValueError("Blood pressure must be between 0 and 300")
        return v

    @field_validator("pulse")
    @classmethod
    def validate_pulse(cls, v: float | None) -> float | None:
        if v is not None and (v < 0 or v > 300):
            raise ValueError("Pulse must be between 0 and 300")
        return v

    @field_validator("temperature")
    @classmethod
    def validate_temperature(cls, v: float | None) -> float | None:
        if v is not None and (v < 90 or v > 110):
            raise ValueError("Temperature must be between 90 and 110 degrees Fahrenheit")
        return v

    @field_validator("spo2")
    @classmethod
    def validate_spo2(cls, v: float | None) -> float | None:
        if v is not None and (v < 0 or v > 100):
            raise ValueError("SpO2 must be between 0 and 100")
        return v

    @field_validator("respiratory_rate")
    @classmethod
    def validate_respiratory_rate(cls, v: float | None) -> float | None:
        if v is not None and (v < 0 or v > 100):
            raise ValueError("Respiratory rate must be between 0 and 100")
        return v

    @field_validator("sugar_level", "urine_output", "intake_fluids")
    @classmethod
    def validate_non_negative(cls, v: float | None) -> float | None:
        if v is not None and v < 0:
            raise ValueError("Value cannot be negative")
        return v

    @model_validator(mode="after")
    def require_measurement(self):
        if all(getattr(self, name) is None for name in MEASUREMENT_FIELDS):
            raise ValueError("At least one vital measurement is required")
        return self


class VitalResponse(BaseModel):
    id: UUID
    bed_allocation_id: UUID
    created_by: UUID | None
    temperature: float | None
    bp_systolic: float | None
    bp_diastolic: float | None
    pulse: float | None
    respiratory_rate: float | None
    spo2: float | None
    sugar_level: float | None
    sugar_type: str | None
    consciousness_level: str | None
    urine_output: float | None
    intake_fluids: float | None
    notes: str | None
    recorded_at: datetime

    model_config = ConfigDict(from_attributes=True)
