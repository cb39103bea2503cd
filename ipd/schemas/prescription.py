# ipd/schemas/prescription.py
from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ipd.models.medication_administration import AdministrationStatus
from ipd.models.prescription import PrescriptionStatus


class PrescriptionItemCreate(BaseModel):
    medication_id: UUID | None = None
    medicine_name: str | None = None  # taken from the catalog when medication_id is set
    dosage: str | None = None
    frequency: str | None = None
    duration: str | None = None
    instructions: str | None = None
    quantity: int | None = Field(None, ge=0)


class PrescriptionCreate(BaseModel):
    doctor_id: UUID | None = None  # defaults to the current user / attending doctor
    items: list[PrescriptionItemCreate] = Field(..., min_length=1)


class PrescriptionItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    medication_id: UUID | None = None
    medicine_name: str
    dosage: str | None
    frequency: str | None
    duration: str | None
    instructions: str | None
    quantity: int | None = None


class PrescriptionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    prescription_code: str
    patient_id: UUID
    bed_allocation_id: UUID | None
    doctor_id: UUID | None
    status: PrescriptionStatus
    created_at: datetime
    items: list[PrescriptionItemResponse]


class AdministrationEntry(BaseModel):
    """One row of the day's medication checklist."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    prescription_item_id: UUID
    bed_allocation_id: UUID
    administration_date: date
    scheduled_time: str
    status: AdministrationStatus
    administered_by: UUID | None
    administered_at: datetime | None
    notes: str | None

    medicine_name: str | None = None
    dosage: str | None = None
    frequency: str | None = None


class AdministrationUpdate(BaseModel):
    status: AdministrationStatus
    notes: str | None = Field(None, max_length=500)


class PrescriptionStatusUpdate(BaseModel):
    status: PrescriptionStatus
