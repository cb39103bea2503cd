# ipd/schemas/clinical.py
from datetime import date, datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class CaseSheetUpsert(BaseModel):
    case_sheet_date: date | None = None  # defaults to today
    present_complaints: str | None = None
    history_present_illness: str | None = None
    past_history: str | None = None
    family_history: str | None = None
    personal_history: str | None = None
    examination_notes: str | None = None
    provisional_diagnosis: str | None = None
    investigation_summary: str | None = None
    treatment_plan: str | None = None


class CaseSheetResponse(BaseModel):
    id: UUID
    bed_allocation_id: UUID
    patient_id: UUID
    case_sheet_date: date
    present_complaints: str | None
    history_present_illness: str | None
    past_history: str | None
    family_history: str | None
    personal_history: str | None
    examination_notes: str | None
    provisional_diagnosis: str | None
    investigation_summary: str | None
    treatment_plan: str | None
    created_by: UUID | None
    updated_by: UUID | None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProgressNoteCreate(BaseModel):
    content: str = Field(..., min_length=1)
    note_date: datetime | None = None


class ProgressNoteResponse(BaseModel):
    id: UUID
    bed_allocation_id: UUID
    note_date: datetime
    content: str
    created_by: UUID | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DoctorOrderCreate(BaseModel):
    assessment: str | None = None
    treatment_instructions: str | None = None
    investigation_instructions: str | None = None
    order_date: datetime | None = None


class DoctorOrderResponse(BaseModel):
    id: UUID
    bed_allocation_id: UUID
    order_date: datetime
    assessment: str | None
    treatment_instructions: str | None
    investigation_instructions: str | None
    created_by: UUID | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class NurseRecordCreate(BaseModel):
    remark: str = Field(..., min_length=1)
    entry_time: datetime | None = None


class NurseRecordResponse(BaseModel):
    id: UUID
    bed_allocation_id: UUID
    entry_time: datetime
    remark: str
    created_by: UUID | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TimelineEvent(BaseModel):
    type: str
    id: UUID
    timestamp: datetime
    title: str
    subtitle: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)


class TimelineDay(BaseModel):
    date: str
    events: list[TimelineEvent]
