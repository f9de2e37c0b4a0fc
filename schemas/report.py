"""
Pydantic schemas for citizen reports and their workflow actions.
"""
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models.report import ReportStatus

PHONE_PATTERN = r"^\+?[0-9]{7,15}$"


def _normalize_phone(value: str) -> str:
    return "".join(ch for ch in value.strip() if ch not in " -()")


class Location(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    state: str = Field(..., min_length=1, max_length=100)
    city: str = Field(..., min_length=1, max_length=100)

    @field_validator("name", "state", "city", mode="before")
    @classmethod
    def strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value


class ReportFields(BaseModel):
    """What the citizen types in; the photo is handled separately."""
    reporter_phone: str = Field(..., pattern=PHONE_PATTERN)
    description: str = Field(..., min_length=1, max_length=2000)
    location: Location

    @field_validator("reporter_phone", mode="before")
    @classmethod
    def clean_phone(cls, value):
        return _normalize_phone(value) if isinstance(value, str) else value

    @field_validator("description", mode="before")
    @classmethod
    def strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value


class ReportCreate(ReportFields):
    image_url: str = Field(..., min_length=1, max_length=500)

    @field_validator("image_url", mode="before")
    @classmethod
    def strip_url(cls, value):
        return value.strip() if isinstance(value, str) else value


class ReportUpdate(BaseModel):
    """Citizen-supplied fields an admin may correct. Workflow fields are not accepted."""
    reporter_phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    description: Optional[str] = Field(None, min_length=1, max_length=2000)
    location: Optional[Location] = None
    model_config = ConfigDict(extra="forbid")

    @field_validator("reporter_phone", mode="before")
    @classmethod
    def clean_phone(cls, value):
        return _normalize_phone(value) if isinstance(value, str) else value


class AssignRequest(BaseModel):
    truck_id: UUID


class ReportResponse(BaseModel):
    id: UUID
    reporter_phone: str
    description: str
    location: Location
    image_url: str
    status: ReportStatus

    assigned_truck_id: Optional[UUID]
    date_assigned: Optional[datetime]
    date_cleared: Optional[datetime]
    proof_image_url: Optional[str]
    proof_notes: Optional[str]
    proof_submitted_at: Optional[datetime]
    admin_override: bool
    last_updated_by: Optional[UUID]
    date_reported: datetime
    model_config = ConfigDict(from_attributes=True)


class ReportStats(BaseModel):
    total: int
    pending: int
    assigned: int
    in_progress: int
    cleared: int
