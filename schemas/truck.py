"""
Pydantic schemas for fleet units.
"""
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class TruckCreate(BaseModel):
    license_plate: str = Field(..., min_length=2, max_length=30)
    capacity_tons: float = Field(..., gt=0)


class TruckUpdate(BaseModel):
    license_plate: Optional[str] = Field(None, min_length=2, max_length=30)
    capacity_tons: Optional[float] = Field(None, gt=0)
    # Approval and busy state have dedicated endpoints.
    model_config = ConfigDict(extra="forbid")


class TruckResponse(BaseModel):
    id: UUID
    license_plate: str
    driver_id: UUID
    driver_name: str
    capacity_tons: float
    is_approved: bool
    is_busy: bool
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)
