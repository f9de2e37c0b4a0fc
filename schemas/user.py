from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from schemas.truck import TruckResponse


class AdminRegister(BaseModel):
    username: str = Field(..., min_length=3, max_length=80)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=72)


class DriverRegister(AdminRegister):
    license_plate: str = Field(..., min_length=2, max_length=30)
    capacity_tons: float = Field(..., gt=0)


class AdminLogin(BaseModel):
    # Username or email
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class DriverLogin(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class UserResponse(BaseModel):
    id: UUID
    username: str
    email: str
    role: str
    is_approved: bool
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    role: str
    user: UserResponse
    truck: Optional[TruckResponse] = None


class DriverRegistrationResponse(BaseModel):
    user: UserResponse
    truck: TruckResponse


class ProfileResponse(BaseModel):
    user: UserResponse
    truck: Optional[TruckResponse] = None
