"""
Shuttle schemas.
"""

from pydantic import BaseModel, Field, field_validator
from datetime import date, datetime
from typing import List, Optional
from fleet_backend.app.models.vehicle_enums import ShuttleStatus, FuelType
from fleet_backend.app.schemas.vehicle import normalize_registration


class ShuttleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    registration: str = Field(..., min_length=1, max_length=50)
    make: Optional[str] = Field(default=None, max_length=100)
    model: Optional[str] = Field(default=None, max_length=100)
    year: Optional[int] = Field(default=None, ge=1900, le=2100)
    capacity: int = Field(..., ge=1)
    fuel_type: Optional[FuelType] = None
    status: ShuttleStatus = ShuttleStatus.ACTIVE
    insurance_expiry: Optional[date] = None
    department_id: Optional[int] = None

    validate_registration = field_validator("registration")(normalize_registration)


class ShuttleUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    make: Optional[str] = Field(default=None, max_length=100)
    model: Optional[str] = Field(default=None, max_length=100)
    year: Optional[int] = Field(default=None, ge=1900, le=2100)
    capacity: Optional[int] = Field(default=None, ge=1)
    fuel_type: Optional[FuelType] = None
    status: Optional[ShuttleStatus] = None
    insurance_expiry: Optional[date] = None
    department_id: Optional[int] = None


class ShuttleResponse(BaseModel):
    id: int
    name: str
    registration: str
    make: Optional[str] = None
    model: Optional[str] = None
    year: Optional[int] = None
    capacity: int
    fuel_type: Optional[FuelType] = None
    status: ShuttleStatus
    insurance_expiry: Optional[date] = None
    department_id: Optional[int] = None
    created_by_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ShuttleListResponse(BaseModel):
    items: List[ShuttleResponse]
    total: int
    page: int
    page_size: int
